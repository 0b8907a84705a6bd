"""
LLM Provider Package

This package contains the centralized provider registry and implementations
for the LLM providers used by Lifeline.
"""

from .base import BaseLLMProvider, LLMProviderError, LLMResponse, ProviderConfig, ProviderTransientError
from .registry import ProviderRegistry, get_registry, reset_registry, get_valid_provider_names
from .gemini import GeminiProvider, to_gemini_schema
from .openai_provider import OpenAIProvider

__all__ = [
    "BaseLLMProvider",
    "LLMProviderError",
    "LLMResponse",
    "ProviderConfig",
    "ProviderTransientError",
    "ProviderRegistry",
    "get_registry",
    "reset_registry",
    "get_valid_provider_names",
    "GeminiProvider",
    "to_gemini_schema",
    "OpenAIProvider",
]
