"""LLM inference infrastructure"""

from lifeline_core.infrastructure.llm.client import LLMInferenceClient, extract_json_object
from lifeline_core.infrastructure.llm.providers import ProviderRegistry, get_registry, reset_registry

__all__ = [
    "LLMInferenceClient",
    "extract_json_object",
    "ProviderRegistry",
    "get_registry",
    "reset_registry",
]
