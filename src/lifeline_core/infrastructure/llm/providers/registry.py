"""
Centralized Provider Registry for LLM providers.

Single source of truth for which providers are configured and in which order
they are tried. Each provider call is retried on transport errors before the
registry falls back to the next provider in the chain.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional

import aiohttp

from lifeline_core.config import LLMSettings, get_settings
from lifeline_core.utils import call_with_retry
from .base import BaseLLMProvider, LLMProviderError, LLMResponse, ProviderConfig, ProviderTransientError
from .gemini import GeminiProvider
from .openai_provider import OpenAIProvider

logger = logging.getLogger(__name__)

# Data-driven provider schema - single source of truth
PROVIDER_SCHEMA = {
    "gemini": {
        "api_key_var": "GEMINI_API_KEY",
        "default_base_url": "https://generativelanguage.googleapis.com/v1beta",
        "default_model": "gemini-2.0-flash",
        "provider_class": GeminiProvider,
    },
    "openai": {
        "api_key_var": "OPENAI_API_KEY",
        "default_base_url": "https://api.openai.com/v1",
        "default_model": "gpt-4o",
        "provider_class": OpenAIProvider,
    },
}

# Errors retried against the same provider before falling back
RETRYABLE_ERRORS = (aiohttp.ClientError, asyncio.TimeoutError, ProviderTransientError)


class ProviderRegistry:
    """Central registry for managing LLM providers"""

    def __init__(self, settings: Optional[LLMSettings] = None, retry_wait: float = 1.0):
        self.settings = settings or get_settings().llm
        self.retry_wait = retry_wait
        self._providers: Dict[str, BaseLLMProvider] = {}
        self._fallback_chain: List[str] = []
        self._initialize_from_settings()

    def _initialize_from_settings(self):
        primary_provider = self.settings.provider
        if primary_provider not in PROVIDER_SCHEMA:
            logger.error(
                f"Invalid CHAT_PROVIDER: '{primary_provider}'. "
                f"Valid options: {get_valid_provider_names()}. Defaulting to 'gemini'"
            )
            primary_provider = "gemini"

        for provider_name, schema in PROVIDER_SCHEMA.items():
            config = self._create_provider_config(provider_name, schema)
            if config is None:
                continue
            provider = schema["provider_class"](config)
            if provider.is_available():
                self._providers[provider_name] = provider
                logger.info(f"Provider '{provider_name}' initialized with model {config.default_model}")
            else:
                logger.warning(f"Provider '{provider_name}' not available (missing config)")

        self._setup_fallback_chain(primary_provider)

    def _create_provider_config(self, provider_name: str, schema: Dict[str, Any]) -> Optional[ProviderConfig]:
        llm = self.settings
        if provider_name == "gemini":
            secret, model, base_url = llm.gemini_api_key, llm.gemini_model, llm.gemini_base_url
        else:
            secret, model, base_url = llm.openai_api_key, llm.openai_model, llm.openai_base_url

        if secret is None:
            logger.info(f"Skipping provider '{provider_name}': {schema['api_key_var']} not set")
            return None

        return ProviderConfig(
            name=provider_name,
            api_key=secret.get_secret_value(),
            base_url=base_url or schema["default_base_url"],
            models=[model or schema["default_model"]],
            max_retries=llm.max_retries,
            timeout=llm.request_timeout,
        )

    def _setup_fallback_chain(self, primary_provider: str):
        chain = [primary_provider] if primary_provider in self._providers else []

        if self.settings.strict_provider_mode:
            logger.info(f"Strict provider mode enabled - using only '{primary_provider}', no fallbacks")
        else:
            for name in PROVIDER_SCHEMA:
                if name != primary_provider and name in self._providers:
                    chain.append(name)

        self._fallback_chain = chain
        if chain:
            logger.info(f"Provider fallback chain: {' -> '.join(chain)}")
        else:
            logger.warning("No LLM provider configured; inference calls will fail")

    def register_provider(self, provider: BaseLLMProvider, primary: bool = False):
        """Add an already-built provider, optionally at the head of the chain"""
        name = provider.provider_name
        self._providers[name] = provider
        if name in self._fallback_chain:
            self._fallback_chain.remove(name)
        if primary:
            self._fallback_chain.insert(0, name)
        else:
            self._fallback_chain.append(name)

    def get_fallback_chain(self) -> List[str]:
        return self._fallback_chain.copy()

    async def route_request(
        self,
        prompt: str,
        media: Optional[List[str]] = None,
        response_schema: Optional[Dict[str, Any]] = None,
        **kwargs,
    ) -> LLMResponse:
        """
        Route request through the fallback chain until success

        Returns:
            LLMResponse from the first provider that answered

        Raises:
            LLMProviderError: If every provider in the chain failed
        """
        last_error: Optional[BaseException] = None

        for provider_name in self._fallback_chain:
            provider = self._providers[provider_name]
            try:
                logger.debug(f"Trying provider: {provider_name}")
                response = await call_with_retry(
                    provider.generate,
                    prompt,
                    media=media,
                    response_schema=response_schema,
                    max_attempts=provider.config.max_retries,
                    min_wait=self.retry_wait,
                    max_wait=self.retry_wait * 8,
                    retry_on=RETRYABLE_ERRORS,
                    **kwargs,
                )
                logger.info(
                    f"Provider {provider_name} answered in {response.response_time_ms}ms "
                    f"({response.tokens_used} tokens)"
                )
                return response
            except (LLMProviderError, aiohttp.ClientError, asyncio.TimeoutError) as e:
                logger.warning(f"Provider {provider_name} failed: {e}")
                last_error = e

        error_msg = f"All providers failed. Last error: {last_error}"
        logger.error(error_msg)
        raise LLMProviderError(error_msg)


# Global registry instance, used by application wiring only
_registry: Optional[ProviderRegistry] = None


def get_registry(settings: Optional[LLMSettings] = None) -> ProviderRegistry:
    """Get the global provider registry instance"""
    global _registry
    if _registry is None:
        _registry = ProviderRegistry(settings=settings)
    return _registry


def reset_registry():
    """Reset the global registry (mainly for testing)"""
    global _registry
    _registry = None


def get_valid_provider_names() -> List[str]:
    """Get list of valid provider names for CHAT_PROVIDER"""
    return list(PROVIDER_SCHEMA.keys())
