"""
Base provider interface for LLM providers.

This module defines the abstract base class that all LLM providers must implement,
ensuring consistent behavior and configuration across all provider implementations.
"""

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


class LLMProviderError(Exception):
    """Provider call failed"""

    def __init__(self, message: str, provider: Optional[str] = None, status: Optional[int] = None):
        super().__init__(message)
        self.provider = provider
        self.status = status


class ProviderTransientError(LLMProviderError):
    """Failure worth retrying (rate limit or server-side error)"""


TRANSIENT_STATUSES = frozenset({408, 429, 500, 502, 503, 504})


@dataclass
class LLMResponse:
    """Response from LLM provider"""

    content: str
    provider: str
    model: str
    tokens_used: int
    response_time_ms: int
    finish_reason: Optional[str] = None


@dataclass
class ProviderConfig:
    """Configuration for an LLM provider"""

    name: str
    api_key: Optional[str] = None
    base_url: Optional[str] = None
    models: List[str] = field(default_factory=list)
    max_retries: int = 3
    timeout: int = 60
    default_model: Optional[str] = None

    def __post_init__(self):
        if self.default_model is None and self.models:
            self.default_model = self.models[0]


class BaseLLMProvider(ABC):
    """Abstract base class for all LLM providers"""

    def __init__(self, config: ProviderConfig):
        self.config = config
        self.start_time = None

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Return the unique name of this provider"""
        pass

    @abstractmethod
    async def generate(
        self,
        prompt: str,
        media: Optional[List[str]] = None,
        response_schema: Optional[Dict[str, Any]] = None,
        model: Optional[str] = None,
        max_tokens: int = 2048,
        temperature: float = 0.2,
    ) -> LLMResponse:
        """
        Generate a response using this provider

        Args:
            prompt: Input prompt
            media: Image references (http(s) URLs or data URIs) sent with the prompt
            response_schema: JSON schema the response must follow; when given the
                provider is asked for JSON output
            model: Specific model to use (optional)
            max_tokens: Maximum tokens to generate
            temperature: Sampling temperature

        Returns:
            LLMResponse with generated content

        Raises:
            ProviderTransientError: On rate limits and 5xx responses
            LLMProviderError: On any other non-success response
        """
        pass

    def is_available(self) -> bool:
        """Check if the provider is properly configured"""
        return bool(self.config.api_key and self.config.base_url and self.config.models)

    def _start_timing(self):
        """Start timing for response measurement"""
        self.start_time = time.time()

    def _get_response_time_ms(self) -> int:
        """Get response time in milliseconds"""
        if self.start_time is None:
            return 0
        return int((time.time() - self.start_time) * 1000)

    def _raise_for_status(self, status: int, error_text: str) -> None:
        if status == 200:
            return
        message = f"{self.provider_name} API error {status}: {error_text[:500]}"
        if status in TRANSIENT_STATUSES:
            raise ProviderTransientError(message, provider=self.provider_name, status=status)
        raise LLMProviderError(message, provider=self.provider_name, status=status)

    def _validate_response_content(self, content: Optional[str]) -> str:
        """Validate and clean response content"""
        if content is None:
            raise LLMProviderError(f"{self.provider_name} returned None content", provider=self.provider_name)

        content = content.strip()
        if not content:
            raise LLMProviderError(f"{self.provider_name} returned empty content", provider=self.provider_name)

        return content

    def get_effective_model(self, requested_model: Optional[str] = None) -> str:
        """Get the model to use, with fallback logic"""
        if requested_model and requested_model in self.config.models:
            return requested_model

        if self.config.default_model:
            return self.config.default_model

        raise ValueError(f"No valid model available for provider {self.provider_name}")
