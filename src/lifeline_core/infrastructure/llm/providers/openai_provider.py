"""
OpenAI provider implementation.

Works against any OpenAI-compatible ``/chat/completions`` endpoint. Images are
passed as ``image_url`` content parts (URLs and data URIs are both accepted by
the API), structured output uses JSON mode with the schema in the prompt.
"""

import json
from typing import Any, Dict, List, Optional

import aiohttp

from .base import BaseLLMProvider, LLMProviderError, LLMResponse


class OpenAIProvider(BaseLLMProvider):
    """OpenAI LLM provider implementation"""

    @property
    def provider_name(self) -> str:
        return "openai"

    async def generate(
        self,
        prompt: str,
        media: Optional[List[str]] = None,
        response_schema: Optional[Dict[str, Any]] = None,
        model: Optional[str] = None,
        max_tokens: int = 2048,
        temperature: float = 0.2,
    ) -> LLMResponse:
        self._start_timing()
        effective_model = self.get_effective_model(model)

        headers = {
            "Authorization": f"Bearer {self.config.api_key}",
            "Content-Type": "application/json",
        }

        text = prompt
        if response_schema is not None:
            text = (
                f"{prompt}\n\nRespond with a single JSON object that conforms to this JSON schema:\n"
                f"{json.dumps(response_schema)}"
            )

        content_parts: List[Dict[str, Any]] = [{"type": "text", "text": text}]
        for reference in media or []:
            content_parts.append({"type": "image_url", "image_url": {"url": reference}})

        payload: Dict[str, Any] = {
            "model": effective_model,
            "messages": [{"role": "user", "content": content_parts}],
            "max_tokens": max_tokens,
            "temperature": temperature,
        }
        if response_schema is not None:
            payload["response_format"] = {"type": "json_object"}

        async with aiohttp.ClientSession() as session:
            async with session.post(
                f"{self.config.base_url.rstrip('/')}/chat/completions",
                headers=headers,
                json=payload,
                timeout=aiohttp.ClientTimeout(total=self.config.timeout),
            ) as response:
                if response.status != 200:
                    self._raise_for_status(response.status, await response.text())
                data = await response.json()

        if not data.get("choices"):
            raise LLMProviderError("OpenAI API returned no choices", provider=self.provider_name)

        choice = data["choices"][0]
        content = self._validate_response_content(choice["message"].get("content"))

        return LLMResponse(
            content=content,
            provider=self.provider_name,
            model=effective_model,
            tokens_used=data.get("usage", {}).get("total_tokens", 0),
            response_time_ms=self._get_response_time_ms(),
            finish_reason=choice.get("finish_reason"),
        )
