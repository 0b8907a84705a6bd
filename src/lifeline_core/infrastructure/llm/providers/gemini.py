"""
Google Gemini provider implementation.

This module implements the Google Gemini LLM provider with multi-modal
capabilities: evidence images are sent as inline parts next to the prompt and
structured output is requested through ``responseSchema``.
"""

import copy
from typing import Any, Dict, List, Optional

import aiohttp

from lifeline_core.infrastructure.llm.media import fetch_inline_media
from .base import BaseLLMProvider, LLMProviderError, LLMResponse

# Keywords of the OpenAPI subset accepted by responseSchema
_SCHEMA_KEYS = {
    "type", "format", "description", "nullable", "enum", "properties",
    "required", "items", "minItems", "maxItems", "minimum", "maximum",
}

_SAFETY_SETTINGS = [
    {"category": "HARM_CATEGORY_HARASSMENT", "threshold": "BLOCK_MEDIUM_AND_ABOVE"},
    {"category": "HARM_CATEGORY_HATE_SPEECH", "threshold": "BLOCK_MEDIUM_AND_ABOVE"},
    {"category": "HARM_CATEGORY_SEXUALLY_EXPLICIT", "threshold": "BLOCK_MEDIUM_AND_ABOVE"},
    # Clinical content routinely mentions drugs and dosages
    {"category": "HARM_CATEGORY_DANGEROUS_CONTENT", "threshold": "BLOCK_ONLY_HIGH"},
]


def to_gemini_schema(schema: Dict[str, Any]) -> Dict[str, Any]:
    """Convert a Pydantic JSON schema into Gemini's responseSchema dialect.

    ``$ref``s are inlined from ``$defs``, ``Optional[X]`` (``anyOf`` with null)
    becomes ``X`` with ``nullable``, keywords outside the supported subset are
    dropped and types are upper-cased.
    """
    definitions = schema.get("$defs", {})

    def convert(node: Dict[str, Any]) -> Dict[str, Any]:
        if "$ref" in node:
            name = node["$ref"].rsplit("/", 1)[-1]
            resolved = copy.deepcopy(definitions[name])
            if "description" in node:
                resolved["description"] = node["description"]
            return convert(resolved)

        if "anyOf" in node:
            variants = [v for v in node["anyOf"] if v.get("type") != "null"]
            merged = convert(variants[0]) if variants else {"type": "STRING"}
            if len(variants) < len(node["anyOf"]):
                merged["nullable"] = True
            if "description" in node:
                merged["description"] = node["description"]
            return merged

        result = {key: value for key, value in node.items() if key in _SCHEMA_KEYS}
        if "type" in result:
            result["type"] = result["type"].upper()
        if "properties" in result:
            result["properties"] = {name: convert(prop) for name, prop in result["properties"].items()}
        if "items" in result:
            result["items"] = convert(result["items"])
        return result

    return convert(schema)


class GeminiProvider(BaseLLMProvider):
    """Google Gemini LLM provider implementation"""

    @property
    def provider_name(self) -> str:
        return "gemini"

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
        Generate content using the Gemini ``generateContent`` endpoint

        Args:
            prompt: Input prompt
            media: Image references, resolved to inline base64 parts
            response_schema: JSON schema; enables JSON mime type and responseSchema
            model: Specific Gemini model to use
            max_tokens: Maximum tokens to generate (mapped to maxOutputTokens)
            temperature: Sampling temperature (0.0-2.0)

        Returns:
            LLMResponse with generated text
        """
        self._start_timing()
        selected_model = self.get_effective_model(model)

        generation_config: Dict[str, Any] = {
            "temperature": temperature,
            "maxOutputTokens": max_tokens,
        }
        if response_schema is not None:
            generation_config["responseMimeType"] = "application/json"
            generation_config["responseSchema"] = to_gemini_schema(response_schema)

        async with aiohttp.ClientSession() as session:
            parts: List[Dict[str, Any]] = [{"text": prompt}]
            for reference in media or []:
                try:
                    inline = await fetch_inline_media(reference, session, timeout=self.config.timeout)
                except ValueError as e:
                    raise LLMProviderError(f"Cannot attach media: {e}", provider=self.provider_name)
                parts.append({"inline_data": {"mime_type": inline.mime_type, "data": inline.data_base64}})

            request_body = {
                "contents": [{"role": "user", "parts": parts}],
                "generationConfig": generation_config,
                "safetySettings": _SAFETY_SETTINGS,
            }

            url = f"{self.config.base_url.rstrip('/')}/models/{selected_model}:generateContent"

            async with session.post(
                url,
                params={"key": self.config.api_key},
                headers={"Content-Type": "application/json"},
                json=request_body,
                timeout=aiohttp.ClientTimeout(total=self.config.timeout),
            ) as response:
                if response.status != 200:
                    self._raise_for_status(response.status, await response.text())
                response_data = await response.json()

        candidates = response_data.get("candidates") or []
        if not candidates:
            block_reason = response_data.get("promptFeedback", {}).get("blockReason", "unknown")
            raise LLMProviderError(f"Gemini returned no candidates (block reason: {block_reason})", provider=self.provider_name)

        candidate = candidates[0]
        finish_reason = candidate.get("finishReason")
        if finish_reason in ("SAFETY", "BLOCKED_REASON_UNSPECIFIED", "PROHIBITED_CONTENT"):
            raise LLMProviderError(f"Gemini blocked the response ({finish_reason})", provider=self.provider_name)

        content = "".join(
            part.get("text", "") for part in candidate.get("content", {}).get("parts", [])
        )
        content = self._validate_response_content(content)

        return LLMResponse(
            content=content,
            provider=self.provider_name,
            model=selected_model,
            tokens_used=response_data.get("usageMetadata", {}).get("totalTokenCount", 0),
            response_time_ms=self._get_response_time_ms(),
            finish_reason=finish_reason,
        )
