"""Structured-output inference client over the provider registry."""

import json
import logging
import re
from typing import Any, Dict, List, Optional

from lifeline_core.exceptions import InferenceOutputError, InferenceUnavailable
from lifeline_core.interfaces import IInferenceClient
from lifeline_core.infrastructure.llm.providers import LLMProviderError, ProviderRegistry

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL)


def extract_json_object(content: str) -> Dict[str, Any]:
    """Decode a JSON object from model output.

    Tolerates a surrounding markdown code fence; anything else that is not a
    single JSON object is rejected.

    Raises:
        InferenceOutputError: If content is not a JSON object
    """
    text = content.strip()
    match = _FENCE_RE.match(text)
    if match:
        text = match.group(1)

    try:
        decoded = json.loads(text)
    except json.JSONDecodeError as e:
        raise InferenceOutputError(f"Model output is not valid JSON: {e}", raw_content=content)

    if not isinstance(decoded, dict):
        raise InferenceOutputError(
            f"Model output is a JSON {type(decoded).__name__}, expected an object",
            raw_content=content,
        )
    return decoded


class LLMInferenceClient(IInferenceClient):
    """IInferenceClient backed by a ProviderRegistry.

    The registry is injected; nothing on the workflow path reaches for a
    module-level singleton.
    """

    def __init__(self, registry: ProviderRegistry, temperature: float = 0.2, max_tokens: int = 2048):
        self.registry = registry
        self.temperature = temperature
        self.max_tokens = max_tokens

    async def generate_json(
        self,
        prompt: str,
        media: Optional[List[str]] = None,
        response_schema: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        try:
            response = await self.registry.route_request(
                prompt,
                media=media,
                response_schema=response_schema,
                temperature=self.temperature,
                max_tokens=self.max_tokens,
            )
        except LLMProviderError as e:
            raise InferenceUnavailable(
                f"Inference service unavailable: {e}",
                context={"providers": self.registry.get_fallback_chain()},
            )

        try:
            return extract_json_object(response.content)
        except InferenceOutputError:
            logger.warning(
                f"{response.provider}/{response.model} returned unparseable output "
                f"(finish_reason={response.finish_reason}): {response.content[:200]}"
            )
            raise
