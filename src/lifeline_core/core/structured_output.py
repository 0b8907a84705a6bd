"""Fail-closed structured inference.

Every AI component asks the inference client for JSON that follows a Pydantic
model's schema and parses the answer strictly. Anything short of a fully valid
object becomes the component's typed ``*Unavailable`` error; partial or
defaulted diagnostic content is never returned.
"""

import logging
from typing import List, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from lifeline_core.exceptions import InferenceOutputError, InferenceUnavailable
from lifeline_core.interfaces import IInferenceClient

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


async def request_structured(
    inference: IInferenceClient,
    prompt: str,
    output_model: Type[ModelT],
    media: Optional[List[str]] = None,
    error_cls: Type[InferenceUnavailable] = InferenceUnavailable,
    purpose: str = "inference",
) -> ModelT:
    """Run one inference call and parse it into output_model.

    Args:
        inference: Injected inference client
        prompt: Rendered prompt
        output_model: Model the JSON must validate against
        media: Image references to attach
        error_cls: Error raised on any failure
        purpose: Short label used in logs and error messages

    Raises:
        error_cls: If the service failed or the output did not validate
    """
    try:
        raw = await inference.generate_json(
            prompt,
            media=media or None,
            response_schema=output_model.model_json_schema(),
        )
    except InferenceOutputError as e:
        logger.warning(f"{purpose}: inference returned no usable JSON: {e}")
        raise error_cls(f"{purpose} failed: no structured output", context={"reason": str(e)})
    except InferenceUnavailable as e:
        logger.warning(f"{purpose}: inference service unavailable: {e.message}")
        if isinstance(e, error_cls):
            raise
        raise error_cls(f"{purpose} failed: {e.message}", context=e.context)

    try:
        return output_model.model_validate(raw)
    except ValidationError as e:
        logger.warning(f"{purpose}: output failed validation with {e.error_count()} error(s): {e}")
        raise error_cls(
            f"{purpose} failed: output did not match {output_model.__name__}",
            context={"errors": [err["msg"] for err in e.errors()]},
        )
