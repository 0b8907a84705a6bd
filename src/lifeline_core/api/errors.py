"""Mapping of workflow errors to HTTP responses"""

import logging
from typing import Dict, Type

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from lifeline_core.exceptions import (
    AuthorizationDenied,
    ConcurrentModification,
    IncompleteEvidence,
    InferenceUnavailable,
    InsufficientFunds,
    InvalidTransition,
    InvestigationNotFound,
    LifelineError,
)

logger = logging.getLogger(__name__)

ERROR_STATUS: Dict[Type[LifelineError], int] = {
    InvalidTransition: status.HTTP_409_CONFLICT,
    IncompleteEvidence: status.HTTP_422_UNPROCESSABLE_ENTITY,
    InferenceUnavailable: status.HTTP_503_SERVICE_UNAVAILABLE,
    ConcurrentModification: status.HTTP_409_CONFLICT,
    AuthorizationDenied: status.HTTP_403_FORBIDDEN,
    InsufficientFunds: status.HTTP_402_PAYMENT_REQUIRED,
    InvestigationNotFound: status.HTTP_404_NOT_FOUND,
}


def status_for(exc: LifelineError) -> int:
    """Most specific mapped status for an error (subclasses inherit)"""
    for cls in type(exc).__mro__:
        if cls in ERROR_STATUS:
            return ERROR_STATUS[cls]
    return status.HTTP_500_INTERNAL_SERVER_ERROR


async def lifeline_error_handler(request: Request, exc: LifelineError) -> JSONResponse:
    code = status_for(exc)
    if code >= 500:
        logger.warning(f"{request.method} {request.url.path} failed: {exc.error_code} {exc.message}")
    else:
        logger.info(f"{request.method} {request.url.path} rejected: {exc.error_code} {exc.message}")

    headers = {"Retry-After": "5"} if exc.retryable else None
    return JSONResponse(status_code=code, content=exc.to_dict(), headers=headers)


async def validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error_code": "INVALID_INPUT",
            "message": "Request data failed validation",
            "retryable": False,
            "context": {"errors": [err["msg"] for err in exc.errors()]},
        },
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(LifelineError, lifeline_error_handler)
    app.add_exception_handler(ValidationError, validation_error_handler)
