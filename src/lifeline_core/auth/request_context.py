"""Request context extraction from API Gateway headers.

This module provides utilities to extract actor context from X-User-* headers
added by the API Gateway after JWT validation.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import List, Optional

from fastapi import HTTPException, Request, status

logger = logging.getLogger(__name__)

KNOWN_ROLES = ("patient", "clinician", "field_worker")


@dataclass
class RequestContext:
    """Actor context extracted from API Gateway headers.

    The API Gateway validates JWTs and adds these headers after stripping any
    client-provided X-User-* headers to prevent injection.

    Attributes:
        user_id: Actor ID from X-User-ID header
        user_roles: Roles from X-User-Roles header (JSON array)
        correlation_id: Optional correlation ID for request tracing
    """

    user_id: str
    user_roles: List[str] = field(default_factory=list)
    correlation_id: Optional[str] = None

    def has_role(self, role: str) -> bool:
        return role in self.user_roles


def get_request_context(request: Request) -> RequestContext:
    """Extract request context from API Gateway headers.

    Raises:
        HTTPException: 401 if the X-User-ID header is missing
    """
    user_id = request.headers.get("X-User-ID")
    if not user_id:
        logger.error("Missing X-User-ID header in request")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="X-User-ID header required (should be added by API Gateway)",
        )

    correlation_id = request.headers.get("X-Correlation-ID")

    user_roles: List[str] = []
    roles_header = request.headers.get("X-User-Roles")
    if roles_header:
        try:
            user_roles = [r for r in json.loads(roles_header) if r in KNOWN_ROLES]
        except (json.JSONDecodeError, TypeError):
            logger.warning(f"Failed to parse X-User-Roles header: {roles_header}")

    return RequestContext(
        user_id=user_id,
        user_roles=user_roles,
        correlation_id=correlation_id,
    )


def require_role(context: RequestContext, role: str) -> None:
    """Raise 403 unless the gateway granted the role.

    Raises:
        HTTPException: 403 if the role is missing
    """
    if not context.has_role(role):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Role '{role}' required",
        )
