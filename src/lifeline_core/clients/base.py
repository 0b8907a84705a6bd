"""Base service client for calls to collaborator services."""

import json
import logging
from typing import List, Optional

import httpx

logger = logging.getLogger(__name__)


class BaseServiceClient:
    """Base class for internal service-to-service HTTP clients.

    Services call each other directly without JWT authentication.
    Actor context is propagated via X-User-* headers.

    Usage:
        class LedgerClient(BaseServiceClient):
            async def balance(self, user_id: str) -> int:
                async with self._get_client() as client:
                    response = await client.get(
                        f"{self.base_url}/api/v1/accounts/{user_id}",
                        headers=self._headers(user_id=user_id)
                    )
                    response.raise_for_status()
                    return response.json()["balance"]
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize service client.

        Args:
            base_url: Service base URL (e.g., http://lifeline-ledger-service:8000)
            timeout: Request timeout in seconds (default: 10.0)
            transport: Optional httpx transport (tests use httpx.MockTransport)
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

        logger.info(f"Initialized {self.__class__.__name__} with base_url={base_url}")

    def _headers(
        self,
        user_id: Optional[str] = None,
        user_roles: Optional[List[str]] = None,
        correlation_id: Optional[str] = None,
    ) -> dict:
        """Generate request headers with actor context.

        Args:
            user_id: Actor ID for X-User-ID header
            user_roles: Roles for X-User-Roles header (JSON array)
            correlation_id: Optional correlation ID for request tracing
        """
        headers = {
            "Content-Type": "application/json",
        }

        if user_id:
            headers["X-User-ID"] = user_id

        if user_roles:
            headers["X-User-Roles"] = json.dumps(user_roles)

        if correlation_id:
            headers["X-Correlation-ID"] = correlation_id

        return headers

    def _get_client(self) -> httpx.AsyncClient:
        """Get HTTP client instance with configured timeout.

        Returns:
            Configured AsyncClient ready for use with async context manager
        """
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport)
