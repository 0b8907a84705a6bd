"""HTTP client for the notification service."""

from typing import Optional

import httpx

from lifeline_core.clients.base import BaseServiceClient
from lifeline_core.interfaces import INotifier
from lifeline_core.models import MessageAudience


class NotificationServiceClient(BaseServiceClient, INotifier):
    """Hands notifications to the notification service for delivery.

    Delivery (push, SMS, email) is the service's concern. Errors propagate;
    the workflow decides to drop them.
    """

    def __init__(
        self,
        base_url: str = "http://lifeline-notification-service:8000",
        timeout: float = 5.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(base_url=base_url, timeout=timeout, transport=transport)

    async def notify(self, investigation_id: str, audience: MessageAudience, message: str) -> None:
        async with self._get_client() as client:
            response = await client.post(
                f"{self.base_url}/api/v1/notifications",
                json={
                    "investigation_id": investigation_id,
                    "audience": audience.value,
                    "message": message,
                },
                headers=self._headers(),
            )
            response.raise_for_status()
