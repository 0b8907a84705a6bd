"""HTTP client for the identity/access service."""

import logging
from typing import Optional

import httpx

from lifeline_core.clients.base import BaseServiceClient
from lifeline_core.interfaces import IAccessPolicy
from lifeline_core.models import Investigation

logger = logging.getLogger(__name__)


class AccessServiceClient(BaseServiceClient, IAccessPolicy):
    """Asks the access service whether an actor may act on an investigation.

    The request carries the case facts the service needs (owner, reviewer,
    assigned field worker) so it does not have to read the investigation store.
    """

    def __init__(
        self,
        base_url: str = "http://lifeline-access-service:8000",
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(base_url=base_url, timeout=timeout, transport=transport)

    async def is_authorized(self, actor_id: str, investigation: Optional[Investigation], role: str) -> bool:
        payload = {"actor_id": actor_id, "role": role}
        if investigation is not None:
            payload.update({
                "investigation_id": investigation.investigation_id,
                "patient_id": investigation.patient_id,
                "reviewing_clinician_id": investigation.reviewing_clinician_id,
                "assigned_field_worker_id": investigation.assigned_field_worker_id,
            })

        async with self._get_client() as client:
            response = await client.post(
                f"{self.base_url}/api/v1/access/check",
                json=payload,
                headers=self._headers(user_id=actor_id, user_roles=[role]),
            )

        if response.status_code == httpx.codes.FORBIDDEN:
            return False
        response.raise_for_status()

        allowed = bool(response.json().get("allowed", False))
        if not allowed:
            logger.info(f"Access service denied {actor_id} as {role}")
        return allowed
