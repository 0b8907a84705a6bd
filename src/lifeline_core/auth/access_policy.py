"""Local access rules for deployments without an access service."""

import logging
from typing import Iterable, Optional

from lifeline_core.interfaces import IAccessPolicy
from lifeline_core.models import Investigation

logger = logging.getLogger(__name__)


class OwnershipAccessPolicy(IAccessPolicy):
    """Ownership-based rules.

    - patient: any patient may start a case; afterwards only its owner
    - clinician: listed clinicians (everyone when no list is given); once a
      reviewer is set, only that reviewer
    - field_worker: listed field workers (everyone when no list is given) who
      are or were dispatched to the case
    """

    def __init__(
        self,
        clinician_ids: Optional[Iterable[str]] = None,
        field_worker_ids: Optional[Iterable[str]] = None,
    ):
        self.clinician_ids = set(clinician_ids) if clinician_ids is not None else None
        self.field_worker_ids = set(field_worker_ids) if field_worker_ids is not None else None

    async def is_authorized(self, actor_id: str, investigation: Optional[Investigation], role: str) -> bool:
        if role == "patient":
            return investigation is None or investigation.patient_id == actor_id

        if role == "clinician":
            if self.clinician_ids is not None and actor_id not in self.clinician_ids:
                return False
            reviewer = investigation.reviewing_clinician_id if investigation else None
            return reviewer is None or reviewer == actor_id

        if role == "field_worker":
            if self.field_worker_ids is not None and actor_id not in self.field_worker_ids:
                return False
            return investigation is not None and actor_id in self._dispatched_workers(investigation)

        logger.warning(f"Unknown role '{role}' requested by {actor_id}")
        return False

    @staticmethod
    def _dispatched_workers(investigation: Investigation) -> set:
        workers = set()
        if investigation.clinician_plan is not None:
            workers.add(investigation.clinician_plan.field_worker_id)
        if investigation.follow_up_request is not None:
            workers.add(investigation.follow_up_request.field_worker_id)
        for step in investigation.steps:
            workers.add(step.submitted_by)
        return workers


class AllowAllAccessPolicy(IAccessPolicy):
    """Grants everything. For single-user development setups only."""

    async def is_authorized(self, actor_id: str, investigation: Optional[Investigation], role: str) -> bool:
        return True
