"""Holistic case review for the clinician before sign-off."""

import logging
from typing import Optional

from lifeline_core.core.structured_output import request_structured
from lifeline_core.core.workflow.context import build_case_context
from lifeline_core.exceptions import AuthorizationDenied, InvalidTransition
from lifeline_core.interfaces import IAccessPolicy, IInferenceClient, IInvestigationStore
from lifeline_core.models import CaseReview, InvestigationStatus

logger = logging.getLogger(__name__)

REVIEW_PROMPT = """You are a world-class AI diagnostician performing a final, holistic review of a patient case. You have all the information: the initial interview, the doctor's plan, the nurse reports and the lab results. Synthesize EVERYTHING into a conclusive analysis for the doctor.

**Full Investigation Case File:**
{case_context}

**Your Task:**
1. holistic_summary: A narrative of the whole case, from the initial complaint to the latest data, that a doctor can read to quickly understand the investigation.
2. final_diagnosis: Candidate conditions with an integer probability (0-100) and a conclusive reasoning citing evidence from all rounds.
3. suggested_treatment_plan: Complete plan with medications, lifestyle_changes and a follow_up schedule.
4. is_case_resolvable: true if you are confident in the diagnosis and plan, false if critical information is still missing.

Respond with a single JSON object."""


class CaseReviewer:
    """Read-only comprehensive review of one investigation"""

    def __init__(
        self,
        inference: IInferenceClient,
        store: IInvestigationStore,
        access_policy: Optional[IAccessPolicy] = None,
    ):
        self.inference = inference
        self.store = store
        self.access_policy = access_policy

    async def review(self, investigation_id: str, clinician_id: str) -> CaseReview:
        """
        Review an investigation. Never modifies it.

        Raises:
            InvalidTransition: If the case has no analysed evidence or was rejected
            AuthorizationDenied: If the clinician may not see the case
            InferenceUnavailable: If no valid review came back
        """
        investigation = await self.store.get(investigation_id)

        if self.access_policy is not None and not await self.access_policy.is_authorized(
            clinician_id, investigation, "clinician"
        ):
            raise AuthorizationDenied(
                f"{clinician_id} is not authorized on {investigation_id}",
                context={"actor_id": clinician_id, "role": "clinician"},
            )

        if investigation.status == InvestigationStatus.REJECTED or not investigation.steps:
            raise InvalidTransition(
                f"Nothing to review while the investigation is {investigation.status.value}",
                context={"investigation_id": investigation_id, "status": investigation.status.value},
            )

        review = await request_structured(
            self.inference,
            REVIEW_PROMPT.format(case_context=build_case_context(investigation)),
            CaseReview,
            purpose="Case review",
        )
        logger.info(f"Case review for {investigation_id}: resolvable={review.is_case_resolvable}")
        return review
