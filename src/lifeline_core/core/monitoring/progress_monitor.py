"""
Post-treatment progress monitoring.

Compares a patient's new vitals and symptoms with the approved treatment plan
of a finalized investigation. Read-only with respect to the investigation: it
never changes status. When the assessment asks for escalation the reviewing
clinician is always notified, whatever the recommendation text says.
"""

import json
import logging
from typing import Optional

from lifeline_core.core.structured_output import request_structured
from lifeline_core.core.workflow.context import build_case_context
from lifeline_core.core.workflow.messaging import CaseMessenger
from lifeline_core.exceptions import AuthorizationDenied, InvalidTransition
from lifeline_core.interfaces import IAccessPolicy, IInferenceClient, IInvestigationStore, INotifier
from lifeline_core.models import Investigation, MessageAudience, ProgressAssessment, VitalsReading

logger = logging.getLogger(__name__)

PROGRESS_PROMPT = """You are an AI medical assistant from Lifeline AI responsible for patient follow-up.
Analyze the patient's new health data in the context of their diagnosis and approved treatment plan.

**Original Case (diagnosis and approved plan):**
{snapshot}

**Patient's New Follow-Up Data:**
{vitals}

**Analysis Instructions:**
1. Compare the new data with the case. Are vitals stabilizing, improving or worsening? Are symptoms subsiding?
2. progress_summary: A brief summary of the progress.
3. is_improving: true only if there is clear positive progress.
4. escalate: true if the data shows significant decline or a new alarming symptom (e.g. a sharp rise in blood pressure, chest pain, difficulty breathing) that needs the doctor's immediate attention.
5. recommendation: A short recommendation for the patient. If escalate is true it must say that their doctor has been notified.

Respond with a single JSON object."""


class ProgressMonitor:
    """Assesses check-ins against finalized investigations"""

    def __init__(
        self,
        inference: IInferenceClient,
        store: Optional[IInvestigationStore] = None,
        access_policy: Optional[IAccessPolicy] = None,
        notifier: Optional[INotifier] = None,
        notification_timeout: float = 5.0,
    ):
        self.inference = inference
        self.store = store
        self.access_policy = access_policy
        self.messenger = CaseMessenger(store, notifier, notification_timeout) if store is not None else None

    async def assess(self, prior_case_snapshot: str, new_vitals: VitalsReading) -> ProgressAssessment:
        """
        Assess one check-in.

        Args:
            prior_case_snapshot: Rendered finalized case, including the approved plan
            new_vitals: The patient's latest readings

        Raises:
            InferenceUnavailable: If no valid assessment came back
        """
        prompt = PROGRESS_PROMPT.format(
            snapshot=prior_case_snapshot,
            vitals=json.dumps(new_vitals.model_dump(mode="json", exclude_none=True), indent=2),
        )
        return await request_structured(
            self.inference,
            prompt,
            ProgressAssessment,
            purpose="Progress assessment",
        )

    async def check_in(self, investigation_id: str, patient_id: str, vitals: VitalsReading) -> ProgressAssessment:
        """
        Load a finalized investigation, assess the check-in and route the result.

        Raises:
            InvalidTransition: If the investigation has no approved plan yet
            AuthorizationDenied: If the patient may not access the investigation
            InferenceUnavailable: If no valid assessment came back
        """
        if self.store is None:
            raise RuntimeError("ProgressMonitor.check_in requires a store")

        investigation = await self.store.get(investigation_id)
        await self._authorize(patient_id, investigation)

        if investigation.final_plan is None:
            raise InvalidTransition(
                f"Progress can only be monitored once a plan is approved (status: {investigation.status.value})",
                context={"investigation_id": investigation_id, "status": investigation.status.value},
            )

        assessment = await self.assess(build_case_context(investigation), vitals)
        logger.info(
            f"Check-in on {investigation_id}: improving={assessment.is_improving}, escalate={assessment.escalate}"
        )

        await self.messenger.emit(investigation_id, MessageAudience.PATIENT, assessment.recommendation)
        if assessment.escalate:
            await self.messenger.emit(
                investigation_id,
                MessageAudience.CLINICIAN,
                f"Attention needed for {investigation.patient_display_name}: {assessment.progress_summary}",
            )
        return assessment

    async def _authorize(self, patient_id: str, investigation: Investigation) -> None:
        if self.access_policy is None:
            return
        if not await self.access_policy.is_authorized(patient_id, investigation, "patient"):
            raise AuthorizationDenied(
                f"{patient_id} is not authorized on {investigation.investigation_id}",
                context={"actor_id": patient_id, "role": "patient"},
            )
