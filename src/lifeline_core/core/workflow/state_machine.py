"""
Investigation state machine.

InvestigationWorkflow is the only code that changes an Investigation. Every
operation follows the same shape:

1. Load the record and check status, actor and authorization
2. Do any slow work (inference) without holding anything
3. Build the new record through ``_transition`` (validated against the
   transition table) and write it with one conditional commit on the status
   that was read
4. After the commit, append messages and schedule notifications on a
   best-effort basis; the returned record carries the latest message summary

Nothing is written before step 3, so any failure up to and including the
inference call leaves the investigation untouched and the operation can be
retried.
"""

import logging
from datetime import datetime, timezone
from typing import Iterable, List, Optional, Tuple

from lifeline_core.config import WorkflowSettings, get_settings
from lifeline_core.core.fulfillment import check_fulfillment
from lifeline_core.core.interview import IntakeAnalyzer, IntakeInterviewer, count_questions, is_interview_complete
from lifeline_core.core.refinement import DiagnosticRefinementEngine
from lifeline_core.core.workflow.context import build_case_context
from lifeline_core.core.workflow.messaging import CaseMessenger
from lifeline_core.exceptions import (
    AuthorizationDenied,
    IncompleteEvidence,
    InvalidTransition,
    RefinementUnavailable,
)
from lifeline_core.infrastructure.persistence.base import summarize_message
from lifeline_core.interfaces import (
    IAccessPolicy,
    IInvestigationStore,
    INotifier,
    IPaymentLedger,
)
from lifeline_core.models import (
    INTERVIEW_QUESTION_COUNT,
    CaseMessage,
    ClinicianPlan,
    ContributedEvidence,
    FeedbackModality,
    FinalPlan,
    FollowUpRequest,
    IntakeRecord,
    Investigation,
    InvestigationStatus,
    MessageAudience,
    RefinementResult,
    StatusTransition,
    Step,
    StepType,
    TranscriptMessage,
    is_valid_transition,
)

logger = logging.getLogger(__name__)

ROLE_PATIENT = "patient"
ROLE_CLINICIAN = "clinician"
ROLE_FIELD_WORKER = "field_worker"


class InvestigationWorkflow:
    """Multi-actor workflow over durable investigations"""

    def __init__(
        self,
        store: IInvestigationStore,
        refinement_engine: DiagnosticRefinementEngine,
        access_policy: IAccessPolicy,
        notifier: Optional[INotifier] = None,
        ledger: Optional[IPaymentLedger] = None,
        analyzer: Optional[IntakeAnalyzer] = None,
        settings: Optional[WorkflowSettings] = None,
    ):
        self.store = store
        self.refinement_engine = refinement_engine
        self.access_policy = access_policy
        self.ledger = ledger
        self.analyzer = analyzer
        self.settings = settings or get_settings().workflow
        self.messenger = CaseMessenger(store, notifier, self.settings.notification_timeout)

    # ============================================================
    # Patient operations
    # ============================================================

    async def start_intake(self, patient_id: str) -> TranscriptMessage:
        """
        Charge for a new investigation and return the interview greeting.

        Raises:
            AuthorizationDenied: If the patient may not start an investigation
            InsufficientFunds: If the ledger refuses the debit
        """
        await self._authorize(patient_id, None, ROLE_PATIENT)

        cost = self.settings.investigation_cost
        if self.ledger is not None and cost > 0:
            transaction_id = await self.ledger.debit(patient_id, cost, reason="investigation")
            logger.info(f"Debited {cost} from {patient_id} for a new investigation (transaction {transaction_id})")

        return IntakeInterviewer.greeting()

    async def open_investigation(
        self,
        patient_id: str,
        patient_display_name: str,
        transcript: List[TranscriptMessage],
        image_reference: Optional[str] = None,
    ) -> Investigation:
        """
        Create an investigation from a completed intake interview.

        Raises:
            InvalidTransition: If the interview is not complete
            AuthorizationDenied: If the patient is not authorized
            InferenceUnavailable: If the configured analyzer failed
        """
        await self._authorize(patient_id, None, ROLE_PATIENT)

        if not is_interview_complete(transcript):
            raise InvalidTransition(
                f"Interview is not complete: {count_questions(transcript)} of "
                f"{INTERVIEW_QUESTION_COUNT} questions asked and answered",
                context={"questions_asked": count_questions(transcript)},
            )

        intake = IntakeRecord(transcript=transcript, image_reference=image_reference)
        if self.analyzer is not None:
            analysis = await self.analyzer.analyze(intake)
            intake = intake.model_copy(update={"analysis": analysis})

        investigation = Investigation(
            patient_id=patient_id,
            patient_display_name=patient_display_name,
            intake=intake,
            status_history=[StatusTransition(
                from_status=None,
                to_status=InvestigationStatus.UNDER_REVIEW,
                triggered_by=patient_id,
                reason="Intake interview completed",
            )],
        )
        investigation = await self.store.create(investigation)
        logger.info(f"Opened investigation {investigation.investigation_id} for patient {patient_id}")

        urgency = f" (urgency: {intake.analysis.urgency.value})" if intake.analysis else ""
        return await self._announce(
            investigation,
            (MessageAudience.CLINICIAN, f"New case from {patient_display_name} is awaiting review{urgency}."),
            (MessageAudience.PATIENT, "Your case has been sent for review. A doctor will prescribe the next steps shortly."),
        )

    # ============================================================
    # Clinician operations
    # ============================================================

    async def dispatch_field_visit(
        self,
        investigation_id: str,
        clinician_id: str,
        field_worker_id: str,
        suggested_lab_tests: Iterable[str] = (),
        preliminary_medications: Iterable[str] = (),
        note_to_field_worker: Optional[str] = None,
        required_feedback: Iterable[FeedbackModality] = (),
    ) -> Investigation:
        """
        Approve a plan and dispatch a field worker.

        Raises:
            InvalidTransition: If the case is not under review
            AuthorizationDenied: If the clinician may not review this case
            ConcurrentModification: If the case changed since it was read
        """
        investigation = await self.store.get(investigation_id)
        self._require_status(investigation, InvestigationStatus.UNDER_REVIEW, "dispatch a field visit")
        await self._authorize_clinician(investigation, clinician_id)

        plan = ClinicianPlan(
            preliminary_medications=list(preliminary_medications),
            suggested_lab_tests=list(suggested_lab_tests),
            note_to_field_worker=note_to_field_worker,
            required_feedback=set(required_feedback),
            field_worker_id=field_worker_id,
            dispatched_by=clinician_id,
        )

        updated = self._transition(
            investigation,
            InvestigationStatus.AWAITING_FIELD_VISIT,
            actor_id=clinician_id,
            reason=f"Field visit dispatched to {field_worker_id}",
            clinician_plan=plan,
            reviewing_clinician_id=clinician_id,
        )
        committed = await self._commit(updated, expected_status=InvestigationStatus.UNDER_REVIEW)

        tests = ", ".join(plan.suggested_lab_tests) or "no lab tests"
        return await self._announce(
            committed,
            (MessageAudience.FIELD_WORKER, f"New visit for {investigation.patient_display_name}: collect {tests}."),
            (MessageAudience.PATIENT, f"A doctor has reviewed your case. A nurse will visit to collect: {tests}."),
        )

    async def reject(self, investigation_id: str, clinician_id: str, note: Optional[str] = None) -> Investigation:
        """
        Close a case without investigating it.

        Raises:
            InvalidTransition: If the case is not under review
            AuthorizationDenied: If the clinician may not review this case
            ConcurrentModification: If the case changed since it was read
        """
        investigation = await self.store.get(investigation_id)
        self._require_status(investigation, InvestigationStatus.UNDER_REVIEW, "reject")
        await self._authorize_clinician(investigation, clinician_id)

        updated = self._transition(
            investigation,
            InvestigationStatus.REJECTED,
            actor_id=clinician_id,
            reason="Rejected by clinician",
            clinician_note=note,
            reviewing_clinician_id=clinician_id,
        )
        committed = await self._commit(updated, expected_status=InvestigationStatus.UNDER_REVIEW)

        message = "Your doctor has closed this case."
        if note:
            message = f"{message} Note from your doctor: {note}"
        return await self._announce(committed, (MessageAudience.PATIENT, message))

    async def request_follow_up(
        self,
        investigation_id: str,
        clinician_id: str,
        note: str,
        required_feedback: Iterable[FeedbackModality] = (),
        field_worker_id: Optional[str] = None,
        suggested_lab_tests: Optional[Iterable[str]] = None,
    ) -> Investigation:
        """
        Ask for another field visit after reviewing the latest analysis.

        The field worker defaults to the one who made the previous visit. The
        lab tests default to the additional tests the latest analysis asked
        for; pass an empty list to request feedback only.

        Raises:
            InvalidTransition: If the case is not pending final review, or the
                latest analysis already allows a final diagnosis and overriding
                that verdict is not enabled
            AuthorizationDenied: If the clinician may not review this case
            ConcurrentModification: If the case changed since it was read
        """
        investigation = await self.store.get(investigation_id)
        self._require_status(investigation, InvestigationStatus.PENDING_FINAL_REVIEW, "request a follow-up visit")
        await self._authorize_clinician(investigation, clinician_id)

        latest = investigation.latest_analysis
        if latest is not None and latest.is_final_diagnosis_possible:
            if not self.settings.allow_follow_up_override:
                raise InvalidTransition(
                    "The latest analysis allows a final diagnosis; finalize the case instead",
                    context={"investigation_id": investigation_id},
                )
            logger.warning(
                f"Clinician {clinician_id} overrode a final-diagnosis verdict on {investigation_id} "
                f"with a follow-up request"
            )

        worker = field_worker_id or self._previous_field_worker(investigation)
        if suggested_lab_tests is None:
            suggested_lab_tests = latest.next_steps.additional_lab_tests if latest is not None else []
        request = FollowUpRequest(
            note=note,
            suggested_lab_tests=list(suggested_lab_tests),
            required_feedback=set(required_feedback),
            field_worker_id=worker,
            requested_by=clinician_id,
        )

        updated = self._transition(
            investigation,
            InvestigationStatus.AWAITING_FOLLOW_UP_VISIT,
            actor_id=clinician_id,
            reason=f"Follow-up visit requested from {worker}",
            follow_up_request=request,
        )
        committed = await self._commit(updated, expected_status=InvestigationStatus.PENDING_FINAL_REVIEW)

        wanted = ", ".join([*request.suggested_lab_tests, *sorted(m.value for m in request.required_feedback)])
        return await self._announce(
            committed,
            (
                MessageAudience.FIELD_WORKER,
                f"Follow-up visit for {investigation.patient_display_name} ({wanted}): {note}",
            ),
            (MessageAudience.PATIENT, "Your doctor has requested a follow-up visit. A nurse will contact you."),
        )

    async def finalize(
        self,
        investigation_id: str,
        clinician_id: str,
        medications: Optional[List[str]] = None,
        lifestyle_changes: Optional[List[str]] = None,
        clinician_note: Optional[str] = None,
    ) -> Investigation:
        """
        Approve the diagnosis and treatment plan and complete the case.

        medications defaults to the latest analysis' medications; the approved
        conditions are always the latest analysis' potential conditions.

        Raises:
            InvalidTransition: If the case is not pending final review
            AuthorizationDenied: If the clinician may not review this case
            ConcurrentModification: If the case changed since it was read
        """
        investigation = await self.store.get(investigation_id)
        self._require_status(investigation, InvestigationStatus.PENDING_FINAL_REVIEW, "finalize")
        await self._authorize_clinician(investigation, clinician_id)

        latest = investigation.latest_analysis
        final_plan = FinalPlan(
            conditions=list(latest.potential_conditions),
            medications=list(medications) if medications is not None else list(latest.next_steps.medications),
            lifestyle_changes=list(lifestyle_changes or []),
            clinician_note=clinician_note,
            approved_by=clinician_id,
        )
        if not latest.is_final_diagnosis_possible:
            logger.info(f"Clinician {clinician_id} finalized {investigation_id} before a final-diagnosis verdict")

        updated = self._transition(
            investigation,
            InvestigationStatus.COMPLETED,
            actor_id=clinician_id,
            reason="Diagnosis and treatment plan approved",
            final_plan=final_plan,
        )
        committed = await self._commit(updated, expected_status=InvestigationStatus.PENDING_FINAL_REVIEW)

        return await self._announce(
            committed,
            (MessageAudience.PATIENT, "Your doctor has finalized your diagnosis and treatment plan."),
        )

    # ============================================================
    # Field worker operations
    # ============================================================

    async def submit_field_visit(
        self,
        investigation_id: str,
        field_worker_id: str,
        evidence: ContributedEvidence,
    ) -> Investigation:
        """
        Record the evidence of a field visit and run diagnostic refinement.

        All-or-nothing: the step, the status change and the follow-up request
        reset are written in one conditional commit after the refinement
        succeeded.

        Raises:
            InvalidTransition: If no visit is pending or the actor is not the
                dispatched field worker
            AuthorizationDenied: If the access policy refuses the actor
            IncompleteEvidence: If requested lab tests or feedback are missing
            RefinementUnavailable: If the refinement engine failed
            ConcurrentModification: If the case changed since it was read
        """
        investigation = await self.store.get(investigation_id)
        status = investigation.status

        if not status.accepts_field_submission:
            raise InvalidTransition(
                f"Cannot submit field evidence while the investigation is {status.value}",
                context={"investigation_id": investigation_id, "status": status.value},
            )
        if field_worker_id != investigation.assigned_field_worker_id:
            raise InvalidTransition(
                f"{field_worker_id} is not the field worker dispatched to this investigation",
                context={"investigation_id": investigation_id},
            )
        await self._authorize(field_worker_id, investigation, ROLE_FIELD_WORKER)

        if status == InvestigationStatus.AWAITING_FIELD_VISIT:
            plan = investigation.clinician_plan
            report = check_fulfillment(plan.suggested_lab_tests, plan.required_feedback, evidence)
            step_type = StepType.LAB_RESULT_SUBMISSION
            snapshot = None
        else:
            request = investigation.follow_up_request
            report = check_fulfillment(request.suggested_lab_tests, request.required_feedback, evidence)
            step_type = StepType.FOLLOW_UP_SUBMISSION
            snapshot = request

        if not report.satisfied:
            raise IncompleteEvidence(
                f"Submission incomplete: {report.describe()}",
                missing_lab_tests=report.missing_lab_tests,
                missing_feedback=[m.value for m in report.missing_feedback],
                context={"investigation_id": investigation_id},
            )

        analysis = await self.refinement_engine.refine(build_case_context(investigation), evidence)
        self._check_termination_coherence(analysis)

        step = Step(
            step_type=step_type,
            submitted_by=field_worker_id,
            contributed_evidence=evidence,
            ai_analysis=analysis,
            clinician_request_snapshot=snapshot,
        )
        updated = self._transition(
            investigation,
            InvestigationStatus.PENDING_FINAL_REVIEW,
            actor_id=field_worker_id,
            reason=f"{step_type.value} analysed",
            steps=[*investigation.steps, step],
            follow_up_request=None,
        )
        committed = await self._commit(updated, expected_status=status, new_step=step)

        verdict = "a final diagnosis is possible" if analysis.is_final_diagnosis_possible else "more evidence is needed"
        return await self._announce(
            committed,
            (
                MessageAudience.CLINICIAN,
                f"New evidence analysed for {investigation.patient_display_name}: {verdict} "
                f"(urgency: {analysis.urgency.value}).",
            ),
            (MessageAudience.PATIENT, "Your results have been sent to your doctor for review."),
        )

    # ============================================================
    # Reads
    # ============================================================

    async def get_investigation(self, investigation_id: str, actor_id: str, role: str) -> Investigation:
        investigation = await self.store.get(investigation_id)
        await self._authorize(actor_id, investigation, role)
        return investigation

    async def list_messages(self, investigation_id: str, actor_id: str, role: str) -> List[CaseMessage]:
        """Messages addressed to the caller's role, oldest first"""
        investigation = await self.store.get(investigation_id)
        await self._authorize(actor_id, investigation, role)
        messages = await self.store.list_messages(investigation_id)
        return [m for m in messages if m.audience.value == role]

    # ============================================================
    # Internals
    # ============================================================

    async def _authorize(self, actor_id: str, investigation: Optional[Investigation], role: str) -> None:
        if not await self.access_policy.is_authorized(actor_id, investigation, role):
            target = investigation.investigation_id if investigation else "new investigation"
            raise AuthorizationDenied(
                f"{actor_id} is not authorized as {role} on {target}",
                context={"actor_id": actor_id, "role": role},
            )

    async def _authorize_clinician(self, investigation: Investigation, clinician_id: str) -> None:
        """Reviewing rights belong to the first clinician who acted on the case"""
        reviewer = investigation.reviewing_clinician_id
        if reviewer is not None and reviewer != clinician_id:
            raise AuthorizationDenied(
                f"Investigation {investigation.investigation_id} is reviewed by another clinician",
                context={"investigation_id": investigation.investigation_id, "actor_id": clinician_id},
            )
        await self._authorize(clinician_id, investigation, ROLE_CLINICIAN)

    async def _announce(
        self,
        investigation: Investigation,
        *messages: Tuple[MessageAudience, str],
    ) -> Investigation:
        """Emit messages in order and return the record as the message log left it"""
        last: Optional[CaseMessage] = None
        for audience, content in messages:
            recorded = await self.messenger.emit(investigation.investigation_id, audience, content)
            if recorded is not None:
                last = recorded
        if last is None:
            return investigation
        return investigation.model_copy(update={
            "last_message_timestamp": last.created_at,
            "last_message_summary": summarize_message(last.content),
        })

    @staticmethod
    def _require_status(investigation: Investigation, expected: InvestigationStatus, action: str) -> None:
        if investigation.status != expected:
            raise InvalidTransition(
                f"Cannot {action} while the investigation is {investigation.status.value}",
                context={
                    "investigation_id": investigation.investigation_id,
                    "status": investigation.status.value,
                    "required_status": expected.value,
                },
            )

    @staticmethod
    def _check_termination_coherence(analysis: RefinementResult) -> None:
        if analysis.is_final_diagnosis_possible and analysis.next_steps.additional_lab_tests:
            logger.error("Refinement reported a final diagnosis while requesting more lab tests")
            raise RefinementUnavailable(
                "Refinement result is incoherent: final diagnosis with pending lab tests",
                context={"additional_lab_tests": analysis.next_steps.additional_lab_tests},
            )

    @staticmethod
    def _previous_field_worker(investigation: Investigation) -> str:
        for step in reversed(investigation.steps):
            if step.clinician_request_snapshot is not None:
                return step.clinician_request_snapshot.field_worker_id
        return investigation.clinician_plan.field_worker_id

    @staticmethod
    def _transition(
        investigation: Investigation,
        to_status: InvestigationStatus,
        actor_id: str,
        reason: str,
        **updates,
    ) -> Investigation:
        """Build the next version of the record; the stored one is untouched"""
        if not is_valid_transition(investigation.status, to_status):
            raise InvalidTransition(
                f"Invalid transition: {investigation.status.value} -> {to_status.value}",
                context={"investigation_id": investigation.investigation_id},
            )

        now = datetime.now(timezone.utc)
        transition = StatusTransition(
            from_status=investigation.status,
            to_status=to_status,
            triggered_at=now,
            triggered_by=actor_id,
            reason=reason,
        )
        data = investigation.model_dump()
        data.update(updates)
        data.update({
            "status": to_status,
            "status_history": [*investigation.status_history, transition],
            "updated_at": now,
        })
        return Investigation.model_validate(data)

    async def _commit(
        self,
        updated: Investigation,
        expected_status: InvestigationStatus,
        new_step: Optional[Step] = None,
    ) -> Investigation:
        committed = await self.store.commit(updated, expected_status=expected_status, new_step=new_step)
        last = committed.status_history[-1]
        logger.info(
            f"Investigation {committed.investigation_id}: "
            f"{expected_status.value} -> {committed.status.value} by {last.triggered_by}"
        )
        return committed
