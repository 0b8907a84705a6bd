"""Investigation data models.

This module defines the durable case record for one patient's diagnostic
episode, from the completed intake interview to the clinician's final sign-off.

Key Models:
- Investigation: Aggregate root
- InvestigationStatus: Closed lifecycle status set with an explicit transition table
- StatusTransition: Immutable audit record of one status change
- ClinicianPlan / FollowUpRequest: What the clinician asked the field worker to collect
- Step: One immutable round of submitted evidence plus the AI analysis it produced
- CaseMessage: Entry of the append-only notification/message side channel

Lifecycle:
  UNDER_REVIEW → AWAITING_FIELD_VISIT → PENDING_FINAL_REVIEW → COMPLETED (terminal)
              ↘ REJECTED (terminal)       ⇅
                                 AWAITING_FOLLOW_UP_VISIT

Only PENDING_FINAL_REVIEW ⇄ AWAITING_FOLLOW_UP_VISIT may repeat. Every other
transition is one-directional. Investigations are never deleted.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Dict, FrozenSet, List, Optional, Set
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from lifeline_core.models.analysis import (
    IntakeAnalysis,
    PotentialCondition,
    RefinementResult,
    TranscriptMessage,
)


# ============================================================
# Status & Lifecycle
# ============================================================

class InvestigationStatus(str, Enum):
    """
    Investigation lifecycle status.

    Exactly one status is current. Terminal States: COMPLETED, REJECTED.
    """

    UNDER_REVIEW = "under_review"
    """Interview finished, waiting for a clinician to dispatch or reject."""

    AWAITING_FIELD_VISIT = "awaiting_field_visit"
    """Clinician dispatched a field worker with a lab-test plan."""

    AWAITING_FOLLOW_UP_VISIT = "awaiting_follow_up_visit"
    """Clinician asked for another visit (feedback only, no new lab tests)."""

    PENDING_FINAL_REVIEW = "pending_final_review"
    """New evidence was analysed and waits for the clinician."""

    COMPLETED = "completed"
    """TERMINAL: clinician finalized the diagnosis and treatment plan."""

    REJECTED = "rejected"
    """TERMINAL: clinician closed the case without investigating."""

    @property
    def is_terminal(self) -> bool:
        return not VALID_TRANSITIONS[self]

    @property
    def accepts_field_submission(self) -> bool:
        """Statuses in which a dispatched field worker may submit evidence"""
        return self in (
            InvestigationStatus.AWAITING_FIELD_VISIT,
            InvestigationStatus.AWAITING_FOLLOW_UP_VISIT,
        )

    @property
    def display_label(self) -> str:
        """Patient-facing label for conversation lists"""
        return STATUS_LABELS[self]


VALID_TRANSITIONS: Dict[InvestigationStatus, FrozenSet[InvestigationStatus]] = {
    InvestigationStatus.UNDER_REVIEW: frozenset({
        InvestigationStatus.AWAITING_FIELD_VISIT,
        InvestigationStatus.REJECTED,
    }),
    InvestigationStatus.AWAITING_FIELD_VISIT: frozenset({
        InvestigationStatus.PENDING_FINAL_REVIEW,
    }),
    InvestigationStatus.AWAITING_FOLLOW_UP_VISIT: frozenset({
        InvestigationStatus.PENDING_FINAL_REVIEW,
    }),
    InvestigationStatus.PENDING_FINAL_REVIEW: frozenset({
        InvestigationStatus.AWAITING_FOLLOW_UP_VISIT,
        InvestigationStatus.COMPLETED,
    }),
    InvestigationStatus.COMPLETED: frozenset(),
    InvestigationStatus.REJECTED: frozenset(),
}

STATUS_LABELS: Dict[InvestigationStatus, str] = {
    InvestigationStatus.UNDER_REVIEW: "Awaiting Doctor Review",
    InvestigationStatus.AWAITING_FIELD_VISIT: "Awaiting Nurse Visit",
    InvestigationStatus.AWAITING_FOLLOW_UP_VISIT: "Follow-up Visit Pending",
    InvestigationStatus.PENDING_FINAL_REVIEW: "Doctor Reviewing Results",
    InvestigationStatus.COMPLETED: "Case Complete",
    InvestigationStatus.REJECTED: "Case Closed",
}


def is_valid_transition(from_status: InvestigationStatus, to_status: InvestigationStatus) -> bool:
    """
    Validate status transition.

    Valid Transitions:
    - UNDER_REVIEW → AWAITING_FIELD_VISIT | REJECTED
    - AWAITING_FIELD_VISIT → PENDING_FINAL_REVIEW
    - AWAITING_FOLLOW_UP_VISIT → PENDING_FINAL_REVIEW
    - PENDING_FINAL_REVIEW → AWAITING_FOLLOW_UP_VISIT | COMPLETED

    Invalid:
    - COMPLETED → * (terminal)
    - REJECTED → * (terminal)
    """
    return to_status in VALID_TRANSITIONS[from_status]


class StatusTransition(BaseModel):
    """
    Record of one status change.
    Provides audit trail for the investigation lifecycle.
    """

    model_config = ConfigDict(frozen=True)

    from_status: Optional[InvestigationStatus] = Field(
        description="Status before transition (None for creation)"
    )

    to_status: InvestigationStatus = Field(
        description="Status after transition"
    )

    triggered_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When transition occurred"
    )

    triggered_by: str = Field(
        min_length=1,
        description="Actor ID that triggered the transition"
    )

    reason: str = Field(
        default="",
        max_length=500,
        description="Human-readable reason for transition"
    )

    @model_validator(mode='after')
    def validate_transition(self):
        """Ensure transition is valid"""
        if self.from_status is None:
            if self.to_status != InvestigationStatus.UNDER_REVIEW:
                raise ValueError(f"Investigations are created in UNDER_REVIEW, not {self.to_status}")
        elif not is_valid_transition(self.from_status, self.to_status):
            raise ValueError(f"Invalid transition: {self.from_status} → {self.to_status}")
        return self


# ============================================================
# Clinician Requests
# ============================================================

class FeedbackModality(str, Enum):
    """Kinds of field report a clinician can require"""

    PICTURES = "pictures"
    VIDEOS = "videos"
    TEXT = "text"


def _clean_lab_tests(names: List[str]) -> List[str]:
    """Strip names and reject blanks and duplicates"""
    cleaned = [name.strip() for name in names]
    if any(not name for name in cleaned):
        raise ValueError("Lab test names cannot be blank")
    if len(set(cleaned)) != len(cleaned):
        raise ValueError(f"Duplicate lab tests requested: {cleaned}")
    return cleaned


class ClinicianPlan(BaseModel):
    """
    Dispatch plan for the first field visit.

    Frozen once dispatched: suggested_lab_tests can only change by replacing the
    whole plan, never by mutating it.
    """

    model_config = ConfigDict(frozen=True)

    preliminary_medications: List[str] = Field(
        default_factory=list,
        description="Symptom relief only while the investigation is ongoing"
    )

    suggested_lab_tests: List[str] = Field(
        default_factory=list,
        description="Lab tests the field worker must collect"
    )

    note_to_field_worker: Optional[str] = Field(default=None, max_length=2000)

    required_feedback: Set[FeedbackModality] = Field(default_factory=set)

    field_worker_id: str = Field(
        min_length=1,
        description="The only field worker allowed to submit for this visit"
    )

    dispatched_by: str = Field(min_length=1)

    dispatched_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @field_validator('suggested_lab_tests')
    @classmethod
    def lab_tests_unique(cls, v):
        return _clean_lab_tests(v)

    @model_validator(mode='after')
    def requests_something(self):
        if not self.suggested_lab_tests and not self.required_feedback:
            raise ValueError("A dispatch plan must request at least one lab test or feedback modality")
        return self


class FollowUpRequest(BaseModel):
    """
    Request for another field visit.

    suggested_lab_tests usually carries the additional tests asked for by the
    latest refinement round; it replaces the dispatch plan's tests for this visit.
    """

    model_config = ConfigDict(frozen=True)

    note: str = Field(min_length=1, max_length=2000)

    suggested_lab_tests: List[str] = Field(default_factory=list)

    required_feedback: Set[FeedbackModality] = Field(default_factory=set)

    field_worker_id: str = Field(min_length=1)

    requested_by: str = Field(min_length=1)

    requested_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @field_validator('suggested_lab_tests')
    @classmethod
    def lab_tests_unique(cls, v):
        return _clean_lab_tests(v)

    @model_validator(mode='after')
    def requests_something(self):
        if not self.suggested_lab_tests and not self.required_feedback:
            raise ValueError("A follow-up request must ask for at least one lab test or feedback modality")
        return self


# ============================================================
# Evidence & Steps
# ============================================================

class LabResult(BaseModel):
    test_name: str = Field(min_length=1, max_length=200)
    # Data URIs carry the whole photo, so no length cap
    image_reference: str = Field(
        min_length=1,
        description="Storage reference (URL, object key or data URI) of the result image"
    )

    @field_validator('test_name')
    @classmethod
    def test_name_stripped(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("Lab test name cannot be blank")
        return v


class FieldReport(BaseModel):
    """Free-form report from the field worker"""

    text: Optional[str] = Field(default=None, max_length=8000)
    picture_refs: List[str] = Field(default_factory=list)
    video_refs: List[str] = Field(default_factory=list)

    @property
    def provided_modalities(self) -> Set[FeedbackModality]:
        provided: Set[FeedbackModality] = set()
        if self.text and self.text.strip():
            provided.add(FeedbackModality.TEXT)
        if any(ref.strip() for ref in self.picture_refs):
            provided.add(FeedbackModality.PICTURES)
        if any(ref.strip() for ref in self.video_refs):
            provided.add(FeedbackModality.VIDEOS)
        return provided


class ContributedEvidence(BaseModel):
    """Evidence bundle submitted by a field worker for one round"""

    lab_results: List[LabResult] = Field(default_factory=list)
    field_report: Optional[FieldReport] = None

    @property
    def is_empty(self) -> bool:
        return not self.lab_results and (
            self.field_report is None or not self.field_report.provided_modalities
        )

    @property
    def media_references(self) -> List[str]:
        """Image references forwarded to the inference service"""
        refs = [result.image_reference for result in self.lab_results]
        if self.field_report:
            refs.extend(ref for ref in self.field_report.picture_refs if ref.strip())
        return refs


class StepType(str, Enum):
    """Tagged variant of a Step"""

    LAB_RESULT_SUBMISSION = "lab_result_submission"
    """Round triggered by the dispatched field visit."""

    FOLLOW_UP_SUBMISSION = "follow_up_submission"
    """Round triggered by a clinician follow-up request."""


class Step(BaseModel):
    """
    One immutable round of evidence plus AI analysis.

    ai_analysis is stored verbatim for audit; clinician_request_snapshot embeds
    the follow-up request that triggered the round so the trail is self-contained.
    """

    model_config = ConfigDict(frozen=True)

    step_id: str = Field(
        default_factory=lambda: f"step_{uuid4().hex[:12]}",
        pattern=r"^step_[a-f0-9]{12}$"
    )

    step_type: StepType

    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    submitted_by: str = Field(min_length=1)

    contributed_evidence: ContributedEvidence

    ai_analysis: RefinementResult

    clinician_request_snapshot: Optional[FollowUpRequest] = None

    @model_validator(mode='after')
    def snapshot_matches_type(self):
        """Follow-up rounds carry their request snapshot, field visits do not"""
        is_follow_up = self.step_type == StepType.FOLLOW_UP_SUBMISSION
        if is_follow_up != (self.clinician_request_snapshot is not None):
            raise ValueError(
                f"{self.step_type.value} steps "
                f"{'require' if is_follow_up else 'cannot carry'} a clinician request snapshot"
            )
        return self


# ============================================================
# Intake & Final Plan
# ============================================================

class IntakeRecord(BaseModel):
    """The completed interview that opened the investigation"""

    transcript: List[TranscriptMessage] = Field(min_length=1)
    image_reference: Optional[str] = None
    analysis: Optional[IntakeAnalysis] = None

    def as_text(self) -> str:
        """Transcript rendered the way the clinician reads it"""
        speaker = {"patient": "Patient", "interviewer": "AI Doctor"}
        return "\n\n".join(f"{speaker[m.role.value]}: {m.text}" for m in self.transcript)


class FinalPlan(BaseModel):
    """Diagnosis and treatment plan approved by the clinician"""

    model_config = ConfigDict(frozen=True)

    conditions: List[PotentialCondition] = Field(default_factory=list)
    medications: List[str] = Field(default_factory=list)
    lifestyle_changes: List[str] = Field(default_factory=list)
    clinician_note: Optional[str] = Field(default=None, max_length=4000)
    approved_by: str = Field(min_length=1)
    approved_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


# ============================================================
# Messages (side channel)
# ============================================================

class MessageAudience(str, Enum):
    PATIENT = "patient"
    CLINICIAN = "clinician"
    FIELD_WORKER = "field_worker"


class CaseMessage(BaseModel):
    """Entry of the append-only per-investigation message log"""

    model_config = ConfigDict(frozen=True)

    message_id: str = Field(default_factory=lambda: f"msg_{uuid4().hex[:12]}")
    investigation_id: str
    role: str = Field(description="system | patient | clinician | field_worker")
    audience: MessageAudience
    content: str = Field(min_length=1, max_length=4000)
    author_id: str = Field(default="system")
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


# ============================================================
# Investigation (aggregate root)
# ============================================================

class Investigation(BaseModel):
    """
    Root investigation entity.
    Mutated only through InvestigationWorkflow; never deleted.
    """

    # ============================================================
    # Core Identity
    # ============================================================
    investigation_id: str = Field(
        default_factory=lambda: f"inv_{uuid4().hex[:12]}",
        pattern=r"^inv_[a-f0-9]{12}$"
    )

    patient_id: str = Field(min_length=1, max_length=255)

    patient_display_name: str = Field(min_length=1, max_length=200)

    # ============================================================
    # Status
    # ============================================================
    status: InvestigationStatus = Field(default=InvestigationStatus.UNDER_REVIEW)

    status_history: List[StatusTransition] = Field(default_factory=list)

    reviewing_clinician_id: Optional[str] = Field(
        default=None,
        description="Set once, by the first clinician who acts on the case"
    )

    # ============================================================
    # Clinician Requests
    # ============================================================
    clinician_plan: Optional[ClinicianPlan] = None

    follow_up_request: Optional[FollowUpRequest] = None

    clinician_note: Optional[str] = Field(
        default=None,
        max_length=4000,
        description="Note shown to the patient when the case is rejected"
    )

    final_plan: Optional[FinalPlan] = None

    # ============================================================
    # Evidence
    # ============================================================
    intake: IntakeRecord

    steps: List[Step] = Field(
        default_factory=list,
        description="Append-only; insertion order is chronological order"
    )

    # ============================================================
    # Conversation List Display
    # ============================================================
    last_message_timestamp: Optional[datetime] = None

    last_message_summary: Optional[str] = Field(default=None, max_length=500)

    # ============================================================
    # Timestamps
    # ============================================================
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    # ============================================================
    # Computed Properties
    # ============================================================
    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @property
    def latest_step(self) -> Optional[Step]:
        return self.steps[-1] if self.steps else None

    @property
    def latest_analysis(self) -> Optional[RefinementResult]:
        step = self.latest_step
        return step.ai_analysis if step else None

    @property
    def assigned_field_worker_id(self) -> Optional[str]:
        """Field worker currently allowed to submit, if any"""
        if self.status == InvestigationStatus.AWAITING_FIELD_VISIT and self.clinician_plan:
            return self.clinician_plan.field_worker_id
        if self.status == InvestigationStatus.AWAITING_FOLLOW_UP_VISIT and self.follow_up_request:
            return self.follow_up_request.field_worker_id
        return None

    @property
    def follow_up_cycles(self) -> int:
        return sum(1 for s in self.steps if s.step_type == StepType.FOLLOW_UP_SUBMISSION)

    # ============================================================
    # Validation
    # ============================================================
    @field_validator('steps')
    @classmethod
    def steps_chronological(cls, v):
        """Steps must be in insertion (chronological) order"""
        for earlier, later in zip(v, v[1:]):
            if earlier.timestamp > later.timestamp:
                raise ValueError("Steps must be chronologically ordered")
        return v

    @field_validator('status_history')
    @classmethod
    def status_history_chained(cls, v):
        """Each transition starts where the previous one ended"""
        for earlier, later in zip(v, v[1:]):
            if earlier.to_status != later.from_status:
                raise ValueError(
                    f"Status history is broken: {earlier.to_status} is followed by a "
                    f"transition from {later.from_status}"
                )
            if earlier.triggered_at > later.triggered_at:
                raise ValueError("Status history must be chronologically ordered")
        return v

    @model_validator(mode='after')
    def validate_status_requirements(self) -> 'Investigation':
        """Enforce per-status data requirements"""
        status = self.status

        if status in (
            InvestigationStatus.PENDING_FINAL_REVIEW,
            InvestigationStatus.AWAITING_FOLLOW_UP_VISIT,
            InvestigationStatus.COMPLETED,
        ) and not self.steps:
            raise ValueError(f"{status.value} requires at least one step")

        if status == InvestigationStatus.AWAITING_FIELD_VISIT and self.clinician_plan is None:
            raise ValueError("AWAITING_FIELD_VISIT requires a clinician plan")

        if status == InvestigationStatus.AWAITING_FOLLOW_UP_VISIT and self.follow_up_request is None:
            raise ValueError("AWAITING_FOLLOW_UP_VISIT requires a follow-up request")

        if status != InvestigationStatus.AWAITING_FOLLOW_UP_VISIT and self.follow_up_request is not None:
            raise ValueError(f"follow_up_request can only be set in AWAITING_FOLLOW_UP_VISIT (current: {status.value})")

        if status == InvestigationStatus.COMPLETED and self.final_plan is None:
            raise ValueError("COMPLETED requires a final plan")

        if status != InvestigationStatus.COMPLETED and self.final_plan is not None:
            raise ValueError(f"final_plan can only be set when COMPLETED (current: {status.value})")

        if self.status_history and self.status_history[-1].to_status != status:
            raise ValueError(
                f"Status history ends in {self.status_history[-1].to_status.value} "
                f"but status is {status.value}"
            )

        return self

    @model_validator(mode='after')
    def validate_timestamp_ordering(self) -> 'Investigation':
        if self.created_at > self.updated_at:
            raise ValueError(
                f"created_at ({self.created_at}) cannot be after updated_at ({self.updated_at})"
            )
        return self
