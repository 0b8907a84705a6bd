"""AI output models.

Every structured result that comes back from the inference service is parsed into
one of these models before the workflow looks at it. Parsing is strict: a missing
field, a wrong type or an out-of-range value is a validation error, never a
silent coercion. Callers translate validation errors into the typed
``*Unavailable`` failures.

Key Models:
- TranscriptMessage / InterviewTurn: Intake interview protocol
- IntakeAnalysis: Initial case file prepared for the reviewing clinician
- RefinementResult: One diagnostic refinement round
- ProgressAssessment: Check-in against an approved treatment plan
- CaseReview: Holistic read-only review of a whole investigation
"""

from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator


INTERVIEW_QUESTION_COUNT = 15
"""Number of interviewer questions in one intake interview (greeting excluded)."""


class UrgencyLevel(str, Enum):
    """
    Urgency of a case, re-assessed independently on every AI round.

    No ordering is enforced between rounds: urgency may rise or fall as
    evidence arrives.
    """

    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    CRITICAL = "Critical"

    @property
    def rank(self) -> int:
        """Numeric rank for sorting review queues (higher is more urgent)"""
        return [UrgencyLevel.LOW, UrgencyLevel.MEDIUM, UrgencyLevel.HIGH, UrgencyLevel.CRITICAL].index(self)


# ============================================================
# Intake Interview
# ============================================================

class TranscriptRole(str, Enum):
    PATIENT = "patient"
    INTERVIEWER = "interviewer"


class TranscriptMessage(BaseModel):
    """One message of the intake chat"""

    role: TranscriptRole
    text: str = Field(min_length=1, max_length=4000)


class InterviewTurn(BaseModel):
    """
    Interviewer's next turn.

    question_index is the 1-based count of interviewer questions issued so far,
    including this one. is_final is true exactly on the last question.
    """

    question: str = Field(min_length=1, max_length=2000)
    question_index: int = Field(ge=1, le=INTERVIEW_QUESTION_COUNT)
    is_final: bool

    @model_validator(mode='after')
    def final_only_on_last_question(self):
        """is_final iff question_index == INTERVIEW_QUESTION_COUNT"""
        if self.is_final != (self.question_index == INTERVIEW_QUESTION_COUNT):
            raise ValueError(
                f"is_final must be true exactly on question {INTERVIEW_QUESTION_COUNT} "
                f"(question_index={self.question_index}, is_final={self.is_final})"
            )
        return self


class InterviewQuestionOutput(BaseModel):
    """Raw interviewer output as returned by the inference service"""

    question: str = Field(
        min_length=1,
        max_length=2000,
        description="The single next question to ask the patient, in plain language."
    )

    @field_validator('question')
    @classmethod
    def question_not_blank(cls, v):
        if not v.strip():
            raise ValueError("question cannot be blank")
        return v.strip()


# ============================================================
# Shared Diagnostic Components
# ============================================================

class PotentialCondition(BaseModel):
    """A candidate diagnosis with its estimated likelihood"""

    condition: str = Field(min_length=1, max_length=200, description="Name of the condition.")
    probability: int = Field(
        ge=0,
        le=100,
        strict=True,
        description="Estimated probability of this condition as an integer from 0 to 100."
    )
    reasoning: str = Field(min_length=1, max_length=2000, description="Evidence-based reasoning.")


class MedicationSuggestion(BaseModel):
    """Preliminary medication for symptom relief only"""

    name: str = Field(min_length=1, max_length=200)
    dosage: str = Field(min_length=1, max_length=500, description="e.g. '200mg as needed for pain'")


class IntakeNextSteps(BaseModel):
    preliminary_medications: List[MedicationSuggestion] = Field(default_factory=list)
    suggested_lab_tests: List[str] = Field(default_factory=list)


class IntakeAnalysis(BaseModel):
    """
    Initial case file prepared from a completed interview.

    Advisory only: the reviewing clinician decides the actual dispatch plan.
    """

    analysis_summary: str = Field(min_length=1, max_length=4000)
    potential_conditions: List[PotentialCondition] = Field(min_length=1)
    suggested_next_steps: IntakeNextSteps
    justification: str = Field(min_length=1, max_length=4000)
    urgency: UrgencyLevel
    follow_up_plan: str = Field(min_length=1, max_length=1000)


# ============================================================
# Diagnostic Refinement
# ============================================================

class RefinementNextSteps(BaseModel):
    """
    What the engine wants next.

    additional_lab_tests is empty exactly when no more evidence is needed.
    When the round is final, medications is the finalized treatment plan.
    """

    additional_lab_tests: List[str] = Field(default_factory=list)
    medications: List[str] = Field(default_factory=list)

    @field_validator('additional_lab_tests', 'medications')
    @classmethod
    def no_blank_entries(cls, v):
        if any(not item.strip() for item in v):
            raise ValueError("list entries cannot be blank")
        return [item.strip() for item in v]


class RefinementResult(BaseModel):
    """
    Output of one diagnostic refinement round.

    Stored verbatim on the Step it produced. potential_conditions replaces the
    previous round's list; it is never merged.
    """

    refined_analysis: str = Field(
        min_length=1,
        description="How the new evidence updates the prior assessment."
    )
    potential_conditions: List[PotentialCondition] = Field(
        min_length=1,
        description="Full, updated list of candidate diagnoses."
    )
    next_steps: RefinementNextSteps
    is_final_diagnosis_possible: bool = Field(
        strict=True,
        description="True only if no further evidence is needed for a diagnosis."
    )
    justification: str = Field(min_length=1)
    urgency: UrgencyLevel

    @model_validator(mode='after')
    def final_round_requests_no_tests(self):
        """A final round cannot ask for more lab tests"""
        if self.is_final_diagnosis_possible and self.next_steps.additional_lab_tests:
            raise ValueError(
                "is_final_diagnosis_possible is true but additional_lab_tests is not empty: "
                f"{self.next_steps.additional_lab_tests}"
            )
        return self

    @property
    def needs_more_evidence(self) -> bool:
        return not self.is_final_diagnosis_possible

    @property
    def leading_condition(self) -> Optional[PotentialCondition]:
        """Highest-probability condition of this round"""
        if not self.potential_conditions:
            return None
        return max(self.potential_conditions, key=lambda c: c.probability)


# ============================================================
# Progress Monitoring
# ============================================================

class VitalsReading(BaseModel):
    """Patient check-in data collected after a case was finalized"""

    recorded_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    blood_pressure: Optional[str] = Field(default=None, max_length=20, description="e.g. '120/80'")
    heart_rate: Optional[int] = Field(default=None, ge=20, le=250)
    temperature_c: Optional[float] = Field(default=None, ge=25.0, le=45.0)
    blood_sugar: Optional[float] = Field(default=None, ge=0.0, description="mg/dL")
    oxygen_saturation: Optional[int] = Field(default=None, ge=0, le=100)
    symptoms: Optional[str] = Field(default=None, max_length=2000)

    @model_validator(mode='after')
    def at_least_one_reading(self):
        values = [
            self.blood_pressure, self.heart_rate, self.temperature_c,
            self.blood_sugar, self.oxygen_saturation, self.symptoms,
        ]
        if all(v is None for v in values):
            raise ValueError("At least one vital sign or a symptom description is required")
        return self


class ProgressAssessment(BaseModel):
    """
    Result of a progress check against an approved plan.

    escalate is a strict override: whatever the recommendation says, the caller
    must also notify the clinician.
    """

    progress_summary: str = Field(min_length=1)
    is_improving: bool = Field(strict=True)
    escalate: bool = Field(strict=True)
    recommendation: str = Field(min_length=1)


# ============================================================
# Comprehensive Case Review
# ============================================================

class TreatmentPlan(BaseModel):
    medications: List[str] = Field(default_factory=list)
    lifestyle_changes: List[str] = Field(default_factory=list)
    follow_up: str = Field(min_length=1, max_length=1000)


class CaseReview(BaseModel):
    """Holistic review of a whole investigation, for the clinician only"""

    holistic_summary: str = Field(min_length=1)
    final_diagnosis: List[PotentialCondition] = Field(min_length=1)
    suggested_treatment_plan: TreatmentPlan
    is_case_resolvable: bool = Field(strict=True)
