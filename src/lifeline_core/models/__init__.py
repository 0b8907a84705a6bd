"""
Shared data models for the Lifeline investigation workflow.

This package provides the Pydantic models for the investigation record and for
every structured AI output the workflow consumes.
"""

from lifeline_core.models.analysis import (
    INTERVIEW_QUESTION_COUNT,
    CaseReview,
    IntakeAnalysis,
    IntakeNextSteps,
    InterviewQuestionOutput,
    InterviewTurn,
    MedicationSuggestion,
    PotentialCondition,
    ProgressAssessment,
    RefinementNextSteps,
    RefinementResult,
    TranscriptMessage,
    TranscriptRole,
    TreatmentPlan,
    UrgencyLevel,
    VitalsReading,
)
from lifeline_core.models.investigation import (
    STATUS_LABELS,
    VALID_TRANSITIONS,
    CaseMessage,
    ClinicianPlan,
    ContributedEvidence,
    FeedbackModality,
    FieldReport,
    FinalPlan,
    FollowUpRequest,
    IntakeRecord,
    Investigation,
    InvestigationStatus,
    LabResult,
    MessageAudience,
    StatusTransition,
    Step,
    StepType,
    is_valid_transition,
)

__all__ = [
    # Investigation
    "Investigation", "InvestigationStatus", "StatusTransition",
    "VALID_TRANSITIONS", "STATUS_LABELS", "is_valid_transition",
    # Clinician requests
    "ClinicianPlan", "FollowUpRequest", "FeedbackModality", "FinalPlan",
    # Evidence
    "Step", "StepType", "ContributedEvidence", "LabResult", "FieldReport",
    "IntakeRecord",
    # Messages
    "CaseMessage", "MessageAudience",
    # AI outputs
    "INTERVIEW_QUESTION_COUNT", "TranscriptMessage", "TranscriptRole",
    "InterviewTurn", "InterviewQuestionOutput",
    "IntakeAnalysis", "IntakeNextSteps", "MedicationSuggestion",
    "PotentialCondition", "RefinementResult", "RefinementNextSteps",
    "UrgencyLevel", "VitalsReading", "ProgressAssessment",
    "CaseReview", "TreatmentPlan",
]
