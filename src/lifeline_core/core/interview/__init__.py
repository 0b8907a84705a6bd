"""Intake interview: question generation and initial case analysis"""

from lifeline_core.core.interview.analyzer import IntakeAnalyzer
from lifeline_core.core.interview.interviewer import (
    FINAL_INVITATION,
    GREETING,
    IntakeInterviewer,
    count_questions,
    is_interview_complete,
)

__all__ = [
    "IntakeInterviewer",
    "IntakeAnalyzer",
    "count_questions",
    "is_interview_complete",
    "GREETING",
    "FINAL_INVITATION",
]
