"""Request bodies for the HTTP surface"""

from typing import List, Optional, Set

from pydantic import BaseModel, Field

from lifeline_core.models import FeedbackModality, TranscriptMessage


class TranscriptBody(BaseModel):
    transcript: List[TranscriptMessage] = Field(min_length=1)


class OpenInvestigationBody(BaseModel):
    patient_display_name: str = Field(min_length=1, max_length=200)
    transcript: List[TranscriptMessage] = Field(min_length=1)
    image_reference: Optional[str] = None


class DispatchBody(BaseModel):
    field_worker_id: str = Field(min_length=1)
    suggested_lab_tests: List[str] = Field(default_factory=list)
    preliminary_medications: List[str] = Field(default_factory=list)
    note_to_field_worker: Optional[str] = Field(default=None, max_length=2000)
    required_feedback: Set[FeedbackModality] = Field(default_factory=set)


class RejectBody(BaseModel):
    note: Optional[str] = Field(default=None, max_length=4000)


class FollowUpBody(BaseModel):
    note: str = Field(min_length=1, max_length=2000)
    required_feedback: Set[FeedbackModality] = Field(default_factory=set)
    field_worker_id: Optional[str] = None
    # None means the additional tests from the latest analysis
    suggested_lab_tests: Optional[List[str]] = None


class FinalizeBody(BaseModel):
    medications: Optional[List[str]] = None
    lifestyle_changes: List[str] = Field(default_factory=list)
    clinician_note: Optional[str] = Field(default=None, max_length=4000)


class GreetingResponse(BaseModel):
    greeting: TranscriptMessage


__all__ = [
    "TranscriptBody",
    "OpenInvestigationBody",
    "DispatchBody",
    "RejectBody",
    "FollowUpBody",
    "FinalizeBody",
    "GreetingResponse",
]
