"""Investigation state machine"""

from lifeline_core.core.workflow.context import build_case_context
from lifeline_core.core.workflow.messaging import CaseMessenger
from lifeline_core.core.workflow.state_machine import (
    ROLE_CLINICIAN,
    ROLE_FIELD_WORKER,
    ROLE_PATIENT,
    InvestigationWorkflow,
)

__all__ = [
    "InvestigationWorkflow",
    "CaseMessenger",
    "build_case_context",
    "ROLE_PATIENT",
    "ROLE_CLINICIAN",
    "ROLE_FIELD_WORKER",
]
