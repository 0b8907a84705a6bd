"""Lifeline Core

Investigation models, workflow and AI inference for the Lifeline diagnostic
service.
"""

__version__ = "0.1.0"

# Models and errors have no internal dependencies
from lifeline_core.models import (
    ContributedEvidence,
    Investigation,
    InvestigationStatus,
    Step,
    StepType,
)
from lifeline_core.exceptions import (
    AuthorizationDenied,
    ConcurrentModification,
    IncompleteEvidence,
    InferenceUnavailable,
    InsufficientFunds,
    InvalidTransition,
    InvestigationNotFound,
    LifelineError,
    RefinementUnavailable,
)


# The workflow and app pull in the inference and storage stacks, so load them lazily
def __getattr__(name):
    """Lazy import for the workflow and application factory."""
    if name == "InvestigationWorkflow":
        from lifeline_core.core.workflow import InvestigationWorkflow
        return InvestigationWorkflow
    if name == "create_app":
        from lifeline_core.api import create_app
        return create_app
    raise AttributeError(f"module '{__name__}' has no attribute '{name}'")


__all__ = [
    # Models
    "Investigation", "InvestigationStatus", "Step", "StepType", "ContributedEvidence",
    # Errors
    "LifelineError", "InvalidTransition", "IncompleteEvidence", "InferenceUnavailable",
    "RefinementUnavailable", "ConcurrentModification", "AuthorizationDenied",
    "InsufficientFunds", "InvestigationNotFound",
    # Lazy loaded
    "InvestigationWorkflow", "create_app",
]
