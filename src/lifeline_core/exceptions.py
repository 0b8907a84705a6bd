"""Typed failures for the investigation workflow.

Every failure surfaced by the workflow is one of these exceptions. Callers decide
what to do from the type alone:

- InvalidTransition: actor or status precondition violated. Never retried.
- IncompleteEvidence: caller-correctable, carries the missing items.
- InferenceUnavailable / RefinementUnavailable: transient. Safe to retry because
  nothing is committed before the inference call succeeds.
- ConcurrentModification: the store rejected a conditional write. The caller
  should refresh and decide again, not retry blindly.
- AuthorizationDenied / InsufficientFunds: fatal for the request.
"""

from typing import Any, Dict, List, Optional


class LifelineError(Exception):
    """Base class for all workflow errors."""

    error_code = "LIFELINE_ERROR"
    retryable = False

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        if error_code:
            self.error_code = error_code
        self.context: Dict[str, Any] = context or {}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error_code": self.error_code,
            "message": self.message,
            "retryable": self.retryable,
            "context": self.context,
        }


class InvalidTransition(LifelineError):
    error_code = "INVALID_TRANSITION"


class IncompleteEvidence(LifelineError):
    """Submitted evidence does not cover what the clinician asked for."""

    error_code = "INCOMPLETE_EVIDENCE"

    def __init__(
        self,
        message: str,
        missing_lab_tests: Optional[List[str]] = None,
        missing_feedback: Optional[List[str]] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        self.missing_lab_tests = list(missing_lab_tests or [])
        self.missing_feedback = list(missing_feedback or [])
        merged = dict(context or {})
        merged.update({
            "missing_lab_tests": self.missing_lab_tests,
            "missing_feedback": self.missing_feedback,
        })
        super().__init__(message, context=merged)


class InferenceUnavailable(LifelineError):
    error_code = "INFERENCE_UNAVAILABLE"
    retryable = True


class RefinementUnavailable(InferenceUnavailable):
    error_code = "REFINEMENT_UNAVAILABLE"


class ConcurrentModification(LifelineError):
    error_code = "CONCURRENT_MODIFICATION"


class AuthorizationDenied(LifelineError):
    error_code = "AUTHORIZATION_DENIED"


class InsufficientFunds(LifelineError):
    error_code = "INSUFFICIENT_FUNDS"


class InvestigationNotFound(LifelineError):
    error_code = "INVESTIGATION_NOT_FOUND"


class InferenceOutputError(Exception):
    """Raised by inference clients when no usable structured output came back."""

    def __init__(self, message: str, raw_content: Optional[str] = None):
        super().__init__(message)
        self.raw_content = raw_content
