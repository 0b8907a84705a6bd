"""Shared rules for investigation store implementations."""

from typing import Optional

from lifeline_core.exceptions import ConcurrentModification
from lifeline_core.models import Investigation, InvestigationStatus, Step

SUMMARY_MAX_CHARS = 120


def check_commit_preconditions(
    investigation: Investigation,
    stored_status: InvestigationStatus,
    stored_step_count: int,
    expected_status: InvestigationStatus,
    new_step: Optional[Step],
) -> None:
    """Reject a commit whose read is stale.

    ``investigation`` is the full updated record; when ``new_step`` is given it
    must already be its last step, and every earlier step must be the ones
    currently stored.

    Raises:
        ConcurrentModification: If status or step count changed since the read
        ValueError: If the caller passed an inconsistent record
    """
    context = {
        "investigation_id": investigation.investigation_id,
        "expected_status": expected_status.value,
        "stored_status": stored_status.value,
    }

    if stored_status != expected_status:
        raise ConcurrentModification(
            f"Investigation {investigation.investigation_id} is {stored_status.value}, "
            f"expected {expected_status.value}; refresh and retry",
            context=context,
        )

    appended = 1 if new_step is not None else 0
    if len(investigation.steps) - appended != stored_step_count:
        raise ConcurrentModification(
            f"Investigation {investigation.investigation_id} has {stored_step_count} stored steps, "
            f"update was based on {len(investigation.steps) - appended}; refresh and retry",
            context=context,
        )

    if new_step is not None and investigation.steps[-1].step_id != new_step.step_id:
        raise ValueError("new_step must be the last step of the updated investigation")


def summarize_message(content: str) -> str:
    """One-line preview for conversation lists"""
    line = " ".join(content.split())
    if len(line) <= SUMMARY_MAX_CHARS:
        return line
    return line[:SUMMARY_MAX_CHARS - 3].rstrip() + "..."
