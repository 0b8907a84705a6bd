"""
Field-visit fulfillment contract.

Pure checks of submitted evidence against what the clinician asked for. A lab
test is covered by a result with exactly the same test name and a non-empty
image reference. A feedback modality is covered by non-empty report text,
picture references or video references.
"""

from typing import AbstractSet, List, Sequence

from pydantic import BaseModel, Field

from lifeline_core.models import ContributedEvidence, FeedbackModality


class FulfillmentReport(BaseModel):
    """Outcome of a fulfillment check"""

    missing_lab_tests: List[str] = Field(default_factory=list)
    missing_feedback: List[FeedbackModality] = Field(default_factory=list)

    @property
    def satisfied(self) -> bool:
        return not self.missing_lab_tests and not self.missing_feedback

    def describe(self) -> str:
        parts = []
        if self.missing_lab_tests:
            parts.append(f"missing lab results: {', '.join(self.missing_lab_tests)}")
        if self.missing_feedback:
            parts.append(f"missing feedback: {', '.join(m.value for m in self.missing_feedback)}")
        return "; ".join(parts) if parts else "all requirements met"


def check_fulfillment(
    required_lab_tests: Sequence[str],
    required_feedback: AbstractSet[FeedbackModality],
    evidence: ContributedEvidence,
) -> FulfillmentReport:
    """Compare evidence with the clinician's requirements.

    Args:
        required_lab_tests: Test names from the dispatch plan or follow-up request
        required_feedback: Modalities the report must contain
        evidence: Submitted evidence bundle

    Returns:
        FulfillmentReport listing what is missing, in request order
    """
    covered_tests = {
        result.test_name
        for result in evidence.lab_results
        if result.image_reference.strip()
    }
    missing_tests = [name for name in required_lab_tests if name not in covered_tests]

    provided = evidence.field_report.provided_modalities if evidence.field_report else set()
    missing_feedback = sorted(
        (modality for modality in required_feedback if modality not in provided),
        key=lambda m: list(FeedbackModality).index(m),
    )

    return FulfillmentReport(missing_lab_tests=missing_tests, missing_feedback=missing_feedback)
