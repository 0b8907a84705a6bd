"""Test the read-only comprehensive case review"""

import pytest

from lifeline_core.auth import OwnershipAccessPolicy
from lifeline_core.core.review import CaseReviewer
from lifeline_core.exceptions import AuthorizationDenied, InferenceUnavailable, InvalidTransition

from conftest import condition, run


def _review(resolvable=True):
    return {
        "holistic_summary": "Labs and interview agree on type 2 diabetes.",
        "final_diagnosis": [condition(probability=93)],
        "suggested_treatment_plan": {
            "medications": ["Metformin 500mg twice daily"],
            "lifestyle_changes": ["Reduce sugar intake"],
            "follow_up": "HbA1c in 3 months",
        },
        "is_case_resolvable": resolvable,
    }


def test_review_of_completed_case(completed_case, inference, store):
    investigation = completed_case()
    before = run(store.get(investigation.investigation_id))
    inference.queue(_review())

    review = run(CaseReviewer(inference, store).review(investigation.investigation_id, "clinician-1"))

    assert review.is_case_resolvable
    assert review.final_diagnosis[0].probability == 93
    assert "## Round 1" in inference.prompts[-1]
    after = run(store.get(investigation.investigation_id))
    assert after.model_dump() == before.model_dump()


def test_review_needs_analysed_evidence(open_case, inference, store):
    investigation = open_case()
    with pytest.raises(InvalidTransition):
        run(CaseReviewer(inference, store).review(investigation.investigation_id, "clinician-1"))


def test_review_checks_access(completed_case, inference, store):
    investigation = completed_case()
    reviewer = CaseReviewer(inference, store, access_policy=OwnershipAccessPolicy())
    with pytest.raises(AuthorizationDenied):
        run(reviewer.review(investigation.investigation_id, "clinician-2"))


def test_review_rejects_invalid_output(completed_case, inference, store):
    investigation = completed_case()
    payload = _review()
    payload["final_diagnosis"] = []
    inference.queue(payload)
    with pytest.raises(InferenceUnavailable):
        run(CaseReviewer(inference, store).review(investigation.investigation_id, "clinician-1"))
