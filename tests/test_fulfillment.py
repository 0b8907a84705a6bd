"""Test the field-visit fulfillment check"""

from lifeline_core.core.fulfillment import check_fulfillment
from lifeline_core.models import ContributedEvidence, FeedbackModality

from conftest import lab_evidence


def test_all_requested_tests_present():
    evidence = ContributedEvidence.model_validate(lab_evidence("CBC", "Glucose"))
    report = check_fulfillment(["CBC", "Glucose"], set(), evidence)
    assert report.satisfied
    assert report.describe() == "all requirements met"


def test_missing_test_is_listed_in_request_order():
    evidence = ContributedEvidence.model_validate(lab_evidence("Glucose"))
    report = check_fulfillment(["CBC", "Glucose", "Lipid Panel"], set(), evidence)
    assert not report.satisfied
    assert report.missing_lab_tests == ["CBC", "Lipid Panel"]


def test_test_names_must_match_exactly():
    evidence = ContributedEvidence.model_validate(lab_evidence("cbc"))
    report = check_fulfillment(["CBC"], set(), evidence)
    assert report.missing_lab_tests == ["CBC"]


def test_blank_image_reference_does_not_cover_test():
    evidence = ContributedEvidence.model_validate({
        "lab_results": [{"test_name": "CBC", "image_reference": "  "}],
    })
    assert check_fulfillment(["CBC"], set(), evidence).missing_lab_tests == ["CBC"]


def test_extra_results_are_allowed():
    evidence = ContributedEvidence.model_validate(lab_evidence("CBC", "Ferritin"))
    assert check_fulfillment(["CBC"], set(), evidence).satisfied


def test_missing_feedback_modalities():
    evidence = ContributedEvidence.model_validate(lab_evidence(text="Patient is resting"))
    report = check_fulfillment([], {FeedbackModality.PICTURES, FeedbackModality.TEXT}, evidence)
    assert report.missing_feedback == [FeedbackModality.PICTURES]
    assert "missing feedback: pictures" in report.describe()


def test_feedback_without_report_is_missing():
    report = check_fulfillment([], {FeedbackModality.TEXT}, ContributedEvidence())
    assert report.missing_feedback == [FeedbackModality.TEXT]


def test_nothing_requested_is_satisfied():
    assert check_fulfillment([], set(), ContributedEvidence()).satisfied
