"""Test the HTTP surface with FastAPI's TestClient"""

import json

import pytest
from fastapi.testclient import TestClient

from lifeline_core.api import LifelineServices, create_app
from lifeline_core.auth import AllowAllAccessPolicy
from lifeline_core.core.interview import IntakeInterviewer
from lifeline_core.core.monitoring import ProgressMonitor
from lifeline_core.core.review import CaseReviewer
from lifeline_core.exceptions import InferenceUnavailable

from conftest import completed_transcript, intake_analysis, lab_evidence, refinement


def _headers(user_id, *roles):
    return {"X-User-ID": user_id, "X-User-Roles": json.dumps(list(roles))}


PATIENT = _headers("patient-1", "patient")
CLINICIAN = _headers("clinician-1", "clinician")
NURSE = _headers("nurse-1", "field_worker")


@pytest.fixture
def client(workflow, store, inference, notifier):
    services = LifelineServices(
        workflow=workflow,
        interviewer=IntakeInterviewer(inference),
        monitor=ProgressMonitor(inference, store=store, access_policy=AllowAllAccessPolicy(), notifier=notifier),
        reviewer=CaseReviewer(inference, store),
    )
    with TestClient(create_app(services)) as test_client:
        yield test_client


def _transcript_json(questions=15):
    return [m.model_dump(mode="json") for m in completed_transcript(questions)]


def _open(client, inference):
    inference.queue(intake_analysis())
    response = client.post(
        "/api/v1/investigations",
        json={"patient_display_name": "Amina", "transcript": _transcript_json()},
        headers=PATIENT,
    )
    assert response.status_code == 201, response.text
    return response.json()["investigation_id"]


def _dispatch(client, investigation_id):
    response = client.post(
        f"/api/v1/investigations/{investigation_id}/dispatch",
        json={"field_worker_id": "nurse-1", "suggested_lab_tests": ["Complete Blood Count", "Fasting Glucose"]},
        headers=CLINICIAN,
    )
    assert response.status_code == 200, response.text
    return response.json()


# ========== Identity ==========

def test_health(client):
    assert client.get("/health").json()["status"] == "ok"


def test_missing_user_header_is_unauthorized(client):
    assert client.post("/api/v1/intake/start").status_code == 401


def test_missing_role_is_forbidden(client):
    response = client.post("/api/v1/intake/start", headers=_headers("patient-1", "field_worker"))
    assert response.status_code == 403


def test_unknown_role_query_is_bad_request(client, inference):
    investigation_id = _open(client, inference)
    response = client.get(f"/api/v1/investigations/{investigation_id}", params={"role": "admin"}, headers=PATIENT)
    assert response.status_code == 400


# ========== Intake ==========

def test_start_intake_returns_greeting(client, ledger):
    response = client.post("/api/v1/intake/start", headers=PATIENT)
    assert response.status_code == 200
    assert response.json()["greeting"]["role"] == "interviewer"
    assert ledger.debits == [("patient-1", 500, "investigation")]


def test_start_intake_without_funds(client, ledger):
    ledger.balance = 0
    response = client.post("/api/v1/intake/start", headers=PATIENT)
    assert response.status_code == 402
    assert response.json()["error_code"] == "INSUFFICIENT_FUNDS"


def test_next_question(client, inference):
    inference.queue({"question": "When did it start?"})
    response = client.post(
        "/api/v1/intake/next-question",
        json={"transcript": _transcript_json(3)},
        headers=PATIENT,
    )
    assert response.status_code == 200
    assert response.json() == {"question": "When did it start?", "question_index": 4, "is_final": False}


def test_next_question_inference_failure_is_retryable(client, inference):
    inference.queue(InferenceUnavailable("providers down"))
    response = client.post(
        "/api/v1/intake/next-question",
        json={"transcript": _transcript_json(3)},
        headers=PATIENT,
    )
    assert response.status_code == 503
    assert response.headers["Retry-After"] == "5"
    assert response.json()["retryable"] is True


def test_open_incomplete_interview_conflicts(client):
    response = client.post(
        "/api/v1/investigations",
        json={"patient_display_name": "Amina", "transcript": _transcript_json(5)},
        headers=PATIENT,
    )
    assert response.status_code == 409
    assert response.json()["error_code"] == "INVALID_TRANSITION"


# ========== Investigation lifecycle ==========

def test_full_lifecycle_over_http(client, inference):
    investigation_id = _open(client, inference)
    assert _dispatch(client, investigation_id)["status"] == "awaiting_field_visit"

    inference.queue(refinement(final=True, medications=["Metformin 500mg twice daily"]))
    response = client.post(
        f"/api/v1/investigations/{investigation_id}/field-visits",
        json=lab_evidence("Complete Blood Count", "Fasting Glucose"),
        headers=NURSE,
    )
    assert response.status_code == 200, response.text
    assert response.json()["status"] == "pending_final_review"

    response = client.post(
        f"/api/v1/investigations/{investigation_id}/finalize",
        json={"lifestyle_changes": ["Daily walk"]},
        headers=CLINICIAN,
    )
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "completed"
    assert body["final_plan"]["medications"] == ["Metformin 500mg twice daily"]

    inference.queue({
        "progress_summary": "Improving",
        "is_improving": True,
        "escalate": False,
        "recommendation": "Keep going.",
    })
    response = client.post(
        f"/api/v1/investigations/{investigation_id}/check-ins",
        json={"blood_sugar": 120.0},
        headers=PATIENT,
    )
    assert response.status_code == 200
    assert response.json()["recommendation"] == "Keep going."

    messages = client.get(
        f"/api/v1/investigations/{investigation_id}/messages",
        params={"role": "patient"},
        headers=PATIENT,
    ).json()
    assert messages[-1]["content"] == "Keep going."
    assert all(m["audience"] == "patient" for m in messages)


def test_incomplete_evidence_lists_missing_items(client, inference):
    investigation_id = _open(client, inference)
    _dispatch(client, investigation_id)

    response = client.post(
        f"/api/v1/investigations/{investigation_id}/field-visits",
        json=lab_evidence("Complete Blood Count"),
        headers=NURSE,
    )

    assert response.status_code == 422
    assert response.json()["context"]["missing_lab_tests"] == ["Fasting Glucose"]


def test_follow_up_and_reject_over_http(client, inference):
    investigation_id = _open(client, inference)
    response = client.post(
        f"/api/v1/investigations/{investigation_id}/reject",
        json={"note": "Please visit the emergency room"},
        headers=CLINICIAN,
    )
    assert response.json()["status"] == "rejected"

    response = client.post(
        f"/api/v1/investigations/{investigation_id}/follow-up",
        json={"note": "More pictures", "required_feedback": ["pictures"]},
        headers=CLINICIAN,
    )
    assert response.status_code == 409


def test_follow_up_lab_tests_over_http(client, inference):
    investigation_id = _open(client, inference)
    _dispatch(client, investigation_id)
    inference.queue(refinement(additional_tests=["Lipid Panel"]))
    client.post(
        f"/api/v1/investigations/{investigation_id}/field-visits",
        json=lab_evidence("Complete Blood Count", "Fasting Glucose"),
        headers=NURSE,
    )

    response = client.post(
        f"/api/v1/investigations/{investigation_id}/follow-up",
        json={"note": "Repeat fasting bloods", "suggested_lab_tests": ["HbA1c"]},
        headers=CLINICIAN,
    )
    assert response.status_code == 200, response.text
    request = response.json()["follow_up_request"]
    assert request["suggested_lab_tests"] == ["HbA1c"]
    assert request["required_feedback"] == []

    response = client.post(
        f"/api/v1/investigations/{investigation_id}/field-visits",
        json=lab_evidence(text="Fasted overnight"),
        headers=NURSE,
    )
    assert response.status_code == 422
    assert response.json()["context"]["missing_lab_tests"] == ["HbA1c"]


def test_empty_dispatch_plan_is_invalid_input(client, inference):
    investigation_id = _open(client, inference)
    response = client.post(
        f"/api/v1/investigations/{investigation_id}/dispatch",
        json={"field_worker_id": "nurse-1"},
        headers=CLINICIAN,
    )
    assert response.status_code == 422


def test_review_over_http(client, inference):
    investigation_id = _open(client, inference)
    _dispatch(client, investigation_id)
    inference.queue(refinement(additional_tests=["Lipid Panel"]))
    client.post(
        f"/api/v1/investigations/{investigation_id}/field-visits",
        json=lab_evidence("Complete Blood Count", "Fasting Glucose"),
        headers=NURSE,
    )

    inference.queue({
        "holistic_summary": "Likely diabetes",
        "final_diagnosis": [{"condition": "Type 2 Diabetes", "probability": 85, "reasoning": "Glucose"}],
        "suggested_treatment_plan": {"medications": [], "lifestyle_changes": [], "follow_up": "Lipid panel"},
        "is_case_resolvable": False,
    })
    response = client.post(f"/api/v1/investigations/{investigation_id}/review", headers=CLINICIAN)

    assert response.status_code == 200
    assert response.json()["is_case_resolvable"] is False


def test_unknown_investigation_is_not_found(client):
    response = client.get("/api/v1/investigations/inv_000000000000", params={"role": "clinician"}, headers=CLINICIAN)
    assert response.status_code == 404
