"""Test HTTP clients for collaborator services"""

import json

import httpx
import pytest

from lifeline_core.clients import AccessServiceClient, NotificationServiceClient, PaymentLedgerClient
from lifeline_core.exceptions import InsufficientFunds
from lifeline_core.models import IntakeRecord, Investigation, MessageAudience

from conftest import completed_transcript, run


def _transport(handler, seen):
    def record(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return handler(request)
    return httpx.MockTransport(record)


# ========== Ledger ==========

def test_debit_returns_transaction_id():
    seen = []
    client = PaymentLedgerClient(
        base_url="http://ledger.test/",
        transport=_transport(lambda r: httpx.Response(201, json={"transaction_id": "txn_42"}), seen),
    )

    transaction_id = run(client.debit("patient-1", 500, "investigation"))

    assert transaction_id == "txn_42"
    request = seen[0]
    assert request.method == "POST"
    assert request.url.path == "/api/v1/accounts/patient-1/debits"
    assert json.loads(request.content) == {"amount": 500, "reason": "investigation"}
    assert request.headers["X-User-ID"] == "patient-1"


def test_debit_payment_required_is_insufficient_funds():
    client = PaymentLedgerClient(
        base_url="http://ledger.test",
        transport=_transport(lambda r: httpx.Response(402, json={"balance": 120}), []),
    )
    with pytest.raises(InsufficientFunds) as exc_info:
        run(client.debit("patient-1", 500, "investigation"))
    assert exc_info.value.context["balance"] == 120


def test_debit_server_error_propagates():
    client = PaymentLedgerClient(
        base_url="http://ledger.test",
        transport=_transport(lambda r: httpx.Response(500), []),
    )
    with pytest.raises(httpx.HTTPStatusError):
        run(client.debit("patient-1", 500, "investigation"))


# ========== Notifications ==========

def test_notify_posts_audience_and_message():
    seen = []
    client = NotificationServiceClient(
        base_url="http://notify.test",
        transport=_transport(lambda r: httpx.Response(202), seen),
    )

    run(client.notify("inv_0123456789ab", MessageAudience.FIELD_WORKER, "New visit"))

    assert json.loads(seen[0].content) == {
        "investigation_id": "inv_0123456789ab",
        "audience": "field_worker",
        "message": "New visit",
    }


def test_notify_failure_raises():
    client = NotificationServiceClient(
        base_url="http://notify.test",
        transport=_transport(lambda r: httpx.Response(503), []),
    )
    with pytest.raises(httpx.HTTPStatusError):
        run(client.notify("inv_0123456789ab", MessageAudience.PATIENT, "hello"))


# ========== Access ==========

def _investigation():
    return Investigation(
        patient_id="patient-1",
        patient_display_name="Amina",
        intake=IntakeRecord(transcript=completed_transcript()),
    )


def test_access_check_sends_case_facts():
    seen = []
    client = AccessServiceClient(
        base_url="http://access.test",
        transport=_transport(lambda r: httpx.Response(200, json={"allowed": True}), seen),
    )
    investigation = _investigation()

    assert run(client.is_authorized("clinician-1", investigation, "clinician"))

    payload = json.loads(seen[0].content)
    assert payload["investigation_id"] == investigation.investigation_id
    assert payload["patient_id"] == "patient-1"
    assert payload["role"] == "clinician"
    assert json.loads(seen[0].headers["X-User-Roles"]) == ["clinician"]


def test_access_check_for_new_case_omits_case_facts():
    seen = []
    client = AccessServiceClient(
        base_url="http://access.test",
        transport=_transport(lambda r: httpx.Response(200, json={"allowed": True}), seen),
    )
    assert run(client.is_authorized("patient-1", None, "patient"))
    assert "investigation_id" not in json.loads(seen[0].content)


def test_access_forbidden_is_denial():
    client = AccessServiceClient(
        base_url="http://access.test",
        transport=_transport(lambda r: httpx.Response(403), []),
    )
    assert not run(client.is_authorized("clinician-9", _investigation(), "clinician"))


def test_access_denied_in_body():
    client = AccessServiceClient(
        base_url="http://access.test",
        transport=_transport(lambda r: httpx.Response(200, json={"allowed": False}), []),
    )
    assert not run(client.is_authorized("nurse-9", _investigation(), "field_worker"))
