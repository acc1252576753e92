"""HTTP surface: status codes, redirects and API key enforcement."""

import time
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import select

from regpay.common.config import settings
from regpay.common.errors import CodeGenerationExhausted
from regpay.services.payments import main
from regpay.services.payments.gateway_client import GatewayOutcome
from regpay.services.payments.models import NotificationLog, Registration
from regpay.services.payments.notifications import TEMPLATE_KINDS, NotificationDispatcher

API_HEADERS = {"x-api-key": "test-api-key"}


@pytest.fixture
def client(monkeypatch, service, session_factory):
    monkeypatch.setattr(main, "service", service)
    monkeypatch.setattr(main, "dispatcher", NotificationDispatcher(session_factory, ""))
    with TestClient(main.app) as client:
        yield client


def test_notify_acknowledges_and_completes(client, order_id, make_notification):
    _, raw = make_notification(order_id)

    first = client.post("/competitions/payment/notify", data=raw)
    duplicate = client.post("/competitions/payment/notify", data=raw)

    assert first.status_code == 200
    assert first.json()["status"] == "COMPLETED"
    assert first.json()["applied"] is True
    assert duplicate.status_code == 200
    assert duplicate.json()["applied"] is False


def test_notify_rejects_bad_signature(client, order_id, make_notification):
    _, raw = make_notification(order_id, md5sig="F" * 32)

    assert client.post("/competitions/payment/notify", data=raw).status_code == 400


def test_notify_unknown_order(client, make_notification):
    _, raw = make_notification("ORDER-AC2025-99999-000000")

    assert client.post("/competitions/payment/notify", data=raw).status_code == 404


def test_notify_malformed_form(client, order_id):
    resp = client.post("/competitions/payment/notify", data={"order_id": order_id})

    assert resp.status_code == 400


def test_notify_processing_failure_asks_for_retry(client, monkeypatch, order_id, make_notification):
    def boom(*_args):
        raise RuntimeError("database unavailable")

    monkeypatch.setattr(main.service, "handle_notification", boom)
    _, raw = make_notification(order_id)

    assert client.post("/competitions/payment/notify", data=raw).status_code == 500


def _wait_for_notification_logs(session_factory, expected, timeout=5.0):
    deadline = time.monotonic() + timeout
    while True:
        with session_factory() as db:
            logs = db.execute(select(NotificationLog)).scalars().all()
        if len(logs) >= expected or time.monotonic() > deadline:
            return logs
        time.sleep(0.05)


def test_notify_deadline_exceeded_still_sends_notices(
    client, monkeypatch, service, session_factory, order_id, make_notification
):
    """A handler that commits after the deadline still gets its registrations emailed."""

    handle = service.handle_notification

    def slow(*args):
        time.sleep(0.3)
        return handle(*args)

    monkeypatch.setattr(service, "handle_notification", slow)
    monkeypatch.setattr(settings, "webhook_deadline_seconds", 0.05)
    _, raw = make_notification(order_id)

    first = client.post("/competitions/payment/notify", data=raw)
    _wait_for_notification_logs(session_factory, expected=2 * len(TEMPLATE_KINDS))
    monkeypatch.setattr(service, "handle_notification", handle)
    monkeypatch.setattr(settings, "webhook_deadline_seconds", 10.0)
    retry = client.post("/competitions/payment/notify", data=raw)

    with session_factory() as db:
        registrations = db.execute(select(Registration)).scalars().all()
        logs = db.execute(select(NotificationLog)).scalars().all()
    assert first.status_code == 500
    assert retry.status_code == 200
    assert retry.json()["applied"] is False
    assert len(registrations) == 2
    assert len(logs) == len(registrations) * len(TEMPLATE_KINDS)
    assert {log.registration_id for log in logs} == {registration.id for registration in registrations}


def test_notify_deadline_exceeded_handler_failure_is_collected(client, monkeypatch, order_id, make_notification):
    def slow_failure(*_args):
        time.sleep(0.2)
        raise RuntimeError("database unavailable")

    monkeypatch.setattr(main.service, "handle_notification", slow_failure)
    monkeypatch.setattr(settings, "webhook_deadline_seconds", 0.05)
    _, raw = make_notification(order_id)

    assert client.post("/competitions/payment/notify", data=raw).status_code == 500
    deadline = time.monotonic() + 5.0
    while main._late_handlings and time.monotonic() < deadline:
        time.sleep(0.05)
    assert not main._late_handlings


def test_return_redirects_by_local_status(client, order_id, make_notification):
    pending = client.get("/competitions/payment/return", params={"order_id": order_id}, follow_redirects=False)
    _, raw = make_notification(order_id)
    client.post("/competitions/payment/notify", data=raw)
    done = client.get(
        "/competitions/payment/return",
        params={"order_id": order_id, "status_code": "-2"},
        follow_redirects=False,
    )

    assert pending.status_code == 303
    assert pending.headers["location"] == f"https://forum.example.lk/competitions/payment/processing/{order_id}"
    assert done.headers["location"] == f"https://forum.example.lk/competitions/payment/success/{order_id}"


def test_return_unknown_order_goes_to_failed_page(client):
    resp = client.get(
        "/competitions/payment/return",
        params={"order_id": "ORDER-AC2025-99999-000000"},
        follow_redirects=False,
    )

    assert resp.status_code == 303
    assert resp.headers["location"].endswith("/failed/ORDER-AC2025-99999-000000")


def test_status_poll(client, order_id, make_notification):
    _, raw = make_notification(order_id)
    client.post("/competitions/payment/notify", data=raw)

    body = client.get(f"/competitions/payment/status/{order_id}").json()

    assert body["status"] == "COMPLETED"
    assert len(body["registrations"]) == 2
    assert client.get("/competitions/payment/status/ORDER-AC2025-99999-000000").status_code == 404


def test_status_poll_falls_back_to_local_view(client, monkeypatch, service, gateway, order_id):
    """A failing reconciliation still answers the poll with the stored PENDING status."""

    gateway.outcomes[order_id] = GatewayOutcome(
        target="COMPLETED",
        amount=Decimal("8000.00"),
        currency="LKR",
        fields={"gateway_payment_id": "320025071812345", "gateway_status_code": "RECEIVED"},
    )

    def exhausted(*_args):
        raise CodeGenerationExhausted("registration_number", 10)

    monkeypatch.setattr(service.materializer, "materialize", exhausted)

    resp = client.get(f"/competitions/payment/status/{order_id}")

    assert resp.status_code == 200
    assert resp.json()["status"] == "PENDING"
    assert resp.json()["registrations"] == []


def test_internal_checkout_requires_api_key(client, cart, checkout_request):
    payload = checkout_request.model_dump()

    assert client.post("/internal/checkout", json=payload).status_code == 401
    resp = client.post("/internal/checkout", json=payload, headers=API_HEADERS)
    assert resp.status_code == 200
    assert resp.json()["payment_data"]["amount"] == "8000.00"


def test_internal_checkout_empty_cart(client, competitions, checkout_request):
    resp = client.post("/internal/checkout", json=checkout_request.model_dump(), headers=API_HEADERS)

    assert resp.status_code == 400


def test_reconciliation_endpoints(client, order_id, make_notification):
    _, raw = make_notification(order_id)
    client.post("/competitions/payment/notify", data=raw)

    report = client.get("/internal/reconciliation", headers=API_HEADERS).json()
    detail = client.get(f"/internal/reconciliation/{order_id}", headers=API_HEADERS).json()
    repair = client.post(f"/internal/reconciliation/{order_id}/repair", headers=API_HEADERS).json()

    assert report["imbalanced_count"] == 0
    assert detail["balanced"] is True
    assert repair["created"] == 0
    assert len(repair["registrations"]) == 2
    assert client.get("/internal/reconciliation", headers={"x-api-key": "nope"}).status_code == 401


def test_sweep_endpoint(client, order_id):
    resp = client.post("/internal/reconciliation/sweep", json={"older_than_seconds": 0}, headers=API_HEADERS)

    assert resp.json() == {"checked": 1, "applied": 0, "unresolved": 1, "errors": 0}


def test_health_and_metrics(client):
    assert client.get("/health").json() == {"ok": True}
    assert "payment_transitions_total" in client.get("/metrics").text
