"""Conditional status writes: exactly one caller wins each transition."""

from concurrent.futures import ThreadPoolExecutor

import pytest
from sqlalchemy import select

from regpay.common.errors import IllegalTransition, UnknownOrder
from regpay.services.payments.models import PaymentRecord, PaymentTimeline


def _timeline(session_factory, order_id):
    with session_factory() as db:
        payment = db.execute(select(PaymentRecord).where(PaymentRecord.order_id == order_id)).scalar_one()
        rows = db.execute(
            select(PaymentTimeline).where(PaymentTimeline.payment_id == payment.id)
        ).scalars().all()
        return payment, [(row.from_state, row.to_state, row.source) for row in rows]


def test_first_transition_applies_and_second_is_noop(service, session_factory, order_id):
    with session_factory() as db:
        first = service.transition(db, order_id, "FAILED", {"error_message": "declined"}, source="webhook")
        db.commit()
    with session_factory() as db:
        second = service.transition(db, order_id, "FAILED", {"error_message": "again"}, source="webhook")
        db.commit()

    assert first.applied is True
    assert second.applied is False
    assert second.payment.status == "FAILED"
    payment, timeline = _timeline(session_factory, order_id)
    assert payment.error_message == "declined"
    assert timeline == [(None, "PENDING", "checkout"), ("PENDING", "FAILED", "webhook")]


def test_terminal_payment_is_not_resurrected(service, session_factory, order_id):
    with session_factory() as db:
        service.transition(db, order_id, "CANCELLED", source="webhook")
        db.commit()
    with session_factory() as db:
        result = service.transition(db, order_id, "COMPLETED", source="return")
        db.commit()

    assert result.applied is False
    assert result.payment.status == "CANCELLED"
    assert result.payment.completed_at is None


def test_timestamp_column_set_on_completion(service, session_factory, order_id):
    with session_factory() as db:
        result = service.transition(db, order_id, "COMPLETED", {"gateway_payment_id": "320025071812345"})
        db.commit()

    assert result.payment.completed_at is not None
    assert result.payment.gateway_payment_id == "320025071812345"


def test_unknown_order_raises(service, session_factory):
    with session_factory() as db:
        with pytest.raises(UnknownOrder):
            service.transition(db, "ORDER-AC2025-99999-000000", "COMPLETED")


def test_pending_is_not_a_target(service, session_factory, order_id):
    with session_factory() as db:
        with pytest.raises(IllegalTransition):
            service.transition(db, order_id, "PENDING")


def test_concurrent_transitions_single_winner(service, session_factory, order_id):
    def attempt(_):
        with session_factory() as db:
            result = service.transition(db, order_id, "COMPLETED", source="webhook")
            db.commit()
            return result.applied

    with ThreadPoolExecutor(max_workers=8) as pool:
        applied = list(pool.map(attempt, range(8)))

    assert applied.count(True) == 1
    _, timeline = _timeline(session_factory, order_id)
    assert [row for row in timeline if row[1] == "COMPLETED"] == [("PENDING", "COMPLETED", "webhook")]
