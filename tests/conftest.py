"""Shared fixtures: a file-backed SQLite store, seeded carts and a fake gateway."""

import os

os.environ["POSTGRES_DSN"] = "sqlite://"
os.environ["API_KEY"] = "test-api-key"
os.environ["PAYHERE_MERCHANT_ID"] = "1211149"
os.environ["PAYHERE_MERCHANT_SECRET"] = "MzQ1Njc4OTAxMjM0NTY3ODkwMTIzNDU2Nzg5MA=="
os.environ["OTEL_ENABLED"] = "false"
os.environ["NOTIFICATION_API_URL"] = ""
os.environ["FRONTEND_URL"] = "https://forum.example.lk"

from decimal import Decimal

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker

from regpay.common.db import Base
from regpay.services.payments.gateway_client import GatewayOutcome
from regpay.services.payments.models import Competition, RegistrationCart, RegistrationCartItem
from regpay.services.payments.schemas import CheckoutRequest, CustomerInfo, PayHereNotification
from regpay.services.payments.service import RegistrationPaymentService, calculate_cart_expiry
from regpay.services.payments.signature import expected_signature


MERCHANT_ID = "1211149"
MERCHANT_SECRET = "MzQ1Njc4OTAxMjM0NTY3ODkwMTIzNDU2Nzg5MA=="
USER_ID = "user-1"


class FakeGateway:
    """Stands in for `PayHereClient`; returns whatever a test queued per order."""

    def __init__(self) -> None:
        self.outcomes: dict[str, GatewayOutcome] = {}
        self.calls: list[str] = []

    def fetch_outcome(self, order_id: str) -> GatewayOutcome | None:
        self.calls.append(order_id)
        return self.outcomes.get(order_id)


@pytest.fixture
def engine(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'regpay.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )

    # pysqlite's own transaction handling breaks SAVEPOINT and defers locking;
    # take the write lock up front so concurrent writers queue like row locks.
    @event.listens_for(engine, "connect")
    def _connect(dbapi_connection, _record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)


@pytest.fixture
def competitions(session_factory):
    with session_factory() as db:
        main = Competition(slug="archcomp-2025", title="Architecture Competition 2025", year=2025)
        kids = Competition(slug="kids-2025", title="Kids Drawing Competition 2025", year=2025)
        db.add_all([main, kids])
        db.commit()
        return main, kids


@pytest.fixture
def cart(session_factory, competitions):
    main, kids = competitions
    with session_factory() as db:
        cart = RegistrationCart(user_id=USER_ID, status="ACTIVE", expires_at=calculate_cart_expiry())
        db.add(cart)
        db.flush()
        db.add_all(
            [
                RegistrationCartItem(
                    cart_id=cart.id,
                    competition_id=main.id,
                    registration_type_id="rt-team",
                    country="LK",
                    participant_type="TEAM",
                    team_name="Studio North",
                    members=[{"name": "Ann Perera"}, {"name": "Ravi Silva"}],
                    unit_price=Decimal("5000.00"),
                    subtotal=Decimal("5000.00"),
                ),
                RegistrationCartItem(
                    cart_id=cart.id,
                    competition_id=kids.id,
                    registration_type_id="rt-single",
                    country="LK",
                    participant_type="SINGLE",
                    members=[{"name": "Nimal Perera", "age": 9}],
                    unit_price=Decimal("3000.00"),
                    subtotal=Decimal("3000.00"),
                ),
            ]
        )
        db.commit()
        return cart


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def service(session_factory, gateway):
    return RegistrationPaymentService(
        session_factory,
        gateway=gateway,
        merchant_id=MERCHANT_ID,
        merchant_secret=MERCHANT_SECRET,
    )


@pytest.fixture
def checkout_request():
    return CheckoutRequest(
        user_id=USER_ID,
        customer=CustomerInfo(
            first_name="Ann",
            last_name="Perera",
            email="ann.perera@archforum.lk",
            country="Sri Lanka",
            phone="0771234567",
            address="12 Lake Road",
            city="Colombo",
        ),
    )


@pytest.fixture
def order_id(service, cart, checkout_request):
    """A PENDING 8000.00 LKR payment for the two-item cart."""

    return service.create_checkout(checkout_request).order_id


@pytest.fixture
def make_notification():
    """Build a correctly signed IPN (model plus raw form fields)."""

    def _make(order_id, status_code="2", amount="8000.00", currency="LKR", secret=MERCHANT_SECRET, **overrides):
        raw = {
            "merchant_id": MERCHANT_ID,
            "order_id": order_id,
            "payment_id": "320025071812345",
            "payhere_amount": amount,
            "payhere_currency": currency,
            "status_code": status_code,
            "md5sig": expected_signature(MERCHANT_ID, order_id, amount, currency, status_code, secret),
            "method": "VISA",
            "status_message": "Successfully completed the payment.",
            "card_holder_name": "Ann Perera",
            "card_no": "************1292",
        }
        raw.update(overrides)
        return PayHereNotification.model_validate(raw), raw

    return _make
