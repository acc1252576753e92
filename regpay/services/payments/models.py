"""Registration payment database models.

This DB is the source of truth for payment state, the cart snapshot taken at
checkout, the registrations materialized from completed payments, and the
audit rows around them (timeline, gateway notifications, notification logs).
"""

from datetime import datetime
from decimal import Decimal
from uuid import uuid4

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, Numeric, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from regpay.common.db import Base, JSONType


class Competition(Base):
    """Read model of a competition owned by the forum."""

    __tablename__ = "competitions"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid4()))
    slug: Mapped[str] = mapped_column(String, unique=True)
    title: Mapped[str] = mapped_column(String)
    year: Mapped[int] = mapped_column(Integer, index=True)


class RegistrationCart(Base):
    """Pre-payment working set of one user."""

    __tablename__ = "registration_carts"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid4()))
    user_id: Mapped[str] = mapped_column(String, index=True)
    status: Mapped[str] = mapped_column(String, default="ACTIVE", index=True)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )


class RegistrationCartItem(Base):
    """One competition entry waiting to be paid for."""

    __tablename__ = "registration_cart_items"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid4()))
    cart_id: Mapped[str] = mapped_column(ForeignKey("registration_carts.id"), index=True)
    competition_id: Mapped[str] = mapped_column(ForeignKey("competitions.id"), index=True)
    registration_type_id: Mapped[str] = mapped_column(String)
    country: Mapped[str] = mapped_column(String)
    participant_type: Mapped[str] = mapped_column(String)
    team_name: Mapped[str | None] = mapped_column(String, nullable=True)
    company_name: Mapped[str | None] = mapped_column(String, nullable=True)
    members: Mapped[list] = mapped_column(JSONType, default=list)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(12, 2))
    subtotal: Mapped[Decimal] = mapped_column(Numeric(12, 2))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class PaymentRecord(Base):
    """Current state of one checkout attempt with the gateway."""

    __tablename__ = "competition_payments"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid4()))
    order_id: Mapped[str] = mapped_column(String, unique=True, index=True)
    user_id: Mapped[str] = mapped_column(String, index=True)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2))
    currency: Mapped[str] = mapped_column(String(3))
    merchant_id: Mapped[str] = mapped_column(String)
    status: Mapped[str] = mapped_column(String, default="PENDING", index=True)
    gateway_payment_id: Mapped[str | None] = mapped_column(String, nullable=True)
    gateway_status_code: Mapped[str | None] = mapped_column(String, nullable=True)
    gateway_signature: Mapped[str | None] = mapped_column(String, nullable=True)
    payment_method: Mapped[str | None] = mapped_column(String, nullable=True)
    card_holder_name: Mapped[str | None] = mapped_column(String, nullable=True)
    card_no: Mapped[str | None] = mapped_column(String, nullable=True)
    customer_details: Mapped[dict] = mapped_column(JSONType, default=dict)
    # `metadata` is reserved on declarative classes.
    snapshot: Mapped[dict] = mapped_column("metadata", JSONType)
    raw_gateway_response: Mapped[dict | None] = mapped_column(JSONType, nullable=True)
    error_message: Mapped[str | None] = mapped_column(String, nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    refunded_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )


class Registration(Base):
    """Durable proof of a paid competition entry."""

    __tablename__ = "competition_registrations"
    __table_args__ = (
        UniqueConstraint("competition_id", "display_code", name="uq_registration_display_code"),
        UniqueConstraint("payment_id", "cart_item_id", name="uq_registration_payment_item"),
    )

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid4()))
    registration_number: Mapped[str] = mapped_column(String, unique=True, index=True)
    display_code: Mapped[str] = mapped_column(String)
    user_id: Mapped[str] = mapped_column(String, index=True)
    competition_id: Mapped[str] = mapped_column(ForeignKey("competitions.id"), index=True)
    registration_type_id: Mapped[str] = mapped_column(String)
    payment_id: Mapped[str] = mapped_column(ForeignKey("competition_payments.id"), index=True)
    cart_item_id: Mapped[str] = mapped_column(String)
    country: Mapped[str] = mapped_column(String)
    participant_type: Mapped[str] = mapped_column(String)
    team_name: Mapped[str | None] = mapped_column(String, nullable=True)
    company_name: Mapped[str | None] = mapped_column(String, nullable=True)
    members: Mapped[list] = mapped_column(JSONType, default=list)
    amount_paid: Mapped[Decimal] = mapped_column(Numeric(12, 2))
    currency: Mapped[str] = mapped_column(String(3))
    status: Mapped[str] = mapped_column(String, default="CONFIRMED", index=True)
    confirmed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class PaymentTimeline(Base):
    """Immutable audit trail of every applied state transition."""

    __tablename__ = "payment_timeline"

    timeline_id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid4()))
    payment_id: Mapped[str] = mapped_column(ForeignKey("competition_payments.id"), index=True)
    from_state: Mapped[str | None] = mapped_column(String, nullable=True)
    to_state: Mapped[str] = mapped_column(String)
    reason: Mapped[str] = mapped_column(String)
    source: Mapped[str] = mapped_column(String)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class GatewayNotification(Base):
    """Every inbound gateway notification, stored verbatim."""

    __tablename__ = "gateway_notifications"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid4()))
    order_id: Mapped[str] = mapped_column(String, index=True)
    status_code: Mapped[str] = mapped_column(String)
    gateway_payment_id: Mapped[str | None] = mapped_column(String, nullable=True)
    signature_valid: Mapped[bool] = mapped_column(Boolean)
    applied: Mapped[bool] = mapped_column(Boolean, default=False)
    payload: Mapped[dict] = mapped_column(JSONType)
    received_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class NotificationLog(Base):
    """Stored record of notification attempts sent to the email service."""

    __tablename__ = "notification_logs"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid4()))
    registration_id: Mapped[str] = mapped_column(String, index=True)
    template: Mapped[str] = mapped_column(String)
    recipient: Mapped[str] = mapped_column(String)
    status: Mapped[str] = mapped_column(String)
    error: Mapped[str | None] = mapped_column(String, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
