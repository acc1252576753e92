"""Request/response schemas for the payment endpoints."""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class PayHereNotification(BaseModel):
    """Form fields posted by the gateway to the notify URL."""

    model_config = ConfigDict(extra="allow")

    merchant_id: str
    order_id: str = Field(min_length=1)
    payhere_amount: str
    payhere_currency: str
    status_code: str
    md5sig: str
    method: str | None = None
    status_message: str | None = None
    payment_id: str | None = None
    card_holder_name: str | None = None
    card_no: str | None = None
    custom_1: str | None = None
    custom_2: str | None = None


class CustomerInfo(BaseModel):
    """Billing contact captured at checkout and reused for emails."""

    first_name: str = Field(min_length=1)
    last_name: str = Field(min_length=1)
    email: EmailStr
    country: str = Field(min_length=1)
    phone: str = ""
    address: str = ""
    city: str = ""


class CheckoutRequest(BaseModel):
    """Checkout payload forwarded by the authenticated forum tier."""

    user_id: str = Field(min_length=1)
    customer: CustomerInfo


class CheckoutResponse(BaseModel):
    """Everything the browser needs to post the gateway checkout form."""

    order_id: str
    payment_url: str
    payment_data: dict[str, str]


class RegistrationSummary(BaseModel):
    registration_number: str
    display_code: str
    competition_id: str
    status: str
    amount_paid: Decimal
    currency: str


class PaymentStatusResponse(BaseModel):
    """Locally reconciled view of one payment."""

    order_id: str
    status: str
    amount: Decimal
    currency: str
    completed_at: datetime | None = None
    registrations: list[RegistrationSummary] = []


class ReconciliationEntry(BaseModel):
    order_id: str
    status: str
    expected_registrations: int
    actual_registrations: int
    balanced: bool


class SweepRequest(BaseModel):
    older_than_seconds: int | None = Field(default=None, ge=0)
    limit: int = Field(default=100, gt=0, le=1000)
