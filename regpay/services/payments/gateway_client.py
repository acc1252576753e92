"""Pull-side client for the gateway's payment retrieval API.

Used when the browser comes back (or the sweeper runs) before the webhook has
settled a payment. Every failure mode collapses to "unknown": the payment stays
PENDING and a later visit, webhook or sweep resolves it.
"""

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation

import httpx

from regpay.common.logging import logger
from regpay.common.state_machine import CANCELLED, COMPLETED, FAILED


RETRIEVAL_STATUS_TARGETS: dict[str, str] = {
    "RECEIVED": COMPLETED,
    "REFUND REQUESTED": COMPLETED,
    "REFUND PROCESSING": COMPLETED,
    "FAILED": FAILED,
    "CANCELLED": CANCELLED,
}
# Money already went back to the customer; never auto-complete these.
MANUAL_REVIEW_STATUSES = {"REFUNDED", "CHARGEBACKED"}


@dataclass
class GatewayOutcome:
    """Gateway-reported result for one order."""

    target: str
    amount: Decimal | None
    currency: str | None
    fields: dict = field(default_factory=dict)
    raw: dict = field(default_factory=dict)


class PayHereClient:
    """OAuth client-credentials access to `/merchant/v1/payment/search`."""

    def __init__(
        self,
        base_url: str,
        app_id: str,
        app_secret: str,
        timeout_seconds: float = 5.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.app_id = app_id
        self.app_secret = app_secret
        self.timeout_seconds = timeout_seconds
        self.transport = transport

    @property
    def configured(self) -> bool:
        return bool(self.app_id and self.app_secret)

    def _access_token(self, client: httpx.Client) -> str:
        resp = client.post(
            f"{self.base_url}/merchant/v1/oauth/token",
            auth=(self.app_id, self.app_secret),
            data={"grant_type": "client_credentials"},
        )
        resp.raise_for_status()
        token = resp.json().get("access_token")
        if not isinstance(token, str) or not token:
            raise ValueError("gateway token response malformed")
        return token

    def _search(self, order_id: str) -> list[dict]:
        with httpx.Client(timeout=self.timeout_seconds, transport=self.transport) as client:
            token = self._access_token(client)
            resp = client.get(
                f"{self.base_url}/merchant/v1/payment/search",
                params={"order_id": order_id},
                headers={"Authorization": f"Bearer {token}"},
            )
        resp.raise_for_status()
        payload = resp.json()
        # status -1 means "no payments found" for this order id; anything that
        # is not an object is treated the same way.
        if not isinstance(payload, dict) or payload.get("status") != 1:
            return []
        data = payload.get("data")
        if not isinstance(data, list):
            return []
        return [entry for entry in data if isinstance(entry, dict)]

    def fetch_outcome(self, order_id: str) -> GatewayOutcome | None:
        """Return the gateway's verdict for `order_id`, or None when unknown."""

        if not self.configured:
            logger.warning("gateway status lookup not configured order_id=%s", order_id)
            return None
        try:
            entries = self._search(order_id)
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("gateway status lookup failed order_id=%s error=%s", order_id, exc)
            return None
        if not entries:
            return None

        entry = next((e for e in entries if e.get("status") == "RECEIVED"), entries[0])
        status = str(entry.get("status", "")).upper()
        if status in MANUAL_REVIEW_STATUSES:
            logger.warning("gateway reports %s for pending order_id=%s; manual review required", status, order_id)
            return None
        target = RETRIEVAL_STATUS_TARGETS.get(status)
        if target is None:
            logger.info("gateway status unresolved order_id=%s status=%s", order_id, status)
            return None

        method = entry.get("payment_method")
        if not isinstance(method, dict):
            method = {}
        try:
            amount = Decimal(str(entry["amount"])) if entry.get("amount") is not None else None
        except InvalidOperation:
            amount = None
        fields = {
            "gateway_payment_id": str(entry["payment_id"]) if entry.get("payment_id") is not None else None,
            "gateway_status_code": status,
            "payment_method": method.get("method"),
            "card_holder_name": method.get("card_customer_name"),
            "card_no": method.get("card_no"),
        }
        return GatewayOutcome(
            target=target,
            amount=amount,
            currency=entry.get("currency"),
            fields={key: value for key, value in fields.items() if value is not None},
            raw=entry,
        )
