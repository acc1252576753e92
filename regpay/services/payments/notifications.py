"""Best-effort registration emails through the external notification service.

Dispatch runs after the HTTP response has been sent. Each send is logged to
`notification_logs`; failures are counted and logged, never raised, so they
can never unwind a committed payment.
"""

import asyncio
from dataclasses import asdict, dataclass
from decimal import Decimal

import httpx
from sqlalchemy.exc import SQLAlchemyError

from regpay.common.errors import NotificationDispatchFailed
from regpay.common.logging import logger
from regpay.common.metrics import notification_dispatch_total
from regpay.services.payments.models import NotificationLog


TEMPLATE_KINDS = ("registration_confirmation", "payment_receipt", "competition_guidelines")


@dataclass(frozen=True)
class RegistrationNotice:
    """Everything one registration email needs, captured at commit time."""

    registration_id: str
    registration_number: str
    display_code: str
    competition_id: str
    competition_title: str
    order_id: str
    amount_paid: Decimal
    currency: str
    recipient_email: str
    recipient_name: str

    def as_payload(self, template: str) -> dict:
        payload = asdict(self)
        payload["amount_paid"] = f"{self.amount_paid:.2f}"
        payload["template"] = template
        return payload


class NotificationDispatcher:
    """Sends each template once per registration, time-boxed as a whole."""

    def __init__(
        self,
        session_factory,
        api_url: str,
        timeout_seconds: float = 5.0,
        transport: httpx.AsyncBaseTransport | None = None,
        service_name: str = "registration-payments",
    ) -> None:
        self.session_factory = session_factory
        self.api_url = api_url
        self.timeout_seconds = timeout_seconds
        self.transport = transport
        self.service_name = service_name

    async def send(self, client: httpx.AsyncClient, template: str, notice: RegistrationNotice) -> None:
        """Post one templated email request; raise `NotificationDispatchFailed` on any failure."""

        try:
            resp = await client.post(self.api_url, json=notice.as_payload(template))
        except httpx.HTTPError as exc:
            raise NotificationDispatchFailed(f"{template}: {exc}") from exc
        if resp.status_code >= 400:
            raise NotificationDispatchFailed(f"{template}: status={resp.status_code}")

    async def dispatch(self, notices: list[RegistrationNotice]) -> list[NotificationLog]:
        """Send every template for every notice; returns the attempt log."""

        if not notices:
            return []
        logs: list[NotificationLog] = []
        try:
            await asyncio.wait_for(self._dispatch_all(notices, logs), timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            notification_dispatch_total.labels(service=self.service_name, template="*", result="timeout").inc()
            logger.error(
                "notification dispatch timed out after %ss order_id=%s attempted=%s",
                self.timeout_seconds,
                notices[0].order_id,
                len(logs),
            )
        self._store(logs)
        return logs

    async def _dispatch_all(self, notices: list[RegistrationNotice], logs: list[NotificationLog]) -> None:
        if not self.api_url:
            for notice in notices:
                for template in TEMPLATE_KINDS:
                    logs.append(self._log(notice, template, "SKIPPED", "notification api not configured"))
            logger.warning("notification api not configured; skipped %s registration(s)", len(notices))
            return

        async with httpx.AsyncClient(timeout=self.timeout_seconds, transport=self.transport) as client:
            for notice in notices:
                for template in TEMPLATE_KINDS:
                    try:
                        await self.send(client, template, notice)
                    except NotificationDispatchFailed as exc:
                        logger.warning(
                            "notification failed registration=%s template=%s error=%s",
                            notice.registration_number,
                            template,
                            exc,
                        )
                        logs.append(self._log(notice, template, "FAILED", str(exc)))
                        continue
                    logs.append(self._log(notice, template, "SENT"))

    def _log(self, notice: RegistrationNotice, template: str, status: str, error: str | None = None) -> NotificationLog:
        notification_dispatch_total.labels(service=self.service_name, template=template, result=status).inc()
        return NotificationLog(
            registration_id=notice.registration_id,
            template=template,
            recipient=notice.recipient_email,
            status=status,
            error=error,
        )

    def _store(self, logs: list[NotificationLog]) -> None:
        if not logs:
            return
        try:
            with self.session_factory() as db:
                db.add_all(logs)
                db.commit()
        except SQLAlchemyError as exc:
            logger.error("notification log write failed count=%s error=%s", len(logs), exc)
