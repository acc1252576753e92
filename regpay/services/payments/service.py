"""Payment confirmation and registration issuance.

Webhook deliveries, browser returns, status polls and the pending sweeper all
funnel into `_apply`: one conditional UPDATE on the payment row followed, for
the single caller that wins PENDING -> COMPLETED, by materialization in the
same transaction. Duplicates and losers of the race see `applied=False` and
leave everything alone.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from decimal import Decimal, InvalidOperation

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError

from regpay.common.codes import GLOBAL_SCOPE, generate_unique_code, order_id_candidate
from regpay.common.config import settings
from regpay.common.errors import (
    AmountMismatch,
    CheckoutError,
    CodeGenerationExhausted,
    IllegalTransition,
    InvalidSignature,
    UnknownOrder,
)
from regpay.common.logging import logger, order_id_ctx
from regpay.common.metrics import (
    code_collisions_total,
    duplicate_notifications_skipped_total,
    gateway_notifications_total,
    invalid_signatures_total,
    payment_e2e_seconds,
    payment_transitions_total,
    reconciliation_requests_total,
    unknown_orders_total,
)
from regpay.common.state_machine import (
    CANCELLED,
    COMPLETED,
    FAILED,
    PENDING,
    REFUNDED,
    STATUS_CODE_TARGETS,
    allowed_sources,
)
from regpay.services.payments.gateway_client import PayHereClient
from regpay.services.payments.materializer import RegistrationMaterializer
from regpay.services.payments.models import (
    Competition,
    GatewayNotification,
    PaymentRecord,
    PaymentTimeline,
    Registration,
    RegistrationCart,
    RegistrationCartItem,
)
from regpay.services.payments.notifications import RegistrationNotice
from regpay.services.payments.schemas import CheckoutRequest, CheckoutResponse, PayHereNotification
from regpay.services.payments.signature import checkout_hash, format_amount, verify_signature


INVALID_SIGNATURE = "Invalid signature"
TIMESTAMP_COLUMNS = {COMPLETED: "completed_at", CANCELLED: "cancelled_at", REFUNDED: "refunded_at"}


@dataclass
class TransitionResult:
    """`applied` is True only for the one caller whose conditional write landed."""

    applied: bool
    payment: PaymentRecord


@dataclass
class ReconcileOutcome:
    """What one entry point observed and did for an order."""

    order_id: str
    status: str
    applied: bool = False
    payment: PaymentRecord | None = None
    registrations: list[Registration] = field(default_factory=list)
    notices: list[RegistrationNotice] = field(default_factory=list)


@dataclass
class SweepResult:
    checked: int = 0
    applied: int = 0
    unresolved: int = 0
    errors: int = 0
    notices: list[RegistrationNotice] = field(default_factory=list)


def mask_name(name: str | None) -> str | None:
    """Keep the first letter of each word: `John Smith` -> `J*** S****`."""

    if not name:
        return name
    return " ".join(word[0] + "*" * (len(word) - 1) for word in name.split())


def calculate_cart_expiry(now: datetime | None = None) -> datetime:
    now = now or datetime.now(timezone.utc)
    if settings.cart_expiry_disabled:
        return now + timedelta(days=3650)
    return now + timedelta(minutes=settings.cart_expiry_minutes)


def _aware(value: datetime) -> datetime:
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)


class RegistrationPaymentService:
    """Owns the payment state machine and registration materialization."""

    def __init__(
        self,
        session_factory,
        gateway: PayHereClient | None = None,
        materializer: RegistrationMaterializer | None = None,
        merchant_id: str | None = None,
        merchant_secret: str | None = None,
        fail_on_invalid_signature: bool | None = None,
        service_name: str = "registration-payments",
    ) -> None:
        self.session_factory = session_factory
        self.gateway = gateway
        self.materializer = materializer or RegistrationMaterializer(
            max_code_attempts=settings.code_max_attempts, service_name=service_name
        )
        self.merchant_id = merchant_id if merchant_id is not None else settings.payhere_merchant_id
        self.merchant_secret = merchant_secret if merchant_secret is not None else settings.payhere_merchant_secret
        self.fail_on_invalid_signature = (
            settings.fail_payment_on_invalid_signature if fail_on_invalid_signature is None else fail_on_invalid_signature
        )
        self.service_name = service_name

    # Checkout

    def _cart_expired(self, cart: RegistrationCart) -> bool:
        if settings.cart_expiry_disabled:
            return False
        return datetime.now(timezone.utc) > _aware(cart.expires_at)

    @staticmethod
    def _snapshot_item(item: RegistrationCartItem, competition: Competition) -> dict:
        return {
            "id": item.id,
            "competition_id": item.competition_id,
            "competition_year": competition.year,
            "registration_type_id": item.registration_type_id,
            "country": item.country,
            "participant_type": item.participant_type,
            "team_name": item.team_name,
            "company_name": item.company_name,
            "members": item.members or [],
            "subtotal": format_amount(item.subtotal),
        }

    def _next_order_sequence(self, db, year: int) -> int:
        count = db.execute(
            select(func.count())
            .select_from(PaymentRecord)
            .where(PaymentRecord.order_id.startswith(f"ORDER-AC{year}-"))
        ).scalar_one()
        return count + 1

    def _insert_payment(self, db, req: CheckoutRequest, total: Decimal, year: int, snapshot: dict) -> PaymentRecord:
        """Insert the PENDING row, retrying with a fresh order id on a unique violation."""

        for attempt in range(1, settings.code_max_attempts + 1):
            sequence = self._next_order_sequence(db, year)
            order_id = generate_unique_code(
                GLOBAL_SCOPE,
                lambda: order_id_candidate(sequence, year),
                lambda _scope, code: db.execute(
                    select(PaymentRecord.id).where(PaymentRecord.order_id == code)
                ).first()
                is not None,
                settings.code_max_attempts,
                kind="order_id",
            )
            payment = PaymentRecord(
                order_id=order_id,
                user_id=req.user_id,
                amount=total,
                currency=settings.payhere_currency,
                merchant_id=self.merchant_id,
                status=PENDING,
                customer_details=req.customer.model_dump(),
                snapshot=snapshot,
            )
            try:
                with db.begin_nested():
                    db.add(payment)
            except IntegrityError:
                # A concurrent checkout took the same order id after the check.
                code_collisions_total.labels(service=self.service_name, kind="order_id_insert").inc()
                logger.warning(
                    "checkout order id collided on insert order_id=%s attempt=%s/%s",
                    order_id,
                    attempt,
                    settings.code_max_attempts,
                )
                continue
            return payment
        raise CodeGenerationExhausted(f"order_id:{year}", settings.code_max_attempts)

    def create_checkout(self, req: CheckoutRequest) -> CheckoutResponse:
        """Create the PENDING payment for the user's active cart and its gateway form."""

        with self.session_factory() as db:
            cart = db.execute(
                select(RegistrationCart)
                .where(RegistrationCart.user_id == req.user_id, RegistrationCart.status == "ACTIVE")
                .order_by(RegistrationCart.created_at.desc())
                .limit(1)
            ).scalar_one_or_none()
            if cart is None:
                raise CheckoutError("Cart is empty")
            rows = db.execute(
                select(RegistrationCartItem, Competition)
                .join(Competition, Competition.id == RegistrationCartItem.competition_id)
                .where(RegistrationCartItem.cart_id == cart.id)
                .order_by(RegistrationCartItem.created_at, RegistrationCartItem.id)
            ).all()
            if not rows:
                raise CheckoutError("Cart is empty")
            if self._cart_expired(cart):
                cart.status = "EXPIRED"
                db.commit()
                raise CheckoutError("Cart has expired. Please add items again.")

            total = sum((item.subtotal for item, _ in rows), Decimal("0"))
            year = datetime.now(timezone.utc).year
            snapshot = {
                "cart_id": cart.id,
                "item_ids": [item.id for item, _ in rows],
                "competition_ids": sorted({item.competition_id for item, _ in rows}),
                "items": [self._snapshot_item(item, competition) for item, competition in rows],
            }
            payment = self._insert_payment(db, req, total, year, snapshot)
            order_id = payment.order_id
            db.add(
                PaymentTimeline(
                    payment_id=payment.id,
                    from_state=None,
                    to_state=PENDING,
                    reason="checkout_created",
                    source="checkout",
                )
            )
            db.commit()
            description = ", ".join(f"{competition.title} - {item.participant_type}" for item, competition in rows)

        amount = format_amount(total)
        customer = req.customer
        logger.info("checkout created order_id=%s items=%s amount=%s", order_id, len(rows), amount)
        return CheckoutResponse(
            order_id=order_id,
            payment_url=settings.payhere_checkout_url,
            payment_data={
                "merchant_id": self.merchant_id,
                "return_url": f"{settings.payhere_return_url}?order_id={order_id}",
                "cancel_url": f"{settings.payhere_cancel_url}?order_id={order_id}",
                "notify_url": settings.payhere_notify_url,
                "order_id": order_id,
                "items": description,
                "currency": settings.payhere_currency,
                "amount": amount,
                "first_name": customer.first_name,
                "last_name": customer.last_name,
                "email": customer.email,
                "phone": customer.phone,
                "address": customer.address,
                "city": customer.city,
                "country": customer.country,
                "hash": checkout_hash(
                    self.merchant_id, order_id, amount, settings.payhere_currency, self.merchant_secret
                ),
            },
        )

    # State machine

    def _find_payment(self, db, order_id: str, for_update: bool = False) -> PaymentRecord | None:
        stmt = select(PaymentRecord).where(PaymentRecord.order_id == order_id)
        if for_update:
            stmt = stmt.with_for_update()
        return db.execute(stmt.execution_options(populate_existing=True)).scalar_one_or_none()

    def _observe_terminal_e2e(self, payment: PaymentRecord) -> None:
        if payment.created_at is None:
            return
        elapsed = max(0.0, (datetime.now(timezone.utc) - _aware(payment.created_at)).total_seconds())
        payment_e2e_seconds.labels(service=self.service_name, terminal_state=payment.status).observe(elapsed)

    def transition(
        self,
        db,
        order_id: str,
        target: str,
        fields: dict | None = None,
        reason: str = "",
        source: str = "webhook",
    ) -> TransitionResult:
        """Move `order_id` to `target` with one conditional write.

        The UPDATE only matches rows whose current status legally precedes
        `target`, so among concurrent callers exactly one sees rowcount 1.
        Raises `UnknownOrder` when no payment row exists at all.
        """

        sources = allowed_sources(target)
        if not sources:
            raise IllegalTransition(f"Invalid transition target: {target}")
        now = datetime.now(timezone.utc)
        values = {key: value for key, value in (fields or {}).items() if value is not None}
        values.update(status=target, updated_at=now)
        if target in TIMESTAMP_COLUMNS:
            values[TIMESTAMP_COLUMNS[target]] = now

        result = db.execute(
            update(PaymentRecord)
            .where(PaymentRecord.order_id == order_id, PaymentRecord.status.in_(sorted(sources)))
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        applied = result.rowcount == 1
        payment = self._find_payment(db, order_id)
        if payment is None:
            raise UnknownOrder(order_id)
        payment_transitions_total.labels(
            service=self.service_name, target=target, source=source, applied=str(applied).lower()
        ).inc()

        if not applied:
            duplicate_notifications_skipped_total.labels(service=self.service_name, source=source).inc()
            logger.info(
                "transition not applied order_id=%s current=%s target=%s source=%s",
                order_id,
                payment.status,
                target,
                source,
            )
            return TransitionResult(applied=False, payment=payment)

        db.add(
            PaymentTimeline(
                payment_id=payment.id,
                from_state=next(iter(sources)) if len(sources) == 1 else None,
                to_state=target,
                reason=reason or f"{source}_{target.lower()}",
                source=source,
            )
        )
        logger.info("transition applied order_id=%s target=%s source=%s", order_id, target, source)
        return TransitionResult(applied=True, payment=payment)

    def _apply(
        self, db, order_id: str, target: str, fields: dict, reason: str, source: str
    ) -> tuple[TransitionResult, list[Registration]]:
        result = self.transition(db, order_id, target, fields, reason=reason, source=source)
        registrations: list[Registration] = []
        if result.applied and target == COMPLETED:
            registrations = self.materializer.materialize(db, result.payment)
        return result, registrations

    def _notices(self, db, payment: PaymentRecord, registrations: list[Registration]) -> list[RegistrationNotice]:
        if not registrations:
            return []
        titles = dict(
            db.execute(
                select(Competition.id, Competition.title).where(
                    Competition.id.in_({registration.competition_id for registration in registrations})
                )
            ).all()
        )
        customer = payment.customer_details or {}
        name = f"{customer.get('first_name', '')} {customer.get('last_name', '')}".strip() or "Participant"
        return [
            RegistrationNotice(
                registration_id=registration.id,
                registration_number=registration.registration_number,
                display_code=registration.display_code,
                competition_id=registration.competition_id,
                competition_title=titles.get(registration.competition_id, ""),
                order_id=payment.order_id,
                amount_paid=registration.amount_paid,
                currency=registration.currency,
                recipient_email=customer.get("email", ""),
                recipient_name=name,
            )
            for registration in registrations
        ]

    # Webhook

    def _signature_ok(self, notification: PayHereNotification) -> bool:
        return verify_signature(
            notification.merchant_id,
            notification.order_id,
            notification.payhere_amount,
            notification.payhere_currency,
            notification.status_code,
            notification.md5sig,
            self.merchant_secret,
        )

    def _verification_problem(self, notification: PayHereNotification, payment: PaymentRecord) -> str | None:
        """Checks a correctly signed notification against the local record."""

        if notification.merchant_id != self.merchant_id:
            return "Merchant mismatch"
        try:
            amount = Decimal(notification.payhere_amount)
        except InvalidOperation:
            return "Amount mismatch"
        if amount != payment.amount or notification.payhere_currency != payment.currency:
            return "Amount mismatch"
        return None

    @staticmethod
    def _notification_row(
        notification: PayHereNotification, raw: dict, signature_valid: bool, applied: bool = False
    ) -> GatewayNotification:
        return GatewayNotification(
            order_id=notification.order_id,
            status_code=notification.status_code,
            gateway_payment_id=notification.payment_id,
            signature_valid=signature_valid,
            applied=applied,
            payload=raw,
        )

    @staticmethod
    def _notification_fields(notification: PayHereNotification, raw: dict, target: str) -> dict:
        fields = {
            "gateway_payment_id": notification.payment_id,
            "gateway_status_code": notification.status_code,
            "gateway_signature": notification.md5sig,
            "payment_method": notification.method,
            "card_holder_name": mask_name(notification.card_holder_name),
            "card_no": notification.card_no,
            "raw_gateway_response": raw,
        }
        if target in (FAILED, CANCELLED):
            fields["error_message"] = notification.status_message
        return fields

    def _reject(
        self, db, notification: PayHereNotification, raw: dict, problem: str, payment: PaymentRecord | None
    ) -> None:
        signature_valid = problem != INVALID_SIGNATURE
        invalid_signatures_total.labels(service=self.service_name, reason=problem).inc()
        gateway_notifications_total.labels(
            service=self.service_name, status_code=notification.status_code, outcome="rejected"
        ).inc()
        logger.warning(
            "security: gateway notification rejected order_id=%s reason=%s status_code=%s merchant_id=%s",
            notification.order_id,
            problem,
            notification.status_code,
            notification.merchant_id,
        )
        db.add(self._notification_row(notification, raw, signature_valid=signature_valid))
        if payment is not None and self.fail_on_invalid_signature:
            self.transition(
                db,
                notification.order_id,
                FAILED,
                {"error_message": problem, "raw_gateway_response": raw},
                reason="notification_rejected",
                source="webhook",
            )

    def handle_notification(self, notification: PayHereNotification, raw: dict) -> ReconcileOutcome:
        """Authenticate one IPN and drive the payment it names.

        Raises `UnknownOrder`, `InvalidSignature` (or `AmountMismatch`) after
        recording the notification; any other exception means nothing was
        committed and the gateway should retry.
        """

        order_id = notification.order_id
        order_id_ctx.set(order_id)
        logger.info(
            "gateway notification received order_id=%s status_code=%s payment_id=%s",
            order_id,
            notification.status_code,
            notification.payment_id,
        )
        with self.session_factory() as db:
            signature_ok = self._signature_ok(notification)
            payment = self._find_payment(db, order_id)
            if not signature_ok:
                self._reject(db, notification, raw, INVALID_SIGNATURE, payment)
                db.commit()
                raise InvalidSignature(INVALID_SIGNATURE)

            if payment is None:
                db.add(self._notification_row(notification, raw, signature_valid=True))
                db.commit()
                unknown_orders_total.labels(service=self.service_name, source="webhook").inc()
                gateway_notifications_total.labels(
                    service=self.service_name, status_code=notification.status_code, outcome="unknown_order"
                ).inc()
                logger.error("gateway notification for unknown order order_id=%s", order_id)
                raise UnknownOrder(order_id)

            problem = self._verification_problem(notification, payment)
            if problem is not None:
                self._reject(db, notification, raw, problem, payment)
                db.commit()
                raise AmountMismatch(problem)

            target = STATUS_CODE_TARGETS.get(notification.status_code)
            if target is None:
                db.add(self._notification_row(notification, raw, signature_valid=True))
                db.commit()
                gateway_notifications_total.labels(
                    service=self.service_name, status_code=notification.status_code, outcome="recorded"
                ).inc()
                logger.info(
                    "notification recorded without transition order_id=%s status_code=%s",
                    order_id,
                    notification.status_code,
                )
                return ReconcileOutcome(order_id=order_id, status=payment.status, payment=payment)

            result, registrations = self._apply(
                db,
                order_id,
                target,
                self._notification_fields(notification, raw, target),
                reason=f"gateway_status_{notification.status_code}",
                source="webhook",
            )
            db.add(self._notification_row(notification, raw, signature_valid=True, applied=result.applied))
            notices = self._notices(db, result.payment, registrations)
            db.commit()

        gateway_notifications_total.labels(
            service=self.service_name,
            status_code=notification.status_code,
            outcome="applied" if result.applied else "duplicate",
        ).inc()
        if result.applied:
            self._observe_terminal_e2e(result.payment)
        return ReconcileOutcome(
            order_id=order_id,
            status=result.payment.status,
            applied=result.applied,
            payment=result.payment,
            registrations=registrations,
            notices=notices,
        )

    # Return path, status poll and sweeper

    @staticmethod
    def _gateway_amount_matches(payment: PaymentRecord, amount: Decimal | None, currency: str | None) -> bool:
        if amount is not None and amount != payment.amount:
            return False
        return currency is None or currency == payment.currency

    def reconcile_return(self, order_id: str, source: str = "return") -> ReconcileOutcome:
        """Resolve a payment from its local status, asking the gateway only while PENDING.

        Nothing supplied by the browser besides `order_id` is used.
        """

        order_id_ctx.set(order_id)
        with self.session_factory() as db:
            payment = self._find_payment(db, order_id)
        if payment is None:
            unknown_orders_total.labels(service=self.service_name, source=source).inc()
            logger.warning("reconciliation requested for unknown order order_id=%s source=%s", order_id, source)
            raise UnknownOrder(order_id)
        if payment.status != PENDING:
            return ReconcileOutcome(order_id=order_id, status=payment.status, payment=payment)

        outcome = self.gateway.fetch_outcome(order_id) if self.gateway is not None else None
        if outcome is None:
            reconciliation_requests_total.labels(service=self.service_name, source=source, result="unresolved").inc()
            return ReconcileOutcome(order_id=order_id, status=PENDING, payment=payment)
        if not self._gateway_amount_matches(payment, outcome.amount, outcome.currency):
            reconciliation_requests_total.labels(
                service=self.service_name, source=source, result="amount_mismatch"
            ).inc()
            logger.error(
                "gateway amount disagrees with local record order_id=%s local=%s %s gateway=%s %s",
                order_id,
                payment.amount,
                payment.currency,
                outcome.amount,
                outcome.currency,
            )
            return ReconcileOutcome(order_id=order_id, status=PENDING, payment=payment)

        fields = dict(outcome.fields)
        fields["card_holder_name"] = mask_name(fields.get("card_holder_name"))
        fields["raw_gateway_response"] = outcome.raw
        with self.session_factory() as db:
            result, registrations = self._apply(
                db,
                order_id,
                outcome.target,
                fields,
                reason=f"gateway_retrieval_{outcome.fields.get('gateway_status_code', 'unknown').lower()}",
                source=source,
            )
            notices = self._notices(db, result.payment, registrations)
            db.commit()

        reconciliation_requests_total.labels(
            service=self.service_name, source=source, result="applied" if result.applied else "already_settled"
        ).inc()
        if result.applied:
            self._observe_terminal_e2e(result.payment)
        return ReconcileOutcome(
            order_id=order_id,
            status=result.payment.status,
            applied=result.applied,
            payment=result.payment,
            registrations=registrations,
            notices=notices,
        )

    def payment_view(self, order_id: str) -> tuple[PaymentRecord, list[Registration]]:
        """Current local payment row and its registrations."""

        with self.session_factory() as db:
            payment = self._find_payment(db, order_id)
            if payment is None:
                raise UnknownOrder(order_id)
            return payment, self.materializer.registrations_for(db, payment.id)

    def sweep_pending(self, older_than_seconds: int | None = None, limit: int = 100) -> SweepResult:
        """Reconcile stale PENDING payments whose webhook never arrived."""

        age = settings.pending_sweep_age_seconds if older_than_seconds is None else older_than_seconds
        cutoff = datetime.now(timezone.utc) - timedelta(seconds=age)
        with self.session_factory() as db:
            order_ids = list(
                db.execute(
                    select(PaymentRecord.order_id)
                    .where(PaymentRecord.status == PENDING, PaymentRecord.created_at <= cutoff)
                    .order_by(PaymentRecord.created_at)
                    .limit(limit)
                ).scalars()
            )

        summary = SweepResult()
        for order_id in order_ids:
            summary.checked += 1
            try:
                outcome = self.reconcile_return(order_id, source="sweep")
            except Exception as exc:
                summary.errors += 1
                logger.exception("pending sweep failed order_id=%s error=%s", order_id, exc)
                continue
            if outcome.applied:
                summary.applied += 1
                summary.notices.extend(outcome.notices)
            else:
                summary.unresolved += 1
        logger.info(
            "pending sweep finished checked=%s applied=%s unresolved=%s errors=%s",
            summary.checked,
            summary.applied,
            summary.unresolved,
            summary.errors,
        )
        return summary

    # Support tooling

    @staticmethod
    def _reconciliation_entry(payment: PaymentRecord, actual: int) -> dict:
        items = len((payment.snapshot or {}).get("items") or [])
        expected = items if payment.status in (COMPLETED, REFUNDED) else 0
        return {
            "order_id": payment.order_id,
            "status": payment.status,
            "expected_registrations": expected,
            "actual_registrations": int(actual),
            "balanced": expected == int(actual),
        }

    def reconciliation_report(self, limit: int = 1000) -> dict:
        """Payments whose registration count disagrees with their status and snapshot."""

        with self.session_factory() as db:
            counts = (
                select(Registration.payment_id, func.count(Registration.id).label("registrations"))
                .group_by(Registration.payment_id)
                .subquery()
            )
            rows = db.execute(
                select(PaymentRecord, func.coalesce(counts.c.registrations, 0))
                .outerjoin(counts, counts.c.payment_id == PaymentRecord.id)
                .order_by(PaymentRecord.created_at)
                .limit(limit)
            ).all()
        entries = [self._reconciliation_entry(payment, actual) for payment, actual in rows]
        imbalanced = [entry for entry in entries if not entry["balanced"]]
        return {
            "payments_checked": len(entries),
            "imbalanced_count": len(imbalanced),
            "imbalanced_payments": imbalanced,
        }

    def reconciliation_detail(self, order_id: str) -> dict:
        payment, registrations = self.payment_view(order_id)
        return self._reconciliation_entry(payment, len(registrations))

    def repair_materialization(self, order_id: str) -> ReconcileOutcome:
        """Fill in missing registrations of a COMPLETED payment under a row lock."""

        order_id_ctx.set(order_id)
        with self.session_factory() as db:
            payment = self._find_payment(db, order_id, for_update=True)
            if payment is None:
                raise UnknownOrder(order_id)
            if payment.status != COMPLETED:
                raise IllegalTransition(f"cannot materialize registrations for a {payment.status} payment")
            before = {registration.id for registration in self.materializer.registrations_for(db, payment.id)}
            registrations = self.materializer.materialize(db, payment)
            created = [registration for registration in registrations if registration.id not in before]
            notices = self._notices(db, payment, created)
            db.commit()
        logger.info("materialization repaired order_id=%s created=%s", order_id, len(created))
        return ReconcileOutcome(
            order_id=order_id,
            status=payment.status,
            applied=bool(created),
            payment=payment,
            registrations=registrations,
            notices=notices,
        )
