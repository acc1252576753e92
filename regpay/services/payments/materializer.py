"""Turn a completed payment's cart snapshot into confirmed registrations.

`materialize` runs inside the caller's transaction, right after the caller won
the PENDING -> COMPLETED conditional update. Any exception it raises must roll
that whole transaction back, so the payment is either COMPLETED with exactly one
registration per snapshot item or still PENDING with none.
"""

from collections.abc import Callable
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError

from regpay.common.codes import (
    GLOBAL_SCOPE,
    display_code_candidate,
    display_code_scope,
    generate_unique_code,
    registration_number_candidate,
)
from regpay.common.errors import CodeGenerationExhausted
from regpay.common.logging import logger
from regpay.common.metrics import code_collisions_total, registrations_created_total
from regpay.services.payments.models import PaymentRecord, Registration, RegistrationCart


class RegistrationMaterializer:
    """Creates one CONFIRMED registration per snapshot item, all or nothing."""

    def __init__(
        self,
        max_code_attempts: int = 10,
        registration_number_fn: Callable[[], str] = registration_number_candidate,
        display_code_fn: Callable[[int], str] = display_code_candidate,
        service_name: str = "registration-payments",
    ) -> None:
        self.max_code_attempts = max_code_attempts
        self.registration_number_fn = registration_number_fn
        self.display_code_fn = display_code_fn
        self.service_name = service_name

    @staticmethod
    def snapshot_items(payment: PaymentRecord) -> list[dict]:
        return list((payment.snapshot or {}).get("items") or [])

    def registrations_for(self, db, payment_id: str) -> list[Registration]:
        return list(
            db.execute(
                select(Registration).where(Registration.payment_id == payment_id).order_by(Registration.created_at)
            ).scalars()
        )

    def materialize(self, db, payment: PaymentRecord) -> list[Registration]:
        """Return the full registration set for `payment`, creating what is missing."""

        items = self.snapshot_items(payment)
        if not items:
            raise ValueError(f"payment {payment.order_id} has no cart item snapshot")

        existing = self.registrations_for(db, payment.id)
        if len(existing) >= len(items):
            logger.info(
                "materialization skipped order_id=%s registrations=%s items=%s",
                payment.order_id,
                len(existing),
                len(items),
            )
            return existing

        done = {registration.cart_item_id for registration in existing}
        confirmed_at = datetime.now(timezone.utc)
        created: list[Registration] = []
        for item in items:
            if item["id"] in done:
                continue
            created.append(self._create_registration(db, payment, item, confirmed_at))

        self._complete_cart(db, payment)
        registrations_created_total.labels(service=self.service_name).inc(len(created))
        logger.info(
            "registrations materialized order_id=%s created=%s numbers=%s",
            payment.order_id,
            len(created),
            [registration.registration_number for registration in created],
        )
        return existing + created

    def _registration_number_taken(self, db, _scope: str, code: str) -> bool:
        return (
            db.execute(select(Registration.id).where(Registration.registration_number == code)).first()
            is not None
        )

    def _display_code_taken(self, db, competition_id: str, code: str) -> bool:
        return (
            db.execute(
                select(Registration.id).where(
                    Registration.competition_id == competition_id,
                    Registration.display_code == code,
                )
            ).first()
            is not None
        )

    def _existing_for_item(self, db, payment_id: str, cart_item_id: str) -> Registration | None:
        return db.execute(
            select(Registration).where(
                Registration.payment_id == payment_id,
                Registration.cart_item_id == cart_item_id,
            )
        ).scalar_one_or_none()

    def _create_registration(self, db, payment: PaymentRecord, item: dict, confirmed_at: datetime) -> Registration:
        """Insert one registration, retrying with fresh codes on a unique violation."""

        competition_id = item["competition_id"]
        year = int(item["competition_year"])
        for attempt in range(1, self.max_code_attempts + 1):
            registration_number = generate_unique_code(
                GLOBAL_SCOPE,
                self.registration_number_fn,
                lambda scope, code: self._registration_number_taken(db, scope, code),
                self.max_code_attempts,
                kind="registration_number",
            )
            display_code = generate_unique_code(
                display_code_scope(competition_id, year),
                lambda: self.display_code_fn(year),
                lambda _scope, code: self._display_code_taken(db, competition_id, code),
                self.max_code_attempts,
                kind="display_code",
            )
            registration = Registration(
                registration_number=registration_number,
                display_code=display_code,
                user_id=payment.user_id,
                competition_id=competition_id,
                registration_type_id=item["registration_type_id"],
                payment_id=payment.id,
                cart_item_id=item["id"],
                country=item["country"],
                participant_type=item["participant_type"],
                team_name=item.get("team_name"),
                company_name=item.get("company_name"),
                members=item.get("members") or [],
                amount_paid=Decimal(str(item["subtotal"])),
                currency=payment.currency,
                status="CONFIRMED",
                confirmed_at=confirmed_at,
            )
            try:
                with db.begin_nested():
                    db.add(registration)
            except IntegrityError:
                # Either a code was taken between the check and the insert, or
                # this item already has its registration.
                already = self._existing_for_item(db, payment.id, item["id"])
                if already is not None:
                    return already
                code_collisions_total.labels(service=self.service_name, kind="insert").inc()
                logger.warning(
                    "registration insert collided order_id=%s item_id=%s attempt=%s/%s",
                    payment.order_id,
                    item["id"],
                    attempt,
                    self.max_code_attempts,
                )
                continue
            return registration
        raise CodeGenerationExhausted(f"registration:{payment.order_id}:{item['id']}", self.max_code_attempts)

    def _complete_cart(self, db, payment: PaymentRecord) -> None:
        cart_id = (payment.snapshot or {}).get("cart_id")
        if not cart_id:
            return
        db.execute(update(RegistrationCart).where(RegistrationCart.id == cart_id).values(status="COMPLETED"))
