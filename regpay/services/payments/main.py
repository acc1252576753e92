"""Registration payments API.

Receives gateway notifications, reconciles browser returns and status polls,
creates checkouts for the forum tier, and exposes support endpoints for
reconciliation reports, repairs and the pending sweep.
"""

import asyncio
import functools
from time import perf_counter
from uuid import uuid4

from fastapi import BackgroundTasks, FastAPI, Header, HTTPException, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import RedirectResponse
from pydantic import ValidationError

from regpay.common.config import settings
from regpay.common.db import SessionLocal
from regpay.common.errors import CheckoutError, IllegalTransition, InvalidSignature, UnknownOrder
from regpay.common.logging import configure_logging, logger, trace_id_ctx
from regpay.common.metrics import (
    http_request_duration_seconds,
    http_requests_total,
    metrics_response,
    notification_dispatch_total,
    webhook_latency_seconds,
)
from regpay.common.startup import log_startup_config
from regpay.common.state_machine import COMPLETED, PENDING
from regpay.common.tracing import instrument_app, setup_tracing
from regpay.services.payments.gateway_client import PayHereClient
from regpay.services.payments.notifications import NotificationDispatcher
from regpay.services.payments.schemas import (
    CheckoutRequest,
    CheckoutResponse,
    PayHereNotification,
    PaymentStatusResponse,
    ReconciliationEntry,
    RegistrationSummary,
    SweepRequest,
)
from regpay.services.payments.service import RegistrationPaymentService

configure_logging()
setup_tracing(settings.service_name)
log_startup_config(
    settings.service_name,
    [
        "SERVICE_NAME",
        "POSTGRES_DSN",
        "PAYHERE_MODE",
        "PAYHERE_MERCHANT_ID",
        "PAYHERE_MERCHANT_SECRET",
        "PAYHERE_APP_ID",
        "NOTIFICATION_API_URL",
        "WEBHOOK_DEADLINE_SECONDS",
        "FRONTEND_URL",
    ],
)
service = RegistrationPaymentService(
    SessionLocal,
    gateway=PayHereClient(
        settings.payhere_host,
        settings.payhere_app_id,
        settings.payhere_app_secret,
        timeout_seconds=settings.gateway_timeout_seconds,
    ),
    service_name=settings.service_name,
)
dispatcher = NotificationDispatcher(
    SessionLocal,
    settings.notification_api_url,
    timeout_seconds=settings.notification_timeout_seconds,
    service_name=settings.service_name,
)
app = FastAPI(title="Competition Registration Payments")
instrument_app(app)


@app.middleware("http")
async def metrics_middleware(request: Request, call_next):
    """Record request count and latency for every HTTP call."""

    start = perf_counter()
    route = request.url.path
    method = request.method
    status_code = 500
    try:
        response = await call_next(request)
        status_code = response.status_code
        route_obj = request.scope.get("route")
        if route_obj is not None and getattr(route_obj, "path", None):
            route = route_obj.path
        return response
    finally:
        elapsed = max(0.0, perf_counter() - start)
        http_request_duration_seconds.labels(
            service=settings.service_name,
            route=route,
            method=method,
        ).observe(elapsed)
        http_requests_total.labels(
            service=settings.service_name,
            route=route,
            method=method,
            status_code=str(status_code),
        ).inc()


def enforce_api_key(x_api_key: str | None) -> None:
    """Reject requests that do not provide the configured API key."""

    if x_api_key != settings.api_key:
        raise HTTPException(status_code=401, detail="invalid API key")


def _frontend_page(status: str) -> str:
    if status == COMPLETED:
        return "success"
    if status == PENDING:
        return "processing"
    return "failed"


def _redirect(status: str, order_id: str) -> RedirectResponse:
    url = f"{settings.frontend_url.rstrip('/')}/competitions/payment/{_frontend_page(status)}/{order_id}"
    return RedirectResponse(url, status_code=303)


_late_handlings: set[asyncio.Future] = set()


def _finish_late_handling(order_id: str, handling: asyncio.Future) -> None:
    """Dispatch notices from a notification handler that finished after its deadline."""

    _late_handlings.discard(handling)
    if handling.cancelled():
        return
    exc = handling.exception()
    if exc is not None:
        logger.error("late notification handling failed order_id=%s error=%r", order_id, exc)
        return
    outcome = handling.result()
    if not outcome.notices:
        return
    logger.warning(
        "notification handling finished after deadline order_id=%s; dispatching %s notice(s)",
        order_id,
        len(outcome.notices),
    )
    notification_dispatch_total.labels(service=settings.service_name, template="*", result="late").inc()
    task = asyncio.ensure_future(dispatcher.dispatch(outcome.notices))
    _late_handlings.add(task)
    task.add_done_callback(_late_handlings.discard)


@app.post("/competitions/payment/notify")
async def payment_notify(request: Request, background_tasks: BackgroundTasks):
    """Gateway IPN endpoint.

    200 acknowledges the notification (including duplicates); 400/404 are
    terminal rejections; 500 asks the gateway to retry.
    """

    trace_id_ctx.set(request.headers.get("x-trace-id") or str(uuid4()))
    form = await request.form()
    raw = {key: str(value) for key, value in form.items()}
    try:
        notification = PayHereNotification.model_validate(raw)
    except ValidationError as exc:
        logger.warning("malformed gateway notification fields=%s errors=%s", sorted(raw), exc.error_count())
        raise HTTPException(status_code=400, detail="malformed notification") from exc

    handling = asyncio.ensure_future(run_in_threadpool(service.handle_notification, notification, raw))
    with webhook_latency_seconds.labels(service=settings.service_name).time():
        try:
            outcome = await asyncio.wait_for(asyncio.shield(handling), timeout=settings.webhook_deadline_seconds)
        except UnknownOrder as exc:
            raise HTTPException(status_code=404, detail="Payment not found") from exc
        except InvalidSignature as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        except asyncio.TimeoutError as exc:
            logger.error(
                "notification handling exceeded deadline order_id=%s deadline=%ss",
                notification.order_id,
                settings.webhook_deadline_seconds,
            )
            # The handler keeps running and may still commit; the gateway
            # retry lands on the duplicate path, so its notices go out from here.
            _late_handlings.add(handling)
            handling.add_done_callback(functools.partial(_finish_late_handling, notification.order_id))
            raise HTTPException(status_code=500, detail="processing deadline exceeded") from exc
        except Exception as exc:
            logger.exception("notification processing failed order_id=%s", notification.order_id)
            raise HTTPException(status_code=500, detail="processing failed") from exc

    if outcome.notices:
        background_tasks.add_task(dispatcher.dispatch, outcome.notices)
    return {"ok": True, "order_id": outcome.order_id, "status": outcome.status, "applied": outcome.applied}


@app.get("/competitions/payment/return")
async def payment_return(order_id: str, background_tasks: BackgroundTasks):
    """Browser landing after checkout; only `order_id` is read from the query."""

    trace_id_ctx.set(str(uuid4()))
    try:
        outcome = await run_in_threadpool(service.reconcile_return, order_id)
    except UnknownOrder:
        return _redirect("UNKNOWN", order_id)
    except Exception:
        logger.exception("return reconciliation failed order_id=%s", order_id)
        return _redirect(PENDING, order_id)
    if outcome.notices:
        background_tasks.add_task(dispatcher.dispatch, outcome.notices)
    return _redirect(outcome.status, order_id)


@app.get("/competitions/payment/status/{order_id}", response_model=PaymentStatusResponse)
async def payment_status(order_id: str, background_tasks: BackgroundTasks):
    """Reconciled status for the processing page to poll."""

    try:
        outcome = await run_in_threadpool(service.reconcile_return, order_id, "status")
    except UnknownOrder as exc:
        raise HTTPException(status_code=404, detail="Payment not found") from exc
    except Exception:
        # Same as the return page: show whatever is stored locally and let the
        # next poll try again.
        logger.exception("status reconciliation failed order_id=%s", order_id)
    else:
        if outcome.notices:
            background_tasks.add_task(dispatcher.dispatch, outcome.notices)
    try:
        payment, registrations = await run_in_threadpool(service.payment_view, order_id)
    except UnknownOrder as exc:
        raise HTTPException(status_code=404, detail="Payment not found") from exc
    return PaymentStatusResponse(
        order_id=payment.order_id,
        status=payment.status,
        amount=payment.amount,
        currency=payment.currency,
        completed_at=payment.completed_at,
        registrations=[
            RegistrationSummary(
                registration_number=registration.registration_number,
                display_code=registration.display_code,
                competition_id=registration.competition_id,
                status=registration.status,
                amount_paid=registration.amount_paid,
                currency=registration.currency,
            )
            for registration in registrations
        ],
    )


@app.post("/internal/checkout", response_model=CheckoutResponse)
def create_checkout(req: CheckoutRequest, x_api_key: str | None = Header(default=None)):
    """Create a PENDING payment for the user's active cart."""

    enforce_api_key(x_api_key)
    try:
        return service.create_checkout(req)
    except CheckoutError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@app.get("/internal/reconciliation")
def reconciliation_report(limit: int = 1000, x_api_key: str | None = Header(default=None)):
    """Return payments whose registrations disagree with their status."""

    enforce_api_key(x_api_key)
    return service.reconciliation_report(limit)


@app.post("/internal/reconciliation/sweep")
def reconciliation_sweep(
    req: SweepRequest,
    background_tasks: BackgroundTasks,
    x_api_key: str | None = Header(default=None),
):
    """Reconcile stale PENDING payments against the gateway."""

    enforce_api_key(x_api_key)
    result = service.sweep_pending(req.older_than_seconds, req.limit)
    if result.notices:
        background_tasks.add_task(dispatcher.dispatch, result.notices)
    return {
        "checked": result.checked,
        "applied": result.applied,
        "unresolved": result.unresolved,
        "errors": result.errors,
    }


@app.get("/internal/reconciliation/{order_id}", response_model=ReconciliationEntry)
def reconciliation_detail(order_id: str, x_api_key: str | None = Header(default=None)):
    enforce_api_key(x_api_key)
    try:
        return service.reconciliation_detail(order_id)
    except UnknownOrder as exc:
        raise HTTPException(status_code=404, detail="Payment not found") from exc


@app.post("/internal/reconciliation/{order_id}/repair")
def reconciliation_repair(
    order_id: str,
    background_tasks: BackgroundTasks,
    x_api_key: str | None = Header(default=None),
):
    """Create any registrations a COMPLETED payment is missing."""

    enforce_api_key(x_api_key)
    try:
        outcome = service.repair_materialization(order_id)
    except UnknownOrder as exc:
        raise HTTPException(status_code=404, detail="Payment not found") from exc
    except IllegalTransition as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    if outcome.notices:
        background_tasks.add_task(dispatcher.dispatch, outcome.notices)
    return {
        "order_id": order_id,
        "created": len(outcome.notices),
        "registrations": [registration.registration_number for registration in outcome.registrations],
    }


@app.get("/metrics")
def metrics():
    """Prometheus scrape endpoint."""

    return metrics_response()


@app.get("/health")
def health():
    """Container health probe endpoint."""

    return {"ok": True}
