"""Prometheus metric definitions for the payment confirmation pipeline."""

from prometheus_client import Counter, Histogram, generate_latest
from starlette.responses import Response


gateway_notifications_total = Counter(
    "gateway_notifications_total",
    "Gateway notifications received, by status code and outcome",
    ["service", "status_code", "outcome"],
)
payment_transitions_total = Counter(
    "payment_transitions_total",
    "Payment state transitions attempted",
    ["service", "target", "source", "applied"],
)
duplicate_notifications_skipped_total = Counter(
    "duplicate_notifications_skipped_total",
    "Transitions skipped because another caller already applied them",
    ["service", "source"],
)
invalid_signatures_total = Counter(
    "invalid_signatures_total",
    "Gateway notifications rejected by signature or amount verification",
    ["service", "reason"],
)
unknown_orders_total = Counter(
    "unknown_orders_total",
    "Gateway-known orders with no local payment record",
    ["service", "source"],
)
registrations_created_total = Counter(
    "registrations_created_total",
    "Registrations materialized from completed payments",
    ["service"],
)
code_collisions_total = Counter(
    "code_collisions_total",
    "Unique code candidates rejected because they already exist",
    ["service", "kind"],
)
code_generation_exhausted_total = Counter(
    "code_generation_exhausted_total",
    "Unique code generation runs that exhausted their attempt budget",
    ["service", "kind"],
)
notification_dispatch_total = Counter(
    "notification_dispatch_total",
    "Notification dispatch attempts by template and result",
    ["service", "template", "result"],
)
reconciliation_requests_total = Counter(
    "reconciliation_requests_total",
    "Pull-based reconciliation attempts against the gateway",
    ["service", "source", "result"],
)
webhook_latency_seconds = Histogram(
    "webhook_latency_seconds",
    "Time spent handling one gateway notification",
    ["service"],
)
payment_e2e_seconds = Histogram(
    "payment_e2e_seconds",
    "Payment duration seconds from checkout to terminal state",
    ["service", "terminal_state"],
)
http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["service", "route", "method", "status_code"],
)
http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration seconds",
    ["service", "route", "method"],
)


def metrics_response() -> Response:
    """Expose all registered Prometheus metrics in text format."""

    return Response(content=generate_latest(), media_type="text/plain")
