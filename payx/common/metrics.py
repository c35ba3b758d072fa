"""Prometheus metric definitions."""

from prometheus_client import Counter, Histogram, generate_latest
from starlette.responses import Response


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
payments_recorded_total = Counter(
    "payments_recorded_total",
    "Payment records appended to the ledger",
    ["service", "source"],
)
payment_record_failures_total = Counter(
    "payment_record_failures_total",
    "Payment records the ledger refused or never received",
    ["service", "source"],
)
reconcile_transactions_total = Counter(
    "reconcile_transactions_total",
    "Reconciled transfers by outcome",
    ["service", "outcome"],
)
upstream_failures_total = Counter(
    "upstream_failures_total",
    "Failed calls to external dependencies",
    ["service", "dependency"],
)
paywall_decisions_total = Counter(
    "paywall_decisions_total",
    "Paywall outcomes per protected route",
    ["service", "route", "decision"],
)
sync_duration_seconds = Histogram(
    "sync_duration_seconds",
    "Blockchain sync duration seconds",
    ["service", "mode"],
)


def metrics_response() -> Response:
    """Expose all registered Prometheus metrics in text format."""

    return Response(content=generate_latest(), media_type="text/plain")
