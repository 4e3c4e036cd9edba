"""Prometheus metric definitions for the payments backend."""

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
payment_initialize_total = Counter(
    "payment_initialize_total", "Checkout initializations by result", ["result"]
)
payment_verify_total = Counter(
    "payment_verify_total", "Checkout verifications by outcome", ["outcome"]
)
gateway_call_seconds = Histogram(
    "gateway_call_seconds", "Payment gateway round trip seconds", ["operation"]
)
orders_created_total = Counter("orders_created_total", "Orders appended to the ledger", ["trust"])
admin_login_total = Counter("admin_login_total", "Admin login attempts by result", ["result"])


def metrics_response() -> Response:
    """Expose all registered Prometheus metrics in text format."""

    return Response(content=generate_latest(), media_type="text/plain")
