"""HTTP surface for checkout reconciliation, the order ledger and admin routes.

Every route is served under ``/api`` and unprefixed; payment routes are also
mirrored under ``/paystack`` for older storefront builds.
"""

from contextlib import asynccontextmanager
from datetime import timedelta
from time import perf_counter
from typing import Any
from uuid import uuid4

import uvicorn
from fastapi import APIRouter, Body, Depends, FastAPI, Header, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from flavourhub.common.config import Settings, get_settings
from flavourhub.common.errors import (
    ConfigurationError,
    FlavourHubError,
    GatewayError,
)
from flavourhub.common.logging import configure_logging, logger, trace_id_ctx
from flavourhub.common.metrics import (
    http_request_duration_seconds,
    http_requests_total,
    metrics_response,
)
from flavourhub.common.startup import log_startup_config, report_missing_secrets
from flavourhub.common.tracing import instrument_app, setup_tracing
from flavourhub.services.admin.session import AdminSessionGate, bearer_token
from flavourhub.services.menu.store import InMemoryMenuStore, MenuDocument
from flavourhub.services.orders.ledger import InMemoryOrderLedger, OrderLedger, OrderTrust
from flavourhub.services.payments.gateway import PaystackClient
from flavourhub.services.payments.orchestrator import (
    OUTCOME_AMBIGUOUS,
    ReconciliationOrchestrator,
)
from flavourhub.services.payments.reference import ReferenceGenerator
from flavourhub.services.payments.schemas import (
    InitializeRequest,
    InitializeResponse,
    LoginRequest,
    LoginResponse,
    OrderCreatedResponse,
    VerifyResponse,
)

STARTUP_KEYS = [
    "SERVICE_NAME",
    "PAYSTACK_BASE_URL",
    "PAYSTACK_SECRET_KEY",
    "PAYSTACK_PUBLIC_KEY",
    "ADMIN_PASSWORD",
    "ADMIN_SECRET_KEY",
    "MIN_AMOUNT_MINOR",
    "DEFAULT_CURRENCY",
    "ALLOW_CLIENT_REPORTED_ORDERS",
]


def get_orchestrator(request: Request) -> ReconciliationOrchestrator:
    return request.app.state.orchestrator


def get_menu_store(request: Request) -> InMemoryMenuStore:
    return request.app.state.menu_store


def require_admin(request: Request, authorization: str | None = Header(default=None)) -> None:
    """Reject the request unless it carries a valid admin bearer token."""

    gate: AdminSessionGate | None = request.app.state.admin_gate
    if gate is None:
        raise ConfigurationError("admin gate is not configured")
    gate.authorize(bearer_token(authorization))


payments_router = APIRouter()
router = APIRouter()


@payments_router.post("/initialize", response_model=InitializeResponse)
def initialize_payment(
    req: InitializeRequest,
    orchestrator: ReconciliationOrchestrator = Depends(get_orchestrator),
):
    """Generate a reference and open a gateway transaction for it."""

    outcome = orchestrator.initialize_checkout(
        req.email,
        req.amount,
        currency=req.currency,
        customer=req.customer,
        order=req.order,
    )
    return InitializeResponse(
        reference=outcome.reference,
        public_artifact=outcome.authorization_url,
        authorization_url=outcome.authorization_url,
        access_code=outcome.access_code,
        public_key=outcome.public_key,
    )


@payments_router.get("/verify/{reference}", response_model=VerifyResponse)
def verify_payment(
    reference: str,
    orchestrator: ReconciliationOrchestrator = Depends(get_orchestrator),
):
    """Ask the gateway about a reference and settle the order on success."""

    try:
        outcome = orchestrator.verify_checkout(reference)
    except GatewayError as exc:
        # Uncertain, not failed: the client may poll again.
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "error": exc.public_message(),
                "reference": reference,
                "status": "unknown",
                "outcome": OUTCOME_AMBIGUOUS,
                "paid": False,
            },
        )
    return VerifyResponse(
        status=outcome.status,
        outcome=outcome.outcome,
        paid=outcome.paid,
        reference=outcome.reference,
        amount=outcome.amount_minor,
        currency=outcome.currency,
        paid_at=outcome.paid_at,
        order_id=outcome.order.id if outcome.order else None,
    )


@router.post("/orders", response_model=OrderCreatedResponse)
def create_order(
    payload: dict[str, Any] = Body(...),
    orchestrator: ReconciliationOrchestrator = Depends(get_orchestrator),
):
    """Save a paid order.

    With a ``reference`` the payment is verified with the gateway first;
    without one the order is recorded as client-reported.
    """

    trust = OrderTrust.GATEWAY_VERIFIED if payload.get("reference") else OrderTrust.CLIENT_REPORTED
    order = orchestrator.create_order(payload, trust)
    return OrderCreatedResponse(success=True, order=order.to_dict())


@router.get("/orders/admin", dependencies=[Depends(require_admin)])
def list_orders(orchestrator: ReconciliationOrchestrator = Depends(get_orchestrator)):
    """All orders in insertion order."""

    return [order.to_dict() for order in orchestrator.list_orders()]


@router.post("/admin/login", response_model=LoginResponse)
def admin_login(req: LoginRequest, request: Request):
    gate: AdminSessionGate | None = request.app.state.admin_gate
    if gate is None:
        raise ConfigurationError("admin gate is not configured")
    return LoginResponse(token=gate.login(req.password))


@router.get("/admin/checkouts/{reference}", dependencies=[Depends(require_admin)])
def get_checkout(
    reference: str,
    orchestrator: ReconciliationOrchestrator = Depends(get_orchestrator),
):
    """Checkout state and transition timeline for support lookups."""

    attempt = orchestrator.checkout(reference)
    if attempt is None:
        return JSONResponse(status_code=404, content={"error": "Checkout not found."})
    return attempt.snapshot()


@router.put("/admin/menu", dependencies=[Depends(require_admin)])
def save_menu(
    payload: Any = Body(...),
    menu_store: InMemoryMenuStore = Depends(get_menu_store),
):
    """Replace the menu; any accepted upload shape is normalized first."""

    document = menu_store.save(payload)
    return document.model_dump(by_alias=True)


@router.get("/menu", response_model=MenuDocument)
def get_menu(menu_store: InMemoryMenuStore = Depends(get_menu_store)):
    return menu_store.get()


async def domain_error_handler(request: Request, exc: FlavourHubError) -> JSONResponse:
    """Translate domain errors into client-safe JSON bodies."""

    if isinstance(exc, ConfigurationError):
        logger.error("configuration_error path=%s detail=%s", request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"error": exc.public_message()})


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = [
        {"loc": list(error.get("loc", ())), "msg": error.get("msg", "")} for error in exc.errors()
    ]
    return JSONResponse(status_code=400, content={"error": "Invalid request.", "details": details})


def build_admin_gate(settings: Settings) -> AdminSessionGate | None:
    """Construct the gate at startup; a missing secret disables admin routes."""

    try:
        return AdminSessionGate(
            settings.admin_password,
            settings.admin_secret_key,
            ttl=timedelta(hours=settings.admin_token_ttl_hours),
        )
    except ConfigurationError as exc:
        logger.error("admin routes disabled: %s", exc.message)
        return None


def create_app(
    settings: Settings | None = None,
    gateway: PaystackClient | None = None,
    ledger: OrderLedger | None = None,
    menu_store: InMemoryMenuStore | None = None,
    references: ReferenceGenerator | None = None,
) -> FastAPI:
    """Wire settings, shared resources and routes into one app instance."""

    settings = settings or get_settings()
    configure_logging(settings)
    setup_tracing(settings)
    log_startup_config(settings.service_name, STARTUP_KEYS)
    report_missing_secrets("gateway", settings.missing_gateway_secrets())
    report_missing_secrets("admin", settings.missing_admin_secrets())

    gateway = gateway or PaystackClient(
        settings.paystack_secret_key,
        base_url=settings.paystack_base_url,
        timeout=settings.gateway_timeout_seconds,
        min_amount_minor=settings.min_amount_minor,
        default_currency=settings.default_currency,
        public_key=settings.paystack_public_key,
    )
    orchestrator = ReconciliationOrchestrator(
        gateway,
        ledger if ledger is not None else InMemoryOrderLedger(),
        references or ReferenceGenerator(settings.reference_prefix),
        min_amount_minor=settings.min_amount_minor,
        default_currency=settings.default_currency,
        allow_client_reported_orders=settings.allow_client_reported_orders,
    )

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        """Release the gateway connection pool on shutdown."""

        yield
        gateway.close()

    app = FastAPI(title="FlavourHub Payments", lifespan=lifespan)
    app.state.settings = settings
    app.state.orchestrator = orchestrator
    app.state.admin_gate = build_admin_gate(settings)
    app.state.menu_store = menu_store if menu_store is not None else InMemoryMenuStore()
    instrument_app(app)

    @app.middleware("http")
    async def metrics_middleware(request: Request, call_next):
        """Record request count and latency; bind a trace id for log records."""

        trace_id_ctx.set(request.headers.get("x-correlation-id") or str(uuid4()))
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

    app.add_exception_handler(FlavourHubError, domain_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)

    for prefix in ("/api/payments", "/payments", "/api/paystack", "/paystack"):
        app.include_router(
            payments_router, prefix=prefix, include_in_schema=prefix == "/api/payments"
        )
    app.include_router(router, prefix="/api")
    app.include_router(router, include_in_schema=False)

    @app.get("/")
    def root():
        return {"ok": True, "service": settings.service_name}

    @app.get("/metrics")
    def metrics():
        """Prometheus scrape endpoint."""

        return metrics_response()

    @app.get("/health")
    def health():
        """Container health probe endpoint."""

        return {"ok": True}

    return app


app = create_app()


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=3000)
