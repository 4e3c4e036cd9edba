"""Shared fixtures: a call-counting fake gateway and wired-up components."""

import threading
from datetime import timedelta

import pytest

from flavourhub.common.config import Settings
from flavourhub.common.errors import GatewayUnavailable
from flavourhub.services.admin.session import AdminSessionGate
from flavourhub.services.orders.ledger import InMemoryOrderLedger
from flavourhub.services.payments.gateway import InitializeResult, VerifyResult
from flavourhub.services.payments.orchestrator import ReconciliationOrchestrator
from flavourhub.services.payments.reference import ReferenceGenerator

ADMIN_PASSWORD = "open-sesame"
ADMIN_SECRET = "test-signing-key-with-enough-length-for-hs256"


class FakeGateway:
    """Stands in for the Paystack client; records every call."""

    public_key = "pk_test_fake"

    def __init__(self) -> None:
        self.initialize_calls: list[dict] = []
        self.verify_calls: list[str] = []
        self.verify_results: dict[str, VerifyResult] = {}
        self.verify_error: Exception | None = None
        self.initialize_error: Exception | None = None
        self._lock = threading.Lock()

    def initialize(self, email, amount_minor, currency=None, reference=None, metadata=None):
        with self._lock:
            self.initialize_calls.append(
                {
                    "email": email,
                    "amount_minor": amount_minor,
                    "currency": currency,
                    "reference": reference,
                    "metadata": metadata,
                }
            )
        if self.initialize_error is not None:
            raise self.initialize_error
        return InitializeResult(
            reference=reference,
            authorization_url=f"https://checkout.example/{reference}",
            access_code=f"ac_{reference}",
        )

    def report(self, reference, status="success", amount=500, currency="GHS", metadata=None):
        self.verify_results[reference] = VerifyResult(
            reference=reference,
            status=status,
            amount_minor=amount,
            currency=currency,
            paid_at="2026-10-18T12:00:00.000Z" if status == "success" else None,
            metadata=metadata or {},
        )

    def verify(self, reference):
        with self._lock:
            self.verify_calls.append(reference)
        if self.verify_error is not None:
            raise self.verify_error
        result = self.verify_results.get(reference)
        if result is None:
            raise GatewayUnavailable(reference=reference)
        return result

    def close(self) -> None:
        pass


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def ledger():
    return InMemoryOrderLedger()


@pytest.fixture
def orchestrator(gateway, ledger):
    return ReconciliationOrchestrator(gateway, ledger, ReferenceGenerator("FH"))


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        paystack_secret_key="sk_test_fake",
        paystack_public_key="pk_test_fake",
        admin_password=ADMIN_PASSWORD,
        admin_secret_key=ADMIN_SECRET,
    )


@pytest.fixture
def gate():
    return AdminSessionGate(ADMIN_PASSWORD, ADMIN_SECRET, ttl=timedelta(hours=12))
