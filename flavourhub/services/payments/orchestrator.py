"""Reconciliation between client checkouts and gateway-confirmed transactions.

Owns the per-checkout state machine. Locks are only held around local state
(checkout tracker, ledger); gateway round trips always run outside them.
Only a gateway ``success`` creates a gateway-verified order, and insertion is
reference-keyed upsert-if-absent, so repeated or concurrent verification of
one reference yields one order.
"""

import copy
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from flavourhub.common.errors import (
    GatewayError,
    PersistenceError,
    ValidationError,
)
from flavourhub.common.logging import logger, reference_ctx
from flavourhub.common.metrics import (
    orders_created_total,
    payment_initialize_total,
    payment_verify_total,
)
from flavourhub.common.state_machine import (
    AMBIGUOUS,
    INITIALIZED,
    REJECTED,
    REQUESTED,
    SETTLED,
    VERIFYING,
    validate_transition,
)
from flavourhub.services.orders.ledger import Order, OrderLedger, OrderTrust
from flavourhub.services.payments.gateway import PaystackClient, validate_amount
from flavourhub.services.payments.reference import ReferenceGenerator

OUTCOME_SETTLED = "settled"
OUTCOME_REJECTED = "rejected"
OUTCOME_AMBIGUOUS = "ambiguous"

_OUTCOME_STATES = {
    OUTCOME_SETTLED: SETTLED,
    OUTCOME_REJECTED: REJECTED,
    OUTCOME_AMBIGUOUS: AMBIGUOUS,
}


@dataclass
class CheckoutAttempt:
    """Local record of one checkout, keyed by its payment reference."""

    reference: str
    state: str
    email: str | None = None
    amount_minor: int | None = None
    currency: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    issued_here: bool = True
    timeline: list[dict[str, Any]] = field(default_factory=list)

    def snapshot(self) -> dict[str, Any]:
        return {
            "reference": self.reference,
            "state": self.state,
            "amount": self.amount_minor,
            "currency": self.currency,
            "timeline": copy.deepcopy(self.timeline),
        }


class CheckoutTracker:
    """Thread-safe registry of checkout attempts and their transitions."""

    def __init__(self) -> None:
        self._attempts: dict[str, CheckoutAttempt] = {}
        self._lock = threading.Lock()

    def _move(self, attempt: CheckoutAttempt, new_state: str, reason: str) -> None:
        validate_transition(attempt.state, new_state)
        attempt.timeline.append(
            {
                "from": attempt.state,
                "to": new_state,
                "reason": reason,
                "at": datetime.now(timezone.utc).isoformat(),
            }
        )
        attempt.state = new_state

    def register(self, attempt: CheckoutAttempt) -> None:
        with self._lock:
            if attempt.reference in self._attempts:
                raise ValueError(f"checkout already registered for {attempt.reference}")
            attempt.timeline.append(
                {
                    "from": None,
                    "to": attempt.state,
                    "reason": "checkout_requested",
                    "at": datetime.now(timezone.utc).isoformat(),
                }
            )
            self._attempts[attempt.reference] = attempt

    def discard(self, reference: str) -> None:
        with self._lock:
            self._attempts.pop(reference, None)

    def mark_initialized(self, reference: str) -> None:
        with self._lock:
            self._move(self._attempts[reference], INITIALIZED, "gateway_initialized")

    def begin_verification(self, reference: str) -> CheckoutAttempt:
        """Enter ``VERIFYING``; references this process never initialized start at ``INITIALIZED``."""

        with self._lock:
            attempt = self._attempts.get(reference)
            if attempt is None:
                attempt = CheckoutAttempt(reference=reference, state=INITIALIZED, issued_here=False)
                attempt.timeline.append(
                    {
                        "from": None,
                        "to": INITIALIZED,
                        "reason": "initialized_elsewhere",
                        "at": datetime.now(timezone.utc).isoformat(),
                    }
                )
                self._attempts[reference] = attempt
            if attempt.state == REQUESTED:
                raise ValidationError("Checkout is still being initialized.")
            # Concurrent verifications of one reference share the VERIFYING state.
            if attempt.state not in (VERIFYING, SETTLED):
                self._move(attempt, VERIFYING, "verify_requested")
            return copy.deepcopy(attempt)

    def record_outcome(self, reference: str, outcome: str, reason: str) -> None:
        """Store a verification outcome; a settled checkout stays settled.

        Unsettled attempts for references this process never issued are
        dropped, so anonymous verify calls cannot grow the registry.
        """

        target = _OUTCOME_STATES[outcome]
        with self._lock:
            attempt = self._attempts.get(reference)
            if attempt is None or attempt.state == SETTLED:
                return
            if attempt.state != VERIFYING:
                # Another racer already finished this round.
                self._move(attempt, VERIFYING, "verify_requested")
            self._move(attempt, target, reason)
            if target != SETTLED and not attempt.issued_here:
                del self._attempts[reference]

    def get(self, reference: str) -> CheckoutAttempt | None:
        with self._lock:
            attempt = self._attempts.get(reference)
            return copy.deepcopy(attempt) if attempt else None


@dataclass
class InitializeOutcome:
    reference: str
    authorization_url: str | None
    access_code: str | None
    public_key: str | None


@dataclass
class VerificationOutcome:
    """Result of one verify round, as reported to the caller."""

    reference: str
    outcome: str
    status: str
    amount_minor: int | None = None
    currency: str | None = None
    paid_at: str | None = None
    order: Order | None = None
    created: bool = False

    @property
    def paid(self) -> bool:
        return self.outcome == OUTCOME_SETTLED


class ReconciliationOrchestrator:
    """Stitches reference generation, gateway calls and the order ledger together."""

    def __init__(
        self,
        gateway: PaystackClient,
        ledger: OrderLedger,
        references: ReferenceGenerator,
        min_amount_minor: int = 50,
        default_currency: str = "GHS",
        allow_client_reported_orders: bool = True,
        tracker: CheckoutTracker | None = None,
    ) -> None:
        self.gateway = gateway
        self.ledger = ledger
        self.references = references
        self.min_amount_minor = min_amount_minor
        self.default_currency = default_currency
        self.allow_client_reported_orders = allow_client_reported_orders
        self.tracker = tracker or CheckoutTracker()

    def _validate_currency(self, currency: str | None) -> str:
        if currency is None or currency == "":
            return self.default_currency
        if not isinstance(currency, str) or len(currency) != 3 or not currency.isalpha():
            raise ValidationError("Currency must be a 3-letter code.")
        return currency.upper()

    def initialize_checkout(
        self,
        email: str | None,
        amount: Any,
        currency: str | None = None,
        customer: dict[str, Any] | None = None,
        order: dict[str, Any] | None = None,
    ) -> InitializeOutcome:
        """``REQUESTED -> INITIALIZED``. No order is created here."""

        if not email or not str(email).strip():
            raise ValidationError("Email is required.")
        amount_minor = validate_amount(amount, self.min_amount_minor)
        currency = self._validate_currency(currency)

        reference = self.references.generate()
        reference_ctx.set(reference)
        metadata = {key: value for key, value in (("customer", customer), ("order", order)) if value}
        self.tracker.register(
            CheckoutAttempt(
                reference=reference,
                state=REQUESTED,
                email=str(email).strip(),
                amount_minor=amount_minor,
                currency=currency,
                metadata=copy.deepcopy(metadata),
            )
        )
        try:
            result = self.gateway.initialize(
                str(email).strip(),
                amount_minor,
                currency=currency,
                reference=reference,
                metadata=metadata or None,
            )
        except Exception:
            self.tracker.discard(reference)
            self.references.release(reference)
            payment_initialize_total.labels(result="failed").inc()
            logger.warning("checkout initialize failed reference=%s", reference)
            raise
        self.tracker.mark_initialized(reference)
        payment_initialize_total.labels(result="initialized").inc()
        logger.info(
            "checkout initialized reference=%s amount=%s currency=%s",
            reference,
            amount_minor,
            currency,
        )
        return InitializeOutcome(
            reference=reference,
            authorization_url=result.authorization_url,
            access_code=result.access_code,
            public_key=self.gateway.public_key,
        )

    def verify_checkout(
        self, reference: str | None, details: dict[str, Any] | None = None
    ) -> VerificationOutcome:
        """``INITIALIZED -> VERIFYING -> SETTLED | REJECTED | AMBIGUOUS``.

        ``details`` are descriptive fields for the order; when absent the
        metadata captured at initialization (or echoed by the gateway) is used.
        Gateway errors leave the checkout ``AMBIGUOUS`` and propagate.
        """

        if not reference or not str(reference).strip():
            raise ValidationError("Reference is required.")
        reference = str(reference).strip()
        reference_ctx.set(reference)

        existing = self.ledger.find_by_reference(reference)
        if existing is not None:
            payment_verify_total.labels(outcome=OUTCOME_SETTLED).inc()
            return VerificationOutcome(
                reference=reference,
                outcome=OUTCOME_SETTLED,
                status="success",
                amount_minor=existing.amount_minor,
                currency=existing.currency,
                paid_at=existing.paid_at,
                order=existing,
            )

        attempt = self.tracker.begin_verification(reference)
        try:
            result = self.gateway.verify(reference)
        except GatewayError as exc:
            exc.reference = reference
            self.tracker.record_outcome(reference, OUTCOME_AMBIGUOUS, "gateway_error")
            payment_verify_total.labels(outcome=OUTCOME_AMBIGUOUS).inc()
            logger.warning("verify failed reference=%s error=%s", reference, type(exc).__name__)
            raise

        outcome = VerificationOutcome(
            reference=reference,
            outcome=OUTCOME_AMBIGUOUS,
            status=result.status,
            amount_minor=result.amount_minor,
            currency=result.currency,
            paid_at=result.paid_at,
        )
        if result.status in ("failed", "abandoned"):
            outcome.outcome = OUTCOME_REJECTED
            self.tracker.record_outcome(reference, OUTCOME_REJECTED, f"gateway_{result.status}")
        elif result.status != "success":
            self.tracker.record_outcome(reference, OUTCOME_AMBIGUOUS, "gateway_status_unknown")
        elif not self._matches_attempt(attempt, result.amount_minor, result.currency):
            logger.error(
                "verified amount mismatch reference=%s expected=%s %s got=%s %s",
                reference,
                attempt.amount_minor,
                attempt.currency,
                result.amount_minor,
                result.currency,
            )
            self.tracker.record_outcome(reference, OUTCOME_AMBIGUOUS, "amount_mismatch")
        else:
            fields = details if details is not None else (attempt.metadata or result.metadata)
            try:
                order, created = self.ledger.append_if_absent(
                    reference,
                    lambda: Order.create(
                        OrderTrust.GATEWAY_VERIFIED,
                        details=fields,
                        reference=reference,
                        amount_minor=result.amount_minor,
                        currency=result.currency,
                        paid_at=result.paid_at,
                    ),
                )
            except ValueError as exc:
                self.tracker.record_outcome(reference, OUTCOME_AMBIGUOUS, "ledger_write_failed")
                raise PersistenceError() from exc
            self.tracker.record_outcome(reference, OUTCOME_SETTLED, "gateway_success")
            outcome.outcome = OUTCOME_SETTLED
            outcome.order = order
            outcome.created = created
            if created:
                orders_created_total.labels(trust=OrderTrust.GATEWAY_VERIFIED.value).inc()
                logger.info("order created order_id=%s reference=%s", order.id, reference)

        payment_verify_total.labels(outcome=outcome.outcome).inc()
        logger.info(
            "verify outcome reference=%s status=%s outcome=%s",
            reference,
            outcome.status,
            outcome.outcome,
        )
        return outcome

    @staticmethod
    def _matches_attempt(
        attempt: CheckoutAttempt, amount_minor: int | None, currency: str | None
    ) -> bool:
        """Checkouts this process initialized must settle for what was asked."""

        if attempt.amount_minor is None:
            return True
        if amount_minor != attempt.amount_minor:
            return False
        return not currency or not attempt.currency or currency.upper() == attempt.currency

    def create_order(self, details: dict[str, Any], trust: OrderTrust) -> Order:
        """Persist a paid order at the stated trust level.

        ``GATEWAY_VERIFIED`` needs a ``reference`` and goes through verify;
        ``CLIENT_REPORTED`` accepts the caller's word that payment happened
        upstream and records it as such, with no amount authority.
        """

        if not isinstance(details, dict):
            raise ValidationError("Order payload must be an object.")

        if trust is OrderTrust.GATEWAY_VERIFIED:
            outcome = self.verify_checkout(details.get("reference"), details=details)
            if outcome.outcome != OUTCOME_SETTLED or outcome.order is None:
                raise ValidationError(
                    f"Payment is not confirmed (status={outcome.status}, outcome={outcome.outcome})."
                )
            return outcome.order

        if not self.allow_client_reported_orders:
            raise ValidationError("Orders must reference a verified payment.")
        order = Order.create(OrderTrust.CLIENT_REPORTED, details=details)
        try:
            self.ledger.append(order)
        except ValueError as exc:
            raise PersistenceError() from exc
        orders_created_total.labels(trust=OrderTrust.CLIENT_REPORTED.value).inc()
        logger.warning("client-reported order accepted without gateway verification order_id=%s", order.id)
        return order

    def list_orders(self) -> list[Order]:
        return self.ledger.list()

    def checkout(self, reference: str) -> CheckoutAttempt | None:
        return self.tracker.get(reference)
