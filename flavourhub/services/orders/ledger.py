"""In-process order ledger.

Append-only: orders are never updated or removed here. All mutation goes
through one lock, and reference-keyed insertion is check-then-append under
that same lock so racing verifications cannot duplicate an order.
"""

import secrets
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import Any, Callable, Mapping, Protocol

PAID = "paid"

# Fields owned by the ledger; caller-supplied details never override them.
AUTHORITATIVE_FIELDS = {
    "id",
    "reference",
    "status",
    "createdAt",
    "trust",
    "amount",
    "currency",
    "paidAt",
}


class OrderTrust(str, Enum):
    """How the paid status of an order was established."""

    GATEWAY_VERIFIED = "gateway_verified"
    CLIENT_REPORTED = "client_reported"


def _freeze(value: Any) -> Any:
    """Read-only copy: dicts become mapping proxies, lists become tuples."""

    if isinstance(value, Mapping):
        return MappingProxyType({key: _freeze(item) for key, item in value.items()})
    if isinstance(value, (list, tuple)):
        return tuple(_freeze(item) for item in value)
    return value


def _thaw(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {key: _thaw(item) for key, item in value.items()}
    if isinstance(value, tuple):
        return [_thaw(item) for item in value]
    return value


def new_order_id() -> str:
    """Order ids are local and never look like a payment reference."""

    stamp = int(datetime.now(timezone.utc).timestamp() * 1000)
    return f"ORD-{stamp}-{secrets.token_hex(3)}"


@dataclass(frozen=True)
class Order:
    """A confirmed, paid order. Immutable once built."""

    id: str
    trust: OrderTrust
    reference: str | None = None
    amount_minor: int | None = None
    currency: str | None = None
    paid_at: str | None = None
    details: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))
    status: str = PAID
    created_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    @classmethod
    def create(
        cls,
        trust: OrderTrust,
        details: dict[str, Any] | None = None,
        reference: str | None = None,
        amount_minor: int | None = None,
        currency: str | None = None,
        paid_at: str | None = None,
    ) -> "Order":
        """Build an order with a fresh id; details are copied and stripped of owned keys."""

        cleaned = _freeze(
            {key: value for key, value in (details or {}).items() if key not in AUTHORITATIVE_FIELDS}
        )
        return cls(
            id=new_order_id(),
            trust=trust,
            reference=reference,
            amount_minor=amount_minor,
            currency=currency,
            paid_at=paid_at,
            details=cleaned,
        )

    def to_dict(self) -> dict[str, Any]:
        """Caller fields first, ledger-owned fields on top."""

        payload = _thaw(self.details)
        payload.update(
            {
                "id": self.id,
                "reference": self.reference,
                "status": self.status,
                "trust": self.trust.value,
                "amount": self.amount_minor,
                "currency": self.currency,
                "paidAt": self.paid_at,
                "createdAt": self.created_at,
            }
        )
        return payload


class OrderLedger(Protocol):
    """Contract a persistent store would implement in place of the in-memory one."""

    def append(self, order: Order) -> Order: ...

    def append_if_absent(self, reference: str, build: Callable[[], Order]) -> tuple[Order, bool]: ...

    def list(self) -> list[Order]: ...

    def find_by_reference(self, reference: str) -> Order | None: ...


class InMemoryOrderLedger:
    """Process-lifetime ledger guarded by a single mutex."""

    def __init__(self) -> None:
        self._orders: list[Order] = []
        self._by_id: dict[str, Order] = {}
        self._by_reference: dict[str, Order] = {}
        self._lock = threading.Lock()

    def _insert(self, order: Order) -> None:
        if order.id in self._by_id:
            raise ValueError(f"duplicate order id {order.id}")
        if order.reference and order.reference in self._by_reference:
            raise ValueError(f"order already recorded for reference {order.reference}")
        self._orders.append(order)
        self._by_id[order.id] = order
        if order.reference:
            self._by_reference[order.reference] = order

    def append(self, order: Order) -> Order:
        """Append one order; duplicate ids or references are refused."""

        with self._lock:
            self._insert(order)
        return order

    def append_if_absent(self, reference: str, build: Callable[[], Order]) -> tuple[Order, bool]:
        """Return ``(order, created)``; ``build`` only runs when the reference is new."""

        with self._lock:
            existing = self._by_reference.get(reference)
            if existing is not None:
                return existing, False
            order = build()
            if order.reference != reference:
                raise ValueError("built order does not carry the requested reference")
            self._insert(order)
            return order, True

    def list(self) -> list[Order]:
        """Snapshot in insertion order."""

        with self._lock:
            return list(self._orders)

    def find_by_reference(self, reference: str) -> Order | None:
        with self._lock:
            return self._by_reference.get(reference)

    def __len__(self) -> int:
        with self._lock:
            return len(self._orders)
