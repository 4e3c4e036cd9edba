"""Synchronous client for the Paystack transaction API.

Only two remote operations are used: initialize and verify. Input is
validated and the bearer credential checked before any network I/O. Nothing
is retried here; re-polling verify is the caller's decision.
"""

import time
from typing import Any
from urllib.parse import quote

import httpx
from pydantic import BaseModel

from flavourhub.common.errors import (
    ConfigurationError,
    GatewayRejected,
    GatewayUnavailable,
    ValidationError,
)
from flavourhub.common.logging import logger
from flavourhub.common.metrics import gateway_call_seconds

DEFAULT_BASE_URL = "https://api.paystack.co"
VERIFY_STATUSES = {"success", "failed", "abandoned"}


class InitializeResult(BaseModel):
    """What the gateway hands back for a new transaction."""

    reference: str
    authorization_url: str | None = None
    access_code: str | None = None


class VerifyResult(BaseModel):
    """Gateway view of one reference, narrowed to what reconciliation needs."""

    reference: str
    status: str
    amount_minor: int | None = None
    currency: str | None = None
    paid_at: str | None = None
    metadata: dict[str, Any] = {}


def validate_amount(amount: Any, floor: int) -> int:
    """Accept only integer minor units at or above the floor."""

    if isinstance(amount, bool) or not isinstance(amount, int):
        raise ValidationError("Amount must be an integer in minor units.")
    if amount < floor:
        raise ValidationError(f"Amount must be at least {floor} minor units.")
    return amount


def normalize_status(raw: Any) -> str:
    """Map the gateway's status to success/failed/abandoned/unknown."""

    if isinstance(raw, str) and raw.strip().lower() in VERIFY_STATUSES:
        return raw.strip().lower()
    return "unknown"


class PaystackClient:
    """Blocking request/response wrapper around the gateway HTTP API."""

    def __init__(
        self,
        secret_key: str | None,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 10.0,
        min_amount_minor: int = 50,
        default_currency: str = "GHS",
        public_key: str | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.secret_key = secret_key
        self.public_key = public_key
        self.min_amount_minor = min_amount_minor
        self.default_currency = default_currency
        self._client = httpx.Client(base_url=base_url, timeout=timeout, transport=transport)

    def close(self) -> None:
        self._client.close()

    def _auth_headers(self) -> dict[str, str]:
        if not self.secret_key:
            raise ConfigurationError("PAYSTACK_SECRET_KEY is not set")
        return {"Authorization": f"Bearer {self.secret_key}"}

    def _call(
        self, operation: str, method: str, path: str, reference: str, json: dict | None = None
    ) -> dict[str, Any]:
        """Send one request and return the ``data`` object of a success envelope."""

        headers = self._auth_headers()
        started = time.perf_counter()
        try:
            resp = self._client.request(method, path, headers=headers, json=json)
        except httpx.TransportError as exc:
            logger.warning("gateway transport failure operation=%s error=%s", operation, exc)
            raise GatewayUnavailable(reference=reference) from exc
        finally:
            gateway_call_seconds.labels(operation=operation).observe(
                max(0.0, time.perf_counter() - started)
            )

        try:
            body = resp.json()
        except ValueError as exc:
            logger.warning(
                "gateway returned unreadable body operation=%s status_code=%s",
                operation,
                resp.status_code,
            )
            raise GatewayUnavailable(reference=reference) from exc
        if not isinstance(body, dict):
            raise GatewayUnavailable(reference=reference)

        if resp.is_error or not body.get("status"):
            message = body.get("message") or f"Paystack {operation} failed."
            logger.info(
                "gateway rejected operation=%s status_code=%s message=%s",
                operation,
                resp.status_code,
                message,
            )
            raise GatewayRejected(str(message), reference=reference, payload=body)
        data = body.get("data")
        return data if isinstance(data, dict) else {}

    def initialize(
        self,
        email: str,
        amount_minor: int,
        currency: str | None = None,
        reference: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> InitializeResult:
        """Create a remote transaction for a locally generated reference."""

        if not email or not email.strip():
            raise ValidationError("Email is required.")
        validate_amount(amount_minor, self.min_amount_minor)
        self._auth_headers()
        payload: dict[str, Any] = {
            "email": email.strip(),
            "amount": amount_minor,
            "currency": (currency or self.default_currency).upper(),
        }
        if reference:
            payload["reference"] = reference
        if metadata:
            payload["metadata"] = metadata

        data = self._call("initialize", "POST", "/transaction/initialize", reference or "", payload)
        return InitializeResult(
            reference=data.get("reference") or reference or "",
            authorization_url=data.get("authorization_url"),
            access_code=data.get("access_code"),
        )

    def verify(self, reference: str) -> VerifyResult:
        """Read the gateway's authoritative view of a reference."""

        if not reference or not reference.strip():
            raise ValidationError("Reference is required.")
        self._auth_headers()
        path = f"/transaction/verify/{quote(reference.strip(), safe='')}"
        data = self._call("verify", "GET", path, reference)

        amount = data.get("amount")
        metadata = data.get("metadata")
        return VerifyResult(
            reference=data.get("reference") or reference,
            status=normalize_status(data.get("status")),
            amount_minor=amount if isinstance(amount, int) and not isinstance(amount, bool) else None,
            currency=data.get("currency"),
            paid_at=data.get("paid_at") or data.get("paidAt"),
            metadata=metadata if isinstance(metadata, dict) else {},
        )
