"""API request/response schemas for payment, order and admin endpoints."""

from typing import Any

from pydantic import BaseModel, ConfigDict, StrictInt
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Accepts snake or camel input; serialized with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class InitializeRequest(CamelModel):
    """Checkout payload from the storefront. ``amount`` is in minor units."""

    email: str | None = None
    amount: StrictInt | None = None
    currency: str | None = None
    customer: dict[str, Any] | None = None
    order: dict[str, Any] | None = None


class InitializeResponse(CamelModel):
    reference: str
    public_artifact: str | None = None
    authorization_url: str | None = None
    access_code: str | None = None
    public_key: str | None = None


class VerifyResponse(CamelModel):
    """Gateway status plus the reconciliation outcome for one reference."""

    status: str
    outcome: str
    paid: bool
    reference: str
    amount: int | None = None
    currency: str | None = None
    paid_at: str | None = None
    order_id: str | None = None


class OrderCreatedResponse(CamelModel):
    success: bool
    order: dict[str, Any]


class LoginRequest(CamelModel):
    password: str | None = None


class LoginResponse(CamelModel):
    token: str
