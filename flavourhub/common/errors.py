"""Error taxonomy shared by every component.

Each error knows the HTTP status it maps to and the message that is safe to
show a client. The API layer translates them; components only raise.
"""

from typing import Any


class FlavourHubError(Exception):
    """Base class for all domain errors."""

    status_code = 500
    default_message = "Internal server error."

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message)
        self.message = message or self.default_message

    def public_message(self) -> str:
        return self.message


class ValidationError(FlavourHubError):
    """Bad client input. Raised before any gateway call."""

    status_code = 400
    default_message = "Invalid request."


class ConfigurationError(FlavourHubError):
    """A required secret or credential is missing."""

    status_code = 500
    default_message = "Server is not configured."

    def public_message(self) -> str:
        # Which secret is missing is only logged.
        return self.default_message


class GenerationError(FlavourHubError):
    """Payment reference could not be generated."""

    status_code = 500
    default_message = "Could not generate a payment reference."

    def public_message(self) -> str:
        return self.default_message


class AuthError(FlavourHubError):
    """Missing, malformed, expired or tampered admin credential."""

    status_code = 401
    default_message = "Unauthorized"

    def public_message(self) -> str:
        return self.default_message


class GatewayError(FlavourHubError):
    """Base for failures talking to the payment gateway."""

    def __init__(self, message: str | None = None, reference: str | None = None) -> None:
        super().__init__(message)
        self.reference = reference


class GatewayUnavailable(GatewayError):
    """Transport-level failure (timeout, DNS, TLS, unreadable response)."""

    status_code = 502
    default_message = "Payment gateway is unavailable."

    def public_message(self) -> str:
        return self.default_message


class GatewayRejected(GatewayError):
    """Gateway was reachable but declined the request."""

    status_code = 400
    default_message = "Payment gateway rejected the request."

    def __init__(
        self,
        message: str | None = None,
        reference: str | None = None,
        payload: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, reference)
        self.payload = payload or {}


class PersistenceError(FlavourHubError):
    """An order could not be written to the ledger."""

    status_code = 400
    default_message = "Could not save order."
