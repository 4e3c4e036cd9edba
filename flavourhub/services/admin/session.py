"""Admin session gate: password login that mints a short-lived signed token.

Tokens are HS256 JWTs carrying only ``role=admin`` and an expiry. There is no
revocation list; expiry is the only way a token stops working.
"""

import hashlib
import hmac
from datetime import datetime, timedelta, timezone
from typing import Callable

import jwt

from flavourhub.common.errors import AuthError, ConfigurationError
from flavourhub.common.logging import logger
from flavourhub.common.metrics import admin_login_total

ALGORITHM = "HS256"
ADMIN_ROLE = "admin"


def _digest(value: str) -> bytes:
    # Compare fixed-length digests.
    return hashlib.sha256(value.encode("utf-8")).digest()


class AdminSessionGate:
    """Issues and checks admin tokens from a configured password and signing key."""

    def __init__(
        self,
        password: str | None,
        secret_key: str | None,
        ttl: timedelta = timedelta(hours=12),
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        missing = [
            name
            for name, value in (("ADMIN_PASSWORD", password), ("ADMIN_SECRET_KEY", secret_key))
            if not value
        ]
        if missing:
            raise ConfigurationError(f"admin gate missing {', '.join(missing)}")
        self._password_digest = _digest(password)
        self._secret_key = secret_key
        self.ttl = ttl
        self._clock = clock

    def login(self, password: str | None) -> str:
        """Return a signed token when the password matches, else raise ``AuthError``."""

        candidate = _digest(password or "")
        if not hmac.compare_digest(candidate, self._password_digest):
            admin_login_total.labels(result="rejected").inc()
            logger.warning("admin login rejected")
            raise AuthError()
        issued_at = self._clock()
        claims = {
            "role": ADMIN_ROLE,
            "iat": issued_at,
            "exp": issued_at + self.ttl,
        }
        admin_login_total.labels(result="accepted").inc()
        logger.info("admin login accepted")
        return jwt.encode(claims, self._secret_key, algorithm=ALGORITHM)

    def authorize(self, token: str | None) -> None:
        """Accept a valid, unexpired admin token; every failure is the same ``AuthError``."""

        if not token:
            raise AuthError()
        try:
            claims = jwt.decode(
                token,
                self._secret_key,
                algorithms=[ALGORITHM],
                options={"require": ["exp", "iat"]},
            )
        except jwt.InvalidTokenError as exc:
            logger.info("admin token refused: %s", type(exc).__name__)
            raise AuthError() from None
        if claims.get("role") != ADMIN_ROLE:
            raise AuthError()


def bearer_token(authorization: str | None) -> str | None:
    """Extract the credential from an ``Authorization: Bearer <token>`` header."""

    if not authorization:
        return None
    scheme, _, token = authorization.strip().partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()
