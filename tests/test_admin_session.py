"""Admin session gate: login, token checks and uniform failures."""

from datetime import datetime, timedelta, timezone

import jwt
import pytest

from flavourhub.common.errors import AuthError, ConfigurationError
from flavourhub.services.admin.session import AdminSessionGate, bearer_token

from conftest import ADMIN_PASSWORD, ADMIN_SECRET


def test_wrong_password_issues_no_token(gate):
    with pytest.raises(AuthError):
        gate.login("wrong")
    with pytest.raises(AuthError):
        gate.login(None)


def test_correct_password_token_is_accepted(gate):
    token = gate.login(ADMIN_PASSWORD)
    gate.authorize(token)

    claims = jwt.decode(token, ADMIN_SECRET, algorithms=["HS256"])
    assert claims["role"] == "admin"
    assert claims["exp"] - claims["iat"] == 12 * 3600


def test_token_older_than_ttl_is_rejected():
    issued = datetime.now(timezone.utc) - timedelta(hours=12, minutes=1)
    stale_gate = AdminSessionGate(ADMIN_PASSWORD, ADMIN_SECRET, clock=lambda: issued)
    token = stale_gate.login(ADMIN_PASSWORD)

    with pytest.raises(AuthError):
        stale_gate.authorize(token)


def test_token_signed_with_other_secret_is_rejected(gate):
    other = AdminSessionGate(ADMIN_PASSWORD, "a-completely-different-signing-key-value")
    with pytest.raises(AuthError):
        gate.authorize(other.login(ADMIN_PASSWORD))


@pytest.mark.parametrize("token", [None, "", "not-a-jwt", "a.b.c"])
def test_malformed_tokens_fail_uniformly(gate, token):
    with pytest.raises(AuthError) as info:
        gate.authorize(token)
    assert info.value.public_message() == "Unauthorized"


def test_token_without_admin_role_is_rejected(gate):
    now = datetime.now(timezone.utc)
    token = jwt.encode(
        {"role": "viewer", "iat": now, "exp": now + timedelta(hours=1)},
        ADMIN_SECRET,
        algorithm="HS256",
    )
    with pytest.raises(AuthError):
        gate.authorize(token)


def test_unsigned_token_is_rejected(gate):
    now = datetime.now(timezone.utc)
    token = jwt.encode(
        {"role": "admin", "iat": now, "exp": now + timedelta(hours=1)}, None, algorithm="none"
    )
    with pytest.raises(AuthError):
        gate.authorize(token)


@pytest.mark.parametrize("password,secret", [(None, ADMIN_SECRET), (ADMIN_PASSWORD, ""), (None, None)])
def test_missing_config_is_fatal(password, secret):
    with pytest.raises(ConfigurationError):
        AdminSessionGate(password, secret)


def test_bearer_token_parsing():
    assert bearer_token("Bearer abc") == "abc"
    assert bearer_token("bearer  abc ") == "abc"
    assert bearer_token("Basic abc") is None
    assert bearer_token("Bearer") is None
    assert bearer_token(None) is None
