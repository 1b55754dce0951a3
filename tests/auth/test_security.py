"""Tests for bearer token verification."""

from datetime import UTC, datetime, timedelta
from uuid import uuid4

import pytest
from jose import JWTError, jwt

from coursegate.auth.permissions import UserRole
from coursegate.auth.schemas import AuthenticatedUser
from coursegate.auth.security import decode_access_token
from coursegate.config import get_settings


def sign(**claims) -> str:
    settings = get_settings()
    now = datetime.now(UTC)
    payload = {"iat": now, "exp": now + timedelta(minutes=5), **claims}
    return jwt.encode(payload, settings.auth_secret_key, algorithm=settings.auth_algorithm)


def test_valid_access_token() -> None:
    user_id = uuid4()
    payload = decode_access_token(sign(sub=str(user_id), type="access", role="admin"))

    user = AuthenticatedUser.from_token_payload(payload)

    assert user.id == user_id
    assert user.role == UserRole.ADMIN


def test_missing_role_defaults_to_user() -> None:
    payload = decode_access_token(sign(sub=str(uuid4()), type="access"))
    assert AuthenticatedUser.from_token_payload(payload).role == UserRole.USER


@pytest.mark.parametrize(
    "claims",
    [
        {"sub": "x", "type": "refresh"},
        {"type": "access"},
    ],
)
def test_rejected_claims(claims) -> None:
    with pytest.raises(JWTError):
        decode_access_token(sign(**claims))


def test_expired_token() -> None:
    settings = get_settings()
    past = datetime.now(UTC) - timedelta(hours=1)
    token = jwt.encode(
        {"sub": str(uuid4()), "type": "access", "exp": past},
        settings.auth_secret_key,
        algorithm=settings.auth_algorithm,
    )
    with pytest.raises(JWTError):
        decode_access_token(token)


def test_wrong_key() -> None:
    token = jwt.encode({"sub": str(uuid4()), "type": "access"}, "x" * 40, algorithm="HS256")
    with pytest.raises(JWTError):
        decode_access_token(token)
