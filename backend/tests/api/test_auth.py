"""Tests for HS256 session JWT authentication."""

import time
from unittest.mock import MagicMock, patch

import jwt as pyjwt
import pytest
from fastapi import HTTPException
from fastapi.security import HTTPAuthorizationCredentials

from app.core.auth import decode_session_jwt, require_auth

pytestmark = pytest.mark.unit

_SECRET = "test-secret-with-enough-entropy-0123456789"


def _sign_jwt(payload: dict, secret: str = _SECRET) -> str:
    return pyjwt.encode(payload, secret, algorithm="HS256")


def _claims(**overrides) -> dict:
    claims = {"sub": "user-42", "exp": int(time.time()) + 3600, "aud": "authenticated"}
    claims.update(overrides)
    return claims


def _mock_settings(secret: str = _SECRET, audience: str = ""):
    s = MagicMock()
    s.jwt_secret = secret
    s.jwt_audience = audience
    return s


@pytest.fixture
def settings():
    with patch("app.core.auth.get_settings", return_value=_mock_settings()) as mock:
        yield mock


def test_valid_token_yields_user(settings):
    user = decode_session_jwt(_sign_jwt(_claims()))

    assert user.user_id == "user-42"
    assert user.claims["aud"] == "authenticated"


def test_expired_token_is_rejected(settings):
    with pytest.raises(HTTPException) as exc_info:
        decode_session_jwt(_sign_jwt(_claims(exp=int(time.time()) - 10)))
    assert exc_info.value.status_code == 401
    assert exc_info.value.detail == "Token expired"


def test_wrong_secret_is_rejected(settings):
    with pytest.raises(HTTPException) as exc_info:
        decode_session_jwt(_sign_jwt(_claims(), secret="another-secret-with-enough-entropy-9876"))
    assert exc_info.value.status_code == 401


def test_missing_sub_is_rejected(settings):
    claims = _claims()
    del claims["sub"]

    with pytest.raises(HTTPException) as exc_info:
        decode_session_jwt(_sign_jwt(claims))
    assert exc_info.value.status_code == 401


def test_garbage_token_is_rejected(settings):
    with pytest.raises(HTTPException) as exc_info:
        decode_session_jwt("not-a-jwt")
    assert exc_info.value.status_code == 401


def test_audience_enforced_when_configured():
    with patch("app.core.auth.get_settings", return_value=_mock_settings(audience="oracle-app")):
        with pytest.raises(HTTPException) as exc_info:
            decode_session_jwt(_sign_jwt(_claims(aud="someone-else")))
        assert exc_info.value.status_code == 401

        user = decode_session_jwt(_sign_jwt(_claims(aud="oracle-app")))
        assert user.user_id == "user-42"


def test_missing_secret_is_server_misconfiguration():
    with patch("app.core.auth.get_settings", return_value=_mock_settings(secret="")):
        with pytest.raises(HTTPException) as exc_info:
            decode_session_jwt(_sign_jwt(_claims()))
    assert exc_info.value.status_code == 500


async def test_require_auth_sets_request_state(settings):
    request = MagicMock()
    credentials = HTTPAuthorizationCredentials(scheme="Bearer", credentials=_sign_jwt(_claims()))

    user = await require_auth(request, credentials)

    assert user.user_id == "user-42"
    assert request.state.user_id == "user-42"


async def test_require_auth_without_header_is_401():
    with pytest.raises(HTTPException) as exc_info:
        await require_auth(MagicMock(), None)
    assert exc_info.value.status_code == 401


async def test_bearer_token_end_to_end(settings, client):
    token = _sign_jwt(_claims(sub="free-user"))

    response = await client.get("/api/entitlements", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 200
    assert response.json()["tier"] == "free"
