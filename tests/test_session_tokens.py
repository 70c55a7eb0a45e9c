from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest
from jose import jwt
from starlette.responses import Response

from doviz.core import security
from doviz.core.config import settings
from doviz.core.errors import InvalidToken, TokenExpired
from doviz.core.security import (
    JWT_ALGORITHM,
    SECRET_KEY_LENGTH,
    SESSION_COOKIE,
    decode_session_token,
    invalidate_session,
    refresh_token_if_needed,
    resolve_secret_key,
    set_session_cookie,
    sign_session_token,
    verify_session_token,
)

SUBJECT = {
    "id": "3f7c2a4e-0000-4000-8000-000000000001",
    "email": "ada@example.com",
    "role": "USER",
}


def _encode(payload: dict) -> str:
    return jwt.encode(payload, resolve_secret_key(), algorithm=JWT_ALGORITHM)


def _token_expiring_in(delta: timedelta) -> str:
    now = datetime.now(UTC)
    return _encode({**SUBJECT, "iat": now - timedelta(hours=23), "exp": now + delta})


def test_sign_and_verify_round_trip():
    claims = verify_session_token(sign_session_token(SUBJECT))
    assert claims is not None
    assert claims.as_subject() == SUBJECT
    remaining = claims.expires_at - datetime.now(UTC)
    assert timedelta(hours=23, minutes=59) < remaining <= timedelta(hours=24)


def test_expired_token_is_rejected():
    token = _token_expiring_in(timedelta(minutes=-5))
    assert verify_session_token(token) is None
    with pytest.raises(TokenExpired):
        decode_session_token(token)


def test_token_missing_claims_is_invalid():
    now = datetime.now(UTC)
    token = _encode(
        {"id": SUBJECT["id"], "email": SUBJECT["email"], "exp": now + timedelta(hours=1)}
    )
    assert verify_session_token(token) is None
    with pytest.raises(InvalidToken):
        decode_session_token(token)


def test_token_signed_with_other_key_is_invalid():
    token = jwt.encode(
        {**SUBJECT, "exp": datetime.now(UTC) + timedelta(hours=1)},
        "another-secret-another-secret-00",
        algorithm=JWT_ALGORITHM,
    )
    with pytest.raises(InvalidToken):
        decode_session_token(token)
    assert verify_session_token("not-a-jwt") is None
    assert verify_session_token(None) is None


def test_refresh_keeps_token_with_plenty_of_time_left():
    token = _token_expiring_in(timedelta(hours=2))
    assert refresh_token_if_needed(token) == token


def test_refresh_reissues_token_close_to_expiry():
    token = _token_expiring_in(timedelta(minutes=30))
    refreshed = refresh_token_if_needed(token)

    assert refreshed is not None
    assert refreshed != token
    claims = verify_session_token(refreshed)
    assert claims.as_subject() == SUBJECT
    assert claims.expires_at - datetime.now(UTC) > timedelta(hours=23)


def test_refresh_rejects_bad_tokens_by_default():
    assert refresh_token_if_needed(None) is None
    assert refresh_token_if_needed("garbage") is None
    assert refresh_token_if_needed(_token_expiring_in(timedelta(minutes=-1))) is None


def test_unverified_recovery_only_when_enabled(monkeypatch):
    monkeypatch.setattr(settings, "allow_unverified_token_recovery", True)
    expired = _token_expiring_in(timedelta(minutes=-1))

    recovered = refresh_token_if_needed(expired)
    assert recovered is not None
    assert verify_session_token(recovered).as_subject() == SUBJECT

    assert refresh_token_if_needed("garbage") is None


def test_production_requires_secret_key(monkeypatch):
    monkeypatch.setattr(settings, "environment", "production")
    monkeypatch.setattr(settings, "secret_key", None)
    with pytest.raises(RuntimeError):
        resolve_secret_key()


def test_dev_fallback_key_is_fixed_length(monkeypatch):
    monkeypatch.setattr(settings, "environment", "dev")
    monkeypatch.setattr(settings, "secret_key", None)
    monkeypatch.setattr(security, "_fallback_warned", False)
    key = resolve_secret_key()
    assert len(key) == SECRET_KEY_LENGTH
    assert resolve_secret_key() == key


def test_session_cookie_attributes():
    response = Response()
    set_session_cookie(response, "abc")
    header = response.headers["set-cookie"]
    assert header.startswith(f"{SESSION_COOKIE}=abc")
    assert "HttpOnly" in header
    assert "Max-Age=86400" in header
    assert "Path=/" in header
    assert "samesite=lax" in header.lower()
    assert "Secure" not in header


def test_invalidate_session_clears_cookie():
    response = Response()
    assert invalidate_session(response) is True
    header = response.headers["set-cookie"]
    assert header.startswith(f'{SESSION_COOKIE}=""') or header.startswith(f"{SESSION_COOKIE}=;")
    assert "Max-Age=0" in header


def test_invalidate_session_reports_leftover_cookie():
    response = Response()
    set_session_cookie(response, "still-here")
    assert invalidate_session(response) is False
