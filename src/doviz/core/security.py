from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from http.cookies import SimpleCookie
from typing import Any

from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext
from starlette.responses import Response

from doviz.core.config import settings
from doviz.core.errors import InvalidToken, TokenExpired
from doviz.core.logging import get_logger, log_event

logger = get_logger(__name__)

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

SESSION_COOKIE = "auth_token"
SESSION_COOKIE_MAX_AGE = 60 * 60 * 24
JWT_ALGORITHM = "HS256"
SECRET_KEY_LENGTH = 32

_DEV_FALLBACK_SECRET = "development-insecure-jwt-secret-do-not-use-in-production"
_fallback_warned = False


@dataclass(frozen=True)
class SessionClaims:
    id: str
    email: str
    role: str
    issued_at: datetime | None
    expires_at: datetime

    def as_subject(self) -> dict[str, str]:
        return {"id": self.id, "email": self.email, "role": self.role}


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    return pwd_context.verify(password, password_hash)


def resolve_secret_key() -> str:
    """Return the signing key; production refuses to run without one."""
    global _fallback_warned  # noqa: PLW0603
    if settings.secret_key:
        return settings.secret_key
    if settings.is_production:
        raise RuntimeError("SECRET_KEY environment variable is not set in production mode")
    if not _fallback_warned:
        log_event(
            logger,
            "security.secret_key.fallback",
            level=logging.WARNING,
            environment=settings.environment,
        )
        _fallback_warned = True
    return _DEV_FALLBACK_SECRET.ljust(SECRET_KEY_LENGTH, "0")[:SECRET_KEY_LENGTH]


def sign_session_token(subject: dict[str, Any], *, expires_minutes: int | None = None) -> str:
    expire_minutes = (
        settings.access_token_exp_minutes if expires_minutes is None else expires_minutes
    )
    now = datetime.now(UTC)
    payload: dict[str, Any] = {
        "id": str(subject["id"]),
        "email": subject["email"],
        "role": subject["role"],
        "iat": now,
        "exp": now + timedelta(minutes=expire_minutes),
    }
    return jwt.encode(payload, resolve_secret_key(), algorithm=JWT_ALGORITHM)


def _claims_from_payload(payload: dict[str, Any]) -> SessionClaims:
    missing = [k for k in ("id", "email", "role") if not payload.get(k)]
    if missing:
        raise InvalidToken(f"Token is missing claims: {', '.join(missing)}")
    exp = payload.get("exp")
    if not isinstance(exp, (int, float)):
        raise InvalidToken("Token has no expiry")
    iat = payload.get("iat")
    return SessionClaims(
        id=str(payload["id"]),
        email=str(payload["email"]),
        role=str(payload["role"]),
        issued_at=datetime.fromtimestamp(iat, tz=UTC) if isinstance(iat, (int, float)) else None,
        expires_at=datetime.fromtimestamp(exp, tz=UTC),
    )


def decode_session_token(token: str) -> SessionClaims:
    try:
        payload = jwt.decode(token, resolve_secret_key(), algorithms=[JWT_ALGORITHM])
    except ExpiredSignatureError as e:
        raise TokenExpired("Session token has expired") from e
    except JWTError as e:
        raise InvalidToken(f"Invalid session token: {e}") from e
    return _claims_from_payload(payload)


def verify_session_token(token: str | None) -> SessionClaims | None:
    if not token:
        return None
    try:
        return decode_session_token(token)
    except (InvalidToken, TokenExpired) as e:
        log_event(logger, "security.token.rejected", level=logging.DEBUG, reason=str(e))
        return None


def refresh_token_if_needed(token: str | None) -> str | None:
    """Reissue the token when less than the refresh window remains.

    Returns the original token when it is still comfortably valid, a new token
    with the same subject when it is close to expiry, and None when it cannot
    be trusted.
    """
    if not token:
        return None
    try:
        claims = decode_session_token(token)
    except (InvalidToken, TokenExpired) as e:
        if not settings.allow_unverified_token_recovery:
            return None
        return _recover_unverified(token, reason=str(e))

    remaining = claims.expires_at - datetime.now(UTC)
    if remaining >= timedelta(minutes=settings.token_refresh_window_minutes):
        return token
    log_event(
        logger,
        "security.token.refreshed",
        user_id=claims.id,
        remaining_seconds=int(remaining.total_seconds()),
    )
    return sign_session_token(claims.as_subject())


def _recover_unverified(token: str, *, reason: str) -> str | None:
    try:
        payload = jwt.get_unverified_claims(token)
    except JWTError:
        return None
    if not all(payload.get(k) for k in ("id", "email", "role")):
        return None
    log_event(
        logger,
        "security.token.recovered_unverified",
        level=logging.WARNING,
        user_id=str(payload["id"]),
        reason=reason,
    )
    return sign_session_token(payload)


def set_session_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        SESSION_COOKIE,
        token,
        max_age=SESSION_COOKIE_MAX_AGE,
        path="/",
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
    )


def invalidate_session(response: Response) -> bool:
    response.set_cookie(
        SESSION_COOKIE,
        "",
        max_age=0,
        path="/",
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
    )
    for header in response.headers.getlist("set-cookie"):
        cookie = SimpleCookie()
        cookie.load(header)
        morsel = cookie.get(SESSION_COOKIE)
        if morsel is not None and morsel.value:
            log_event(logger, "security.session.invalidate_failed", level=logging.WARNING)
            return False
    return True
