from __future__ import annotations

from urllib.parse import quote

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import RedirectResponse, Response

from doviz.core.logging import get_logger, log_event
from doviz.core.security import (
    SESSION_COOKIE,
    refresh_token_if_needed,
    set_session_cookie,
    verify_session_token,
)

logger = get_logger(__name__)

PROTECTED_ROUTES: tuple[tuple[str, frozenset[str]], ...] = (
    ("/admin", frozenset({"ADMIN"})),
    ("/profile", frozenset({"USER", "ADMIN"})),
    ("/messages", frozenset({"USER", "ADMIN"})),
)


def required_roles(path: str) -> frozenset[str] | None:
    for prefix, roles in PROTECTED_ROUTES:
        if path == prefix or path.startswith(f"{prefix}/"):
            return roles
    return None


def _login_redirect(path: str) -> RedirectResponse:
    return RedirectResponse(url=f"/login?callbackUrl={quote(path)}", status_code=303)


class SessionMiddleware(BaseHTTPMiddleware):
    """Gate protected pages on the session cookie and keep it fresh.

    The token handlers should use is left on ``request.state.session_token``;
    it differs from the cookie when the token was reissued on this request.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        path = request.url.path
        roles = required_roles(path)
        if roles is None:
            return await call_next(request)

        token = request.cookies.get(SESSION_COOKIE)
        if not token:
            return _login_redirect(path)

        current = refresh_token_if_needed(token)
        claims = verify_session_token(current)
        if not claims:
            log_event(logger, "session.redirect.login", path=path)
            return _login_redirect(path)
        if claims.role not in roles:
            log_event(logger, "session.redirect.unauthorized", path=path, role=claims.role)
            return RedirectResponse(url="/unauthorized", status_code=303)

        request.state.session_token = current
        response = await call_next(request)
        if current != token:
            set_session_cookie(response, current)
        return response
