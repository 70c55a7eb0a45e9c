from __future__ import annotations

import uuid

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from doviz.core.db import db_session
from doviz.core.logging import set_user_context
from doviz.core.security import SESSION_COOKIE, verify_session_token
from doviz.modules.identity.models import User, UserRole
from doviz.modules.identity.service import get_user
from doviz.modules.rates.service import RatesService

bearer_scheme = HTTPBearer(auto_error=False)


def _session_token(
    request: Request, credentials: HTTPAuthorizationCredentials | None
) -> str | None:
    if credentials and credentials.credentials:
        return credentials.credentials
    return request.cookies.get(SESSION_COOKIE) or None


def resolve_user(session: Session, token: str | None) -> User | None:
    claims = verify_session_token(token)
    if not claims:
        return None
    try:
        user_id = uuid.UUID(claims.id)
    except ValueError:
        return None
    user = get_user(session, user_id=user_id)
    if user:
        set_user_context(str(user.id))
    return user


def get_current_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    session: Session = Depends(db_session),
) -> User:
    token = _session_token(request, credentials)
    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    user = resolve_user(session, token)
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid session")
    return user


def get_optional_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    session: Session = Depends(db_session),
) -> User | None:
    return resolve_user(session, _session_token(request, credentials))


def require_role(*roles: UserRole):
    def _checker(user: User = Depends(get_current_user)) -> User:
        if user.role not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient permissions"
            )
        return user

    return _checker


def get_rates_service(request: Request) -> RatesService:
    return request.app.state.rates_service
