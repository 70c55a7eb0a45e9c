from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, HTTPException, Response, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from doviz.api.deps import get_current_user, get_optional_user, require_role
from doviz.core.db import db_session
from doviz.core.security import invalidate_session, set_session_cookie, sign_session_token
from doviz.modules.identity.models import User, UserRole
from doviz.modules.identity.schemas import (
    AuthOut,
    LoginIn,
    ProfileUpdate,
    RoleUpdate,
    UserCreate,
    UserOut,
    UserWithCounts,
)
from doviz.modules.identity.service import (
    authenticate_user,
    create_user,
    list_users_with_counts,
    set_user_role,
    update_profile,
)

router = APIRouter(tags=["identity"])


def issue_session(response: Response, user: User) -> str:
    token = sign_session_token({"id": str(user.id), "email": user.email, "role": user.role.value})
    set_session_cookie(response, token)
    return token


@router.post("/auth/register", response_model=AuthOut, status_code=status.HTTP_201_CREATED)
def register(
    payload: UserCreate,
    response: Response,
    session: Session = Depends(db_session),
) -> AuthOut:
    user = create_user(
        session, email=str(payload.email), password=payload.password, name=payload.name
    )
    issue_session(response, user)
    return AuthOut(message="User created", user=UserOut.model_validate(user, from_attributes=True))


@router.post("/auth/login", response_model=AuthOut)
def login(
    payload: LoginIn,
    response: Response,
    session: Session = Depends(db_session),
) -> AuthOut:
    user = authenticate_user(session, email=str(payload.email), password=payload.password)
    issue_session(response, user)
    return AuthOut(
        message="Login successful", user=UserOut.model_validate(user, from_attributes=True)
    )


@router.post("/auth/logout")
def logout(response: Response) -> dict[str, str]:
    if not invalidate_session(response):
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Could not clear session"
        )
    return {"message": "Logged out"}


@router.get("/auth/me")
def me(user: User | None = Depends(get_optional_user)) -> JSONResponse:
    if not user:
        return JSONResponse(status_code=status.HTTP_401_UNAUTHORIZED, content={"user": None})
    out = UserOut.model_validate(user, from_attributes=True)
    return JSONResponse(content={"user": out.model_dump(mode="json")})


@router.put("/user/update", response_model=AuthOut)
def update_user(
    payload: ProfileUpdate,
    session: Session = Depends(db_session),
    user: User = Depends(get_current_user),
) -> AuthOut:
    updated = update_profile(
        session,
        user=user,
        name=payload.name,
        email=str(payload.email),
        current_password=payload.current_password,
        new_password=payload.new_password,
    )
    return AuthOut(
        message="Profile updated", user=UserOut.model_validate(updated, from_attributes=True)
    )


@router.get("/users", response_model=list[UserWithCounts])
def list_users(
    session: Session = Depends(db_session),
    _: User = Depends(require_role(UserRole.ADMIN)),
) -> list[UserWithCounts]:
    return [
        UserWithCounts(
            user=UserOut.model_validate(u, from_attributes=True),
            sent_messages=sent,
            received_messages=received,
            conversions=conversions,
        )
        for u, sent, received, conversions in list_users_with_counts(session)
    ]


@router.patch("/users/{user_id}/role", response_model=UserOut)
def change_role(
    user_id: uuid.UUID,
    payload: RoleUpdate,
    session: Session = Depends(db_session),
    admin: User = Depends(require_role(UserRole.ADMIN)),
) -> UserOut:
    user = set_user_role(session, user_id=user_id, role=payload.role, actor=admin)
    return UserOut.model_validate(user, from_attributes=True)
