from __future__ import annotations

import uuid

from fastapi import HTTPException, status
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from doviz.core.security import hash_password, verify_password
from doviz.modules.identity.models import User, UserRole


def get_user_by_email(session: Session, *, email: str) -> User | None:
    return session.scalar(select(User).where(User.email == email.strip().lower()))


def get_user(session: Session, *, user_id: uuid.UUID) -> User | None:
    return session.scalar(select(User).where(User.id == user_id))


def create_user(
    session: Session,
    *,
    email: str,
    password: str,
    role: UserRole = UserRole.USER,
    name: str | None = None,
) -> User:
    if not email or not password:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Email and password are required"
        )
    existing = get_user_by_email(session, email=email)
    if existing:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Email address is already in use"
        )

    user = User(
        email=email.strip().lower(),
        name=(name or "").strip() or None,
        password_hash=hash_password(password),
        role=role,
    )
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


def authenticate_user(session: Session, *, email: str, password: str) -> User:
    user = get_user_by_email(session, email=email)
    if not user or not verify_password(password, user.password_hash):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid email or password"
        )
    return user


def update_profile(
    session: Session,
    *,
    user: User,
    name: str | None,
    email: str,
    current_password: str | None = None,
    new_password: str | None = None,
) -> User:
    email = email.strip().lower()
    if email != user.email and get_user_by_email(session, email=email):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Email address is already in use"
        )

    if new_password:
        if not current_password or not verify_password(current_password, user.password_hash):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST, detail="Current password is incorrect"
            )
        user.password_hash = hash_password(new_password)

    user.name = (name or "").strip() or None
    user.email = email
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


def set_user_role(session: Session, *, user_id: uuid.UUID, role: UserRole, actor: User) -> User:
    user = get_user(session, user_id=user_id)
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    if user.id == actor.id and role != UserRole.ADMIN:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Admins cannot demote themselves"
        )
    user.role = role
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


def list_users_with_counts(session: Session) -> list[tuple[User, int, int, int]]:
    """Users newest first with (sent messages, received messages, conversions)."""
    from doviz.modules.conversions.models import ConversionHistory
    from doviz.modules.messages.models import Message

    sent = dict(
        session.execute(
            select(Message.sender_id, func.count(Message.id)).group_by(Message.sender_id)
        ).all()
    )
    received = dict(
        session.execute(
            select(Message.receiver_id, func.count(Message.id)).group_by(Message.receiver_id)
        ).all()
    )
    conversions = dict(
        session.execute(
            select(ConversionHistory.user_id, func.count(ConversionHistory.id)).group_by(
                ConversionHistory.user_id
            )
        ).all()
    )
    users = session.scalars(select(User).order_by(User.created_at.desc()))
    return [
        (u, sent.get(u.id, 0), received.get(u.id, 0), conversions.get(u.id, 0)) for u in users
    ]
