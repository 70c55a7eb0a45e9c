from __future__ import annotations

import uuid

from fastapi import HTTPException, status
from sqlalchemy import func, or_, select, update
from sqlalchemy.orm import Session, selectinload

from doviz.modules.identity.models import User
from doviz.modules.messages.models import Message


def send_message(
    session: Session, *, sender: User, receiver_id: uuid.UUID | None, content: str | None
) -> Message:
    if not receiver_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Receiver is required"
        )
    if not content or not content.strip():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Message content is required"
        )
    receiver = session.scalar(select(User).where(User.id == receiver_id))
    if not receiver:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Receiver not found")
    if receiver.id == sender.id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="You cannot message yourself"
        )

    message = Message(sender_id=sender.id, receiver_id=receiver.id, content=content.strip())
    session.add(message)
    session.commit()
    session.refresh(message)
    return message


def list_messages_for_user(session: Session, *, user: User) -> list[Message]:
    return list(
        session.scalars(
            select(Message)
            .options(selectinload(Message.sender), selectinload(Message.receiver))
            .where(or_(Message.sender_id == user.id, Message.receiver_id == user.id))
            .order_by(Message.created_at.desc())
        )
    )


def mark_received_as_read(session: Session, *, user: User) -> int:
    result = session.execute(
        update(Message)
        .where(Message.receiver_id == user.id, Message.read.is_(False))
        .values(read=True)
    )
    session.commit()
    return result.rowcount or 0


def unread_count(session: Session, *, user: User) -> int:
    return (
        session.scalar(
            select(func.count(Message.id)).where(
                Message.receiver_id == user.id, Message.read.is_(False)
            )
        )
        or 0
    )


def list_recipients(session: Session, *, user: User) -> list[User]:
    return list(
        session.scalars(select(User).where(User.id != user.id).order_by(User.name, User.email))
    )
