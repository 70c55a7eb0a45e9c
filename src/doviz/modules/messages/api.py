from __future__ import annotations

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from doviz.api.deps import get_current_user
from doviz.core.db import db_session
from doviz.modules.identity.models import User
from doviz.modules.messages.schemas import MessageCreate, MessageOut
from doviz.modules.messages.service import list_messages_for_user, send_message

router = APIRouter(tags=["messages"])


@router.post("/messages", response_model=MessageOut, status_code=status.HTTP_201_CREATED)
def post_message(
    payload: MessageCreate,
    session: Session = Depends(db_session),
    user: User = Depends(get_current_user),
) -> MessageOut:
    message = send_message(
        session, sender=user, receiver_id=payload.receiver_id, content=payload.content
    )
    return MessageOut.model_validate(message, from_attributes=True)


@router.get("/messages", response_model=list[MessageOut])
def get_messages(
    session: Session = Depends(db_session),
    user: User = Depends(get_current_user),
) -> list[MessageOut]:
    return [
        MessageOut.model_validate(m, from_attributes=True)
        for m in list_messages_for_user(session, user=user)
    ]
