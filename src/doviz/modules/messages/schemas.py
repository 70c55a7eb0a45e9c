from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel


class MessageCreate(BaseModel):
    receiver_id: uuid.UUID | None = None
    content: str | None = None


class Participant(BaseModel):
    id: uuid.UUID
    name: str | None
    email: str


class MessageOut(BaseModel):
    id: uuid.UUID
    content: str
    read: bool
    created_at: datetime
    sender: Participant
    receiver: Participant
