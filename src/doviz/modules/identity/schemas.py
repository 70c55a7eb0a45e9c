from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, EmailStr

from doviz.modules.identity.models import UserRole


class UserOut(BaseModel):
    id: uuid.UUID
    name: str | None
    email: EmailStr
    role: UserRole
    created_at: datetime
    updated_at: datetime


class UserCreate(BaseModel):
    name: str | None = None
    email: EmailStr
    password: str


class LoginIn(BaseModel):
    email: EmailStr
    password: str


class ProfileUpdate(BaseModel):
    name: str | None = None
    email: EmailStr
    current_password: str | None = None
    new_password: str | None = None


class RoleUpdate(BaseModel):
    role: UserRole


class AuthOut(BaseModel):
    message: str
    user: UserOut


class UserWithCounts(BaseModel):
    user: UserOut
    sent_messages: int
    received_messages: int
    conversions: int
