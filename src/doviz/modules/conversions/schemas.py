from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel


class ConversionCreate(BaseModel):
    from_currency: str | None = None
    to_currency: str | None = None
    amount: float | None = None
    converted_amount: float | None = None
    rate: float | None = None


class ConversionOut(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID
    from_currency: str
    to_currency: str
    amount: float
    converted_amount: float
    rate: float
    created_at: datetime


class ConversionQuote(BaseModel):
    from_currency: str
    to_currency: str
    amount: float
    rate: float
    converted_amount: float
