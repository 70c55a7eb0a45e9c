from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel


class CurrencyCreate(BaseModel):
    code: str
    name: str


class CurrencyUpdate(BaseModel):
    name: str


class RateSnapshotOut(BaseModel):
    base_code: str
    value: float
    change: float
    increasing: bool
    timestamp: datetime


class CurrencyOut(BaseModel):
    id: uuid.UUID
    code: str
    name: str
    latest: RateSnapshotOut | None = None
    snapshot_count: int = 0
