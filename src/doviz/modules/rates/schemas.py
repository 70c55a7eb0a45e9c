from __future__ import annotations

import datetime as dt

from pydantic import BaseModel


class RateSample(BaseModel):
    date: dt.date
    value: float


class CurrencyRate(BaseModel):
    code: str
    name: str
    value: float
    change: float
    increasing: bool
    flag_code: str = ""


class LatestRatesOut(BaseModel):
    base: str
    rates: list[CurrencyRate]


class HistoryOut(BaseModel):
    code: str
    base: str
    days: int
    samples: list[RateSample]
