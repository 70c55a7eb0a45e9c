from __future__ import annotations

import random
import threading
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import date

from doviz.core.currencies import currency_name, flag_code
from doviz.core.logging import get_logger, log_event
from doviz.modules.rates.client import ExchangeRateClient
from doviz.modules.rates.conversion import PIVOT_CURRENCY
from doviz.modules.rates.history import HistoricalSeriesBuilder
from doviz.modules.rates.schemas import CurrencyRate, RateSample

logger = get_logger(__name__)

JITTER = 0.01
SEED_BIAS = 0.7
SEED_SPREAD = 0.02


@dataclass
class PreviousRatesCache:
    """Last seen value per currency, kept separately for each base currency."""

    refresh_interval_seconds: float = 30.0
    values: dict[str, dict[str, float]] = field(default_factory=dict)
    last_refresh: dict[str, float] = field(default_factory=dict)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def seed_if_empty(self, base: str, rates: Mapping[str, float], rng: random.Random) -> None:
        with self._lock:
            if self.values.get(base):
                return
            self.values[base] = {code: _seeded(value, rng) for code, value in rates.items()}

    def previous(self, base: str, code: str, fresh: float, rng: random.Random) -> float:
        with self._lock:
            table = self.values.setdefault(base, {})
            if not table.get(code):
                table[code] = _seeded(fresh, rng)
            return table[code]

    def maybe_refresh(self, base: str, rates: Mapping[str, float], now: float) -> bool:
        with self._lock:
            if now - self.last_refresh.get(base, 0.0) <= self.refresh_interval_seconds:
                return False
            self.values.setdefault(base, {}).update(rates)
            self.last_refresh[base] = now
            return True


def _seeded(value: float, rng: random.Random) -> float:
    # Skewed low so first readings tend to show a decrease.
    return value * (1 + (rng.random() - SEED_BIAS) * SEED_SPREAD)


class RatesService:
    """Latest rates with a synthesized change figure, plus historical series."""

    def __init__(
        self,
        *,
        client: ExchangeRateClient | None = None,
        previous: PreviousRatesCache | None = None,
        rng: random.Random | None = None,
        clock: Callable[[], float] | None = None,
        today: Callable[[], date] | None = None,
    ) -> None:
        self.client = client or ExchangeRateClient()
        self.previous = previous or PreviousRatesCache()
        self.rng = rng or random.Random()
        self._clock = clock or time.time
        self.history = HistoricalSeriesBuilder(self.client, rng=self.rng, today=today)

    def get_latest_rates(self, base_code: str = PIVOT_CURRENCY) -> list[CurrencyRate]:
        base_code = base_code.strip().upper()
        table = self.client.fetch_latest(base_code)
        now = self._clock()

        self.previous.seed_if_empty(base_code, table, self.rng)
        out: list[CurrencyRate] = []
        for code, value in table.items():
            if code == base_code:
                continue
            adjusted = value * (1 + (self.rng.random() - 0.5) * JITTER)
            prev = self.previous.previous(base_code, code, value, self.rng)
            change = round((adjusted - prev) / prev * 100, 2)
            out.append(
                CurrencyRate(
                    code=code,
                    name=currency_name(code),
                    value=round(adjusted, 6),
                    change=change,
                    increasing=change > 0,
                    flag_code=flag_code(code),
                )
            )

        refreshed = self.previous.maybe_refresh(base_code, table, now)
        log_event(
            logger,
            "rates.latest",
            base=base_code,
            count=len(out),
            baseline_refreshed=refreshed,
        )
        return out

    def get_latest_table(self, base_code: str = PIVOT_CURRENCY) -> dict[str, float]:
        return self.client.fetch_latest(base_code.strip().upper())

    def get_historical_data(
        self, code: str, base_code: str = PIVOT_CURRENCY, days: int = 30
    ) -> list[RateSample]:
        return self.history.get_historical_data(code, base_code, days)
