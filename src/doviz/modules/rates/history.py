from __future__ import annotations

import logging
import random
from bisect import bisect_left
from collections.abc import Callable, Iterable
from datetime import date, timedelta

from doviz.core.config import settings
from doviz.core.errors import UpstreamError, UpstreamNotFound
from doviz.core.logging import get_logger, log_event
from doviz.modules.rates.client import ExchangeRateClient, is_key_failure
from doviz.modules.rates.conversion import PIVOT_CURRENCY, cross_rate
from doviz.modules.rates.schemas import RateSample
from doviz.modules.rates.synthetic import (
    FALLBACK_PROFILE,
    MAX_DETAILED_DAYS,
    SYNTHETIC_PROFILE,
    calendar_day_seed,
    generate_curve,
    pair_seed,
)

logger = get_logger(__name__)

# Rough units per USD, used only when the provider cannot be reached at all.
APPROXIMATE_USD_RATES: dict[str, float] = {
    "USD": 1.0,
    "EUR": 1 / 1.09,
    "TRY": 38.75,
}


def fill_missing_dates(
    samples: Iterable[RateSample], start: date, end: date
) -> list[RateSample]:
    """Expand sparse samples into one sample per day between start and end."""
    known = sorted({s.date: s.value for s in samples}.items())
    if not known:
        log_event(
            logger,
            "rates.history.fill_empty",
            level=logging.WARNING,
            start=start.isoformat(),
            end=end.isoformat(),
        )
        return []

    known_dates = [d for d, _ in known]
    by_date = dict(known)
    out: list[RateSample] = []
    current = start
    while current <= end:
        if current in by_date:
            value = by_date[current]
        else:
            idx = bisect_left(known_dates, current)
            before = known[idx - 1] if idx > 0 else None
            after = known[idx] if idx < len(known) else None
            if before and after:
                span = (after[0] - before[0]).days
                ratio = (current - before[0]).days / span
                value = round(before[1] + (after[1] - before[1]) * ratio, 6)
            elif before:
                value = before[1]
            else:
                value = after[1]
        out.append(RateSample(date=current, value=value))
        current += timedelta(days=1)
    return out


class HistoricalSeriesBuilder:
    def __init__(
        self,
        client: ExchangeRateClient,
        *,
        rng: random.Random | None = None,
        today: Callable[[], date] | None = None,
        synthetic_only: Iterable[str] | None = None,
    ) -> None:
        self.client = client
        self.rng = rng or random.Random()
        self._today = today or date.today
        if synthetic_only is None:
            synthetic_only = settings.synthetic_only_currencies
        self.synthetic_only = {c.upper() for c in synthetic_only}

    def get_historical_data(
        self, code: str, base_code: str = PIVOT_CURRENCY, days: int = 30
    ) -> list[RateSample]:
        """Daily series for ``code`` quoted in ``base_code`` covering the last ``days`` days.

        Real provider data is used when available, otherwise a generated curve.
        Never raises.
        """
        code = code.strip().upper()
        base_code = base_code.strip().upper()
        days = max(0, min(days, MAX_DETAILED_DAYS))
        today = self._today()

        try:
            if code == base_code:
                return [
                    RateSample(date=today - timedelta(days=i), value=1.0)
                    for i in range(days, -1, -1)
                ]
            if code in self.synthetic_only:
                log_event(logger, "rates.history.synthetic_only", code=code, base=base_code)
                return self._synthetic(code, base_code, days, today)

            series = self._real_history(code, base_code, days, today)
            if series:
                return series
            return self._synthetic(code, base_code, days, today)
        except Exception as e:  # noqa: BLE001
            log_event(
                logger,
                "rates.history.error",
                level=logging.WARNING,
                code=code,
                base=base_code,
                error=repr(e),
            )
            return self._fallback(code, base_code, days, today)

    def _real_history(
        self, code: str, base_code: str, days: int, today: date
    ) -> list[RateSample] | None:
        start = today - timedelta(days=days)
        key_index, _ = self.client.key_state.active()
        try:
            probe = self.client.fetch_pair_rate(code, start, key_index=key_index)
        except UpstreamNotFound:
            log_event(logger, "rates.history.not_found", code=code, base=base_code)
            return None
        except UpstreamError as e:
            log_event(
                logger,
                "rates.history.probe_failed",
                level=logging.WARNING,
                code=code,
                error=str(e),
                error_type=e.error_type,
            )
            if not is_key_failure(e):
                return None
            self.client.rotate_key(key_index)
            try:
                probe = self.client.fetch_pair_rate(code, start)
            except UpstreamError as retry_error:
                log_event(
                    logger,
                    "rates.history.probe_retry_failed",
                    level=logging.WARNING,
                    code=code,
                    error=str(retry_error),
                )
                return None

        key_dates = sorted({start, start + timedelta(days=(days + 1) // 2), today})
        points: list[RateSample] = []
        for on_date in key_dates:
            try:
                rate = probe if on_date == start else self.client.fetch_pair_rate(code, on_date)
                if base_code != PIVOT_CURRENCY:
                    rate = rate / self.client.fetch_pair_rate(base_code, on_date)
            except UpstreamError as e:
                log_event(
                    logger,
                    "rates.history.date_failed",
                    level=logging.WARNING,
                    code=code,
                    base=base_code,
                    on_date=on_date.isoformat(),
                    error=str(e),
                )
                continue
            points.append(RateSample(date=on_date, value=round(rate, 6)))

        if not points:
            return None
        log_event(
            logger,
            "rates.history.real",
            code=code,
            base=base_code,
            points=len(points),
            days=days,
        )
        return fill_missing_dates(points, start, today)

    def _synthetic(self, code: str, base_code: str, days: int, today: date) -> list[RateSample]:
        try:
            usd_rates = self.client.fetch_pivot_rates()
        except UpstreamError as e:
            log_event(
                logger,
                "rates.history.anchor_unavailable",
                level=logging.WARNING,
                code=code,
                base=base_code,
                error=str(e),
            )
            return self._fallback(code, base_code, days, today)

        anchor = cross_rate(usd_rates, code=code, base=base_code)
        if anchor is None:
            log_event(
                logger,
                "rates.history.anchor_missing",
                level=logging.WARNING,
                code=code,
                base=base_code,
            )
            return self._fallback(code, base_code, days, today)

        return generate_curve(
            anchor,
            days,
            today=today,
            seed=pair_seed(code, base_code),
            profile=SYNTHETIC_PROFILE,
            rng=self.rng,
        )

    def _fallback(self, code: str, base_code: str, days: int, today: date) -> list[RateSample]:
        anchor = cross_rate(APPROXIMATE_USD_RATES, code=code, base=base_code) or 1.0
        day_seed = calendar_day_seed(today)
        log_event(
            logger,
            "rates.history.fallback",
            level=logging.WARNING,
            code=code,
            base=base_code,
            anchor=anchor,
        )
        return generate_curve(
            anchor,
            days,
            today=today,
            seed=day_seed / 100,
            profile=FALLBACK_PROFILE,
            day_seed=day_seed,
        )
