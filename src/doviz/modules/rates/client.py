from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import date
from typing import Any

import httpx

from doviz.core.config import settings
from doviz.core.errors import UpstreamError, UpstreamNotFound, UpstreamUnavailable
from doviz.core.logging import get_logger, log_event
from doviz.modules.rates.conversion import PIVOT_CURRENCY, rebase

logger = get_logger(__name__)

TRANSPORT_ERROR = "transport"
# Provider ``error-type`` values that mean the key, not the request, is bad.
KEY_ERROR_TYPES = frozenset({"invalid-key", "inactive-account", "quota-reached", TRANSPORT_ERROR})


@dataclass
class ApiKeyState:
    """Ordered API keys for the rate provider and which one is in use.

    Shared by every request served by one application instance.
    """

    candidates: list[str]
    active_index: int = 0
    is_valid: bool = True
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def __post_init__(self) -> None:
        if not self.candidates:
            raise ValueError("ApiKeyState needs at least one candidate key")

    @classmethod
    def from_settings(cls) -> ApiKeyState:
        keys = [settings.currency_api_key, *settings.currency_api_fallback_keys]
        return cls(candidates=[k for k in keys if k] or [""])

    def active(self) -> tuple[int, str]:
        with self._lock:
            return self.active_index, self.candidates[self.active_index]

    def mark_failed(self, failed_index: int) -> tuple[int, str]:
        """Advance past ``failed_index`` (wrapping) and return the new active key.

        When another request already rotated away from the failed key the
        current key is kept.
        """
        with self._lock:
            self.is_valid = False
            if self.active_index == failed_index:
                self.active_index = (self.active_index + 1) % len(self.candidates)
            return self.active_index, self.candidates[self.active_index]


class ExchangeRateClient:
    """Client for the exchangerate-api style provider (keys embedded in the path)."""

    def __init__(
        self,
        *,
        key_state: ApiKeyState | None = None,
        api_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.key_state = key_state or ApiKeyState.from_settings()
        self.api_url = (api_url or settings.currency_api_url).rstrip("/") + "/"
        self.timeout = timeout or settings.http_timeout_seconds
        self._transport = transport

    def fetch_latest(self, base_code: str = PIVOT_CURRENCY) -> dict[str, float]:
        """Latest rates as units of each code per 1 ``base_code``."""
        return rebase(self.fetch_pivot_rates(), base_code)

    def fetch_pivot_rates(self) -> dict[str, float]:
        index, key = self.key_state.active()
        try:
            return self._latest(key)
        except UpstreamError as e:
            next_index, next_key = self.key_state.mark_failed(index)
            log_event(
                logger,
                "rates.api_key.failed",
                level=logging.WARNING,
                failed_index=index,
                next_index=next_index,
                error=str(e),
            )
        try:
            return self._latest(next_key)
        except UpstreamError as e:
            raise UpstreamUnavailable(
                "Latest rates unavailable with primary and fallback API keys",
                status_code=e.status_code,
            ) from e

    def fetch_pair_rate(
        self, quote_code: str, on_date: date, *, key_index: int | None = None
    ) -> float:
        """Units of ``quote_code`` per 1 USD on ``on_date``.

        Uses the active key unless ``key_index`` pins one, so a caller that
        later reports the failure names the key it actually used.
        """
        if key_index is None:
            _, key = self.key_state.active()
        else:
            key = self.key_state.candidates[key_index]
        data = self._get_json(key, f"pair/{PIVOT_CURRENCY}/{quote_code}/{on_date.isoformat()}")
        raw = data.get("conversion_rate")
        try:
            rate = float(raw)
        except (TypeError, ValueError) as e:
            raise UpstreamError(f"Pair response missing conversion_rate for {quote_code}") from e
        if rate <= 0:
            raise UpstreamError(f"Non-positive pair rate for {quote_code}: {rate}")
        return rate

    def rotate_key(self, failed_index: int) -> None:
        next_index, _ = self.key_state.mark_failed(failed_index)
        log_event(
            logger,
            "rates.api_key.rotated",
            level=logging.WARNING,
            failed_index=failed_index,
            next_index=next_index,
        )

    def _latest(self, key: str) -> dict[str, float]:
        data = self._get_json(key, f"latest/{PIVOT_CURRENCY}")
        table = data.get("conversion_rates")
        if not isinstance(table, dict) or not table:
            raise UpstreamError("Latest response missing conversion_rates")
        rates: dict[str, float] = {}
        for code, value in table.items():
            try:
                rate = float(value)
            except (TypeError, ValueError):
                continue
            if rate > 0:
                rates[str(code).upper()] = rate
        return rates

    def _get_json(self, key: str, path: str) -> dict[str, Any]:
        url = f"{self.api_url}{key}/{path}"
        try:
            with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
                resp = client.get(url, follow_redirects=True)
        except httpx.HTTPError as e:
            raise UpstreamError(
                f"Rate provider request failed: {e}", error_type=TRANSPORT_ERROR
            ) from e

        if resp.status_code == 404:
            raise UpstreamNotFound(f"Rate provider returned 404 for {path}", status_code=404)
        if resp.status_code >= 400:
            raise UpstreamError(
                f"Rate provider returned {resp.status_code} for {path}",
                status_code=resp.status_code,
                error_type=_error_type(resp),
            )
        try:
            data = resp.json()
        except ValueError as e:
            raise UpstreamError("Rate provider returned invalid JSON") from e
        if not isinstance(data, dict):
            raise UpstreamError("Unexpected rate provider response shape")
        if data.get("result") == "error":
            error_type = data.get("error-type") or "unknown"
            raise UpstreamError(f"Rate provider error: {error_type}", error_type=error_type)
        return data


def _error_type(resp: httpx.Response) -> str | None:
    try:
        data = resp.json()
    except ValueError:
        return None
    return data.get("error-type") if isinstance(data, dict) else None


def is_key_failure(error: UpstreamError) -> bool:
    """True when ``error`` says the API key itself is unusable (or the provider is down).

    Request-level errors such as an unsupported currency code leave the key alone.
    """
    if error.error_type in KEY_ERROR_TYPES:
        return True
    status_code = error.status_code
    return status_code is not None and (status_code in (401, 403, 429) or status_code >= 500)
