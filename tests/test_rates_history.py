from __future__ import annotations

import random
from datetime import date, timedelta

import httpx
import pytest

from conftest import TODAY, USD_RATES, latest_payload
from doviz.modules.rates.client import ApiKeyState, ExchangeRateClient
from doviz.modules.rates.conversion import cross_rate
from doviz.modules.rates.history import (
    APPROXIMATE_USD_RATES,
    HistoricalSeriesBuilder,
    fill_missing_dates,
)
from doviz.modules.rates.schemas import RateSample

START = TODAY - timedelta(days=30)
MID = START + timedelta(days=15)

EUR_PAIRS = {START: 0.90, MID: 0.93, TODAY: 0.96}


class Provider:
    """Fake rate provider that records every path it serves."""

    def __init__(
        self, pairs=None, *, pair_status=200, latest_status=200, failing_keys=(), pair_error=None
    ):
        self.pairs = pairs or {}
        self.pair_error = pair_error
        self.pair_status = pair_status
        self.latest_status = latest_status
        self.failing_keys = set(failing_keys)
        self.paths: list[str] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.paths.append(request.url.path)
        _, _, key, kind, *rest = request.url.path.split("/")
        if key in self.failing_keys:
            return httpx.Response(500)
        if kind == "latest":
            if self.latest_status != 200:
                return httpx.Response(self.latest_status)
            return httpx.Response(200, json=latest_payload())
        if self.pair_status != 200:
            return httpx.Response(self.pair_status)
        if self.pair_error:
            return httpx.Response(200, json={"result": "error", "error-type": self.pair_error})
        _, quote, on_date = rest
        value = self.pairs.get((quote, date.fromisoformat(on_date)))
        if value is None:
            return httpx.Response(500)
        return httpx.Response(200, json={"result": "success", "conversion_rate": value})

    @property
    def pair_paths(self) -> list[str]:
        return [p for p in self.paths if "/pair/" in p]


def _builder(
    provider: Provider, keys=("primary", "backup"), key_state: ApiKeyState | None = None
) -> HistoricalSeriesBuilder:
    client = ExchangeRateClient(
        key_state=key_state or ApiKeyState(candidates=list(keys)),
        api_url="https://rates.test/v6/",
        transport=httpx.MockTransport(provider),
    )
    return HistoricalSeriesBuilder(
        client, rng=random.Random(3), today=lambda: TODAY, synthetic_only=["TRY"]
    )


def _assert_contiguous(series: list[RateSample], days: int) -> None:
    assert len(series) == days + 1
    assert series[0].date == TODAY - timedelta(days=days)
    assert series[-1].date == TODAY
    for prev, cur in zip(series, series[1:]):
        assert cur.date - prev.date == timedelta(days=1)


def test_fill_missing_dates_interpolates_and_holds_edges():
    samples = [
        RateSample(date=date(2025, 1, 3), value=1.0),
        RateSample(date=date(2025, 1, 7), value=2.0),
    ]
    filled = fill_missing_dates(samples, date(2025, 1, 1), date(2025, 1, 9))

    assert [s.date for s in filled] == [date(2025, 1, d) for d in range(1, 10)]
    assert [s.value for s in filled] == [1.0, 1.0, 1.0, 1.25, 1.5, 1.75, 2.0, 2.0, 2.0]


def test_fill_missing_dates_with_no_samples_is_empty():
    assert fill_missing_dates([], date(2025, 1, 1), date(2025, 1, 5)) == []


def test_fill_missing_dates_single_sample_is_held():
    filled = fill_missing_dates(
        [RateSample(date=date(2025, 1, 2), value=3.5)], date(2025, 1, 1), date(2025, 1, 3)
    )
    assert [s.value for s in filled] == [3.5, 3.5, 3.5]


def test_real_history_uses_three_key_dates_and_interpolates():
    provider = Provider({("EUR", d): v for d, v in EUR_PAIRS.items()})
    series = _builder(provider).get_historical_data("EUR", "USD", 30)

    _assert_contiguous(series, 30)
    by_date = {s.date: s.value for s in series}
    assert by_date[START] == 0.90
    assert by_date[MID] == 0.93
    assert by_date[TODAY] == 0.96
    assert by_date[START + timedelta(days=1)] == round(0.90 + 0.03 / 15, 6)
    assert len(provider.pair_paths) == 3


def test_real_history_against_non_usd_base_divides_by_base_leg():
    pairs = {("EUR", d): v for d, v in EUR_PAIRS.items()}
    pairs.update({("GBP", d): 0.8 for d in EUR_PAIRS})
    series = _builder(Provider(pairs)).get_historical_data("EUR", "GBP", 30)

    _assert_contiguous(series, 30)
    assert series[0].value == round(0.90 / 0.8, 6)
    assert series[-1].value == round(0.96 / 0.8, 6)


def test_failed_key_date_is_dropped_and_gap_filled():
    pairs = {("EUR", START): 0.90, ("EUR", TODAY): 0.96}
    series = _builder(Provider(pairs)).get_historical_data("EUR", "USD", 30)

    by_date = {s.date: s.value for s in series}
    assert by_date[MID] == round(0.90 + 0.06 * 15 / 30, 6)


def test_probe_not_found_goes_synthetic_without_more_pair_calls():
    provider = Provider(pair_status=404)
    series = _builder(provider).get_historical_data("EUR", "USD", 30)

    _assert_contiguous(series, 30)
    assert series[-1].value == 0.9
    assert len(provider.pair_paths) == 1


def test_probe_failure_rotates_key_and_retries():
    provider = Provider({("EUR", d): v for d, v in EUR_PAIRS.items()}, failing_keys={"primary"})
    builder = _builder(provider)
    series = builder.get_historical_data("EUR", "USD", 30)

    assert builder.client.key_state.active_index == 1
    assert series[0].value == 0.90
    assert provider.pair_paths[0].startswith("/v6/primary/")
    assert provider.pair_paths[1].startswith("/v6/backup/")


class RotatedElsewhereProvider(Provider):
    """Another request rotates off the primary key while our probe is in flight."""

    def __init__(self, key_state: ApiKeyState, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.key_state = key_state

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if "/primary/" in request.url.path:
            self.key_state.mark_failed(0)
        return super().__call__(request)


def test_probe_failure_after_concurrent_rotation_keeps_the_healthy_key():
    state = ApiKeyState(candidates=["primary", "backup"])
    provider = RotatedElsewhereProvider(
        state, {("EUR", d): v for d, v in EUR_PAIRS.items()}, failing_keys={"primary"}
    )
    series = _builder(provider, key_state=state).get_historical_data("EUR", "USD", 30)

    assert state.active_index == 1
    assert provider.pair_paths[0].startswith("/v6/primary/")
    assert all(p.startswith("/v6/backup/") for p in provider.pair_paths[1:])
    assert series[0].value == 0.90
    assert series[-1].value == 0.96


def test_request_level_probe_error_leaves_the_key_alone():
    provider = Provider(pair_error="unsupported-code")
    builder = _builder(provider)
    series = builder.get_historical_data("EUR", "USD", 30)

    _assert_contiguous(series, 30)
    assert series[-1].value == 0.9
    assert len(provider.pair_paths) == 1
    assert builder.client.key_state.active() == (0, "primary")
    assert builder.client.key_state.is_valid is True


def test_synthetic_only_currency_never_calls_pair_endpoint():
    provider = Provider()
    series = _builder(provider).get_historical_data("try", "eur", 60)

    _assert_contiguous(series, 60)
    assert provider.pair_paths == []
    assert series[-1].value == round(cross_rate(USD_RATES, code="TRY", base="EUR"), 6)


def test_total_outage_uses_fallback_anchor():
    provider = Provider(pair_status=500, latest_status=500)
    series = _builder(provider).get_historical_data("EUR", "USD", 10)

    _assert_contiguous(series, 10)
    assert series[-1].value == round(APPROXIMATE_USD_RATES["EUR"], 6)


def test_same_code_and_base_is_flat():
    provider = Provider()
    series = _builder(provider).get_historical_data("EUR", "EUR", 7)

    _assert_contiguous(series, 7)
    assert {s.value for s in series} == {1.0}
    assert provider.paths == []


@pytest.mark.parametrize(("days", "expected"), [(0, 0), (-5, 0), (500, 180)])
def test_days_are_clamped(days, expected):
    series = _builder(Provider(pair_status=404)).get_historical_data("GBP", "USD", days)
    _assert_contiguous(series, expected)
