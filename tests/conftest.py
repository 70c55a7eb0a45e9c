from __future__ import annotations

import os
import random
from datetime import date

import httpx
import pytest

# Set env before any doviz imports (settings/engine are created at import time).
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DATABASE_URL", "sqlite:///./.doviz_test.db")
os.environ.setdefault("SECRET_KEY", "test-secret-key-0123456789abcdef")
os.environ.setdefault("CURRENCY_API_URL", "https://rates.test/v6/")
os.environ.setdefault("CURRENCY_API_KEY", "primary")
os.environ.setdefault("CURRENCY_API_FALLBACK_KEYS", '["backup"]')

TODAY = date(2025, 3, 15)

USD_RATES = {"USD": 1.0, "EUR": 0.9, "GBP": 0.8, "JPY": 150.0, "TRY": 38.0}


@pytest.fixture(autouse=True)
def _reset_db() -> None:
    import doviz.models  # noqa: F401
    from doviz.core.db import engine
    from doviz.core.models import Base

    # Reset DB schema
    Base.metadata.drop_all(engine)
    Base.metadata.create_all(engine)

    yield


def latest_payload(rates: dict[str, float] | None = None) -> dict:
    return {"result": "success", "base_code": "USD", "conversion_rates": rates or USD_RATES}


def static_transport(rates: dict[str, float] | None = None) -> httpx.MockTransport:
    """Provider that serves the same latest table for every key and 404s pair lookups."""

    def handler(request: httpx.Request) -> httpx.Response:
        if "/latest/" in request.url.path:
            return httpx.Response(200, json=latest_payload(rates))
        return httpx.Response(404, json={"result": "error", "error-type": "not-found"})

    return httpx.MockTransport(handler)


@pytest.fixture
def rates_service():
    from doviz.modules.rates.client import ApiKeyState, ExchangeRateClient
    from doviz.modules.rates.service import RatesService

    client = ExchangeRateClient(
        key_state=ApiKeyState(candidates=["primary", "backup"]),
        transport=static_transport(),
    )
    return RatesService(
        client=client, rng=random.Random(7), clock=lambda: 1000.0, today=lambda: TODAY
    )


@pytest.fixture
def app(rates_service):
    from doviz.main import create_app

    return create_app(rates_service=rates_service)
