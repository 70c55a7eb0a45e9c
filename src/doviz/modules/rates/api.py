from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, status

from doviz.api.deps import get_rates_service
from doviz.core.currencies import normalize_currency
from doviz.core.errors import UnknownBaseCurrency, UpstreamUnavailable
from doviz.modules.rates.schemas import CurrencyRate, HistoryOut, LatestRatesOut
from doviz.modules.rates.service import RatesService
from doviz.modules.rates.synthetic import MAX_DETAILED_DAYS

router = APIRouter(tags=["rates"])


def _code_or_400(value: str, field: str) -> str:
    code = normalize_currency(value)
    if not code:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail=f"{field} must be a 3-letter code"
        )
    return code


def latest_rates_or_http_error(rates: RatesService, base: str) -> list[CurrencyRate]:
    try:
        return rates.get_latest_rates(base)
    except UnknownBaseCurrency as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e
    except UpstreamUnavailable as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Exchange rates are currently unavailable",
        ) from e


@router.get("/rates/latest", response_model=LatestRatesOut)
def latest_rates(
    base: str = "USD",
    rates: RatesService = Depends(get_rates_service),
) -> LatestRatesOut:
    base_code = _code_or_400(base, "base")
    return LatestRatesOut(base=base_code, rates=latest_rates_or_http_error(rates, base_code))


@router.get("/rates/{code}/history", response_model=HistoryOut)
def rate_history(
    code: str,
    base: str = "USD",
    days: int = Query(30, ge=0, le=MAX_DETAILED_DAYS),
    rates: RatesService = Depends(get_rates_service),
) -> HistoryOut:
    code_norm = _code_or_400(code, "code")
    base_code = _code_or_400(base, "base")
    samples = rates.get_historical_data(code_norm, base_code, days)
    return HistoryOut(code=code_norm, base=base_code, days=days, samples=samples)
