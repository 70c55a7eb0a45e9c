from __future__ import annotations

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from doviz.api.deps import get_rates_service, require_role
from doviz.core.db import db_session
from doviz.modules.currencies.models import Currency, RateSnapshot
from doviz.modules.currencies.schemas import (
    CurrencyCreate,
    CurrencyOut,
    CurrencyUpdate,
    RateSnapshotOut,
)
from doviz.modules.currencies.service import (
    create_currency,
    delete_currency,
    list_currencies_with_latest,
    record_snapshots,
    rename_currency,
)
from doviz.modules.identity.models import User, UserRole
from doviz.modules.rates.api import latest_rates_or_http_error
from doviz.modules.rates.conversion import PIVOT_CURRENCY
from doviz.modules.rates.service import RatesService

router = APIRouter(tags=["currencies"])


def _currency_out(
    currency: Currency, latest: RateSnapshot | None = None, count: int = 0
) -> CurrencyOut:
    return CurrencyOut(
        id=currency.id,
        code=currency.code,
        name=currency.name,
        latest=RateSnapshotOut.model_validate(latest, from_attributes=True) if latest else None,
        snapshot_count=count,
    )


@router.get("/currencies", response_model=list[CurrencyOut])
def list_currencies(
    session: Session = Depends(db_session),
    _: User = Depends(require_role(UserRole.ADMIN)),
) -> list[CurrencyOut]:
    return [_currency_out(c, latest, n) for c, latest, n in list_currencies_with_latest(session)]


@router.post("/currencies", response_model=CurrencyOut, status_code=status.HTTP_201_CREATED)
def add_currency(
    payload: CurrencyCreate,
    session: Session = Depends(db_session),
    _: User = Depends(require_role(UserRole.ADMIN)),
) -> CurrencyOut:
    return _currency_out(create_currency(session, code=payload.code, name=payload.name))


@router.patch("/currencies/{code}", response_model=CurrencyOut)
def update_currency(
    code: str,
    payload: CurrencyUpdate,
    session: Session = Depends(db_session),
    _: User = Depends(require_role(UserRole.ADMIN)),
) -> CurrencyOut:
    return _currency_out(rename_currency(session, code=code, name=payload.name))


@router.delete("/currencies/{code}", status_code=status.HTTP_204_NO_CONTENT)
def remove_currency(
    code: str,
    session: Session = Depends(db_session),
    _: User = Depends(require_role(UserRole.ADMIN)),
) -> Response:
    delete_currency(session, code=code)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/currencies/snapshots", response_model=list[RateSnapshotOut])
def snapshot_rates(
    base: str = PIVOT_CURRENCY,
    session: Session = Depends(db_session),
    rates: RatesService = Depends(get_rates_service),
    _: User = Depends(require_role(UserRole.ADMIN)),
) -> list[RateSnapshotOut]:
    base_code = base.strip().upper()
    latest = latest_rates_or_http_error(rates, base_code)
    snapshots = record_snapshots(session, rates=latest, base_code=base_code)
    return [RateSnapshotOut.model_validate(s, from_attributes=True) for s in snapshots]
