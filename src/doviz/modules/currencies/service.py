from __future__ import annotations

from collections.abc import Iterable

from fastapi import HTTPException, status
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from doviz.core.currencies import currency_name, normalize_currency
from doviz.modules.currencies.models import Currency, RateSnapshot
from doviz.modules.rates.schemas import CurrencyRate


def _require_code(code: str) -> str:
    code_norm = normalize_currency(code)
    if not code_norm:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Currency code must be three letters (ISO-4217)",
        )
    return code_norm


def get_currency(session: Session, *, code: str) -> Currency:
    currency = session.scalar(select(Currency).where(Currency.code == _require_code(code)))
    if not currency:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Currency not found")
    return currency


def create_currency(session: Session, *, code: str, name: str) -> Currency:
    code_norm = _require_code(code)
    name = (name or "").strip()
    if not name:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Currency name is required"
        )
    if session.scalar(select(Currency).where(Currency.code == code_norm)):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Currency already exists")

    currency = Currency(code=code_norm, name=name)
    session.add(currency)
    session.commit()
    session.refresh(currency)
    return currency


def rename_currency(session: Session, *, code: str, name: str) -> Currency:
    currency = get_currency(session, code=code)
    name = (name or "").strip()
    if not name:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Currency name is required"
        )
    currency.name = name
    session.add(currency)
    session.commit()
    session.refresh(currency)
    return currency


def delete_currency(session: Session, *, code: str) -> None:
    currency = get_currency(session, code=code)
    session.delete(currency)
    session.commit()


def ensure_currencies(session: Session, codes: Iterable[str]) -> list[Currency]:
    created: list[Currency] = []
    for raw in codes:
        code = normalize_currency(raw)
        if not code or session.scalar(select(Currency).where(Currency.code == code)):
            continue
        currency = Currency(code=code, name=currency_name(code))
        session.add(currency)
        created.append(currency)
    session.commit()
    return created


def list_currencies_with_latest(
    session: Session,
) -> list[tuple[Currency, RateSnapshot | None, int]]:
    counts = dict(
        session.execute(
            select(RateSnapshot.currency_id, func.count(RateSnapshot.id)).group_by(
                RateSnapshot.currency_id
            )
        ).all()
    )
    out: list[tuple[Currency, RateSnapshot | None, int]] = []
    for currency in session.scalars(select(Currency).order_by(Currency.code.asc())):
        latest = session.scalar(
            select(RateSnapshot)
            .where(RateSnapshot.currency_id == currency.id)
            .order_by(RateSnapshot.timestamp.desc())
            .limit(1)
        )
        out.append((currency, latest, counts.get(currency.id, 0)))
    return out


def record_snapshots(
    session: Session, *, rates: Iterable[CurrencyRate], base_code: str
) -> list[RateSnapshot]:
    """Persist the given latest rates for every tracked currency."""
    by_code = {r.code: r for r in rates}
    snapshots: list[RateSnapshot] = []
    for currency in session.scalars(select(Currency)):
        if currency.code == base_code:
            snapshot = RateSnapshot(
                currency_id=currency.id, base_code=base_code, value=1.0, change=0.0
            )
        else:
            rate = by_code.get(currency.code)
            if rate is None:
                continue
            snapshot = RateSnapshot(
                currency_id=currency.id,
                base_code=base_code,
                value=rate.value,
                change=rate.change,
                increasing=rate.increasing,
            )
        session.add(snapshot)
        snapshots.append(snapshot)
    session.commit()
    return snapshots
