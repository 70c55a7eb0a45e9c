from __future__ import annotations

from collections.abc import Mapping

from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from doviz.core.currencies import normalize_currency
from doviz.modules.conversions.models import ConversionHistory
from doviz.modules.conversions.schemas import ConversionQuote
from doviz.modules.identity.models import User
from doviz.modules.rates.conversion import cross_rate


def convert_amount(
    rates_in_usd: Mapping[str, float], *, from_currency: str, to_currency: str, amount: float
) -> ConversionQuote:
    from_code = normalize_currency(from_currency)
    to_code = normalize_currency(to_currency)
    if not from_code or not to_code:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid currency")
    if amount < 0:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Amount must not be negative"
        )

    rate = 1.0 if from_code == to_code else cross_rate(rates_in_usd, code=to_code, base=from_code)
    if rate is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"No rate available for {from_code}/{to_code}",
        )
    return ConversionQuote(
        from_currency=from_code,
        to_currency=to_code,
        amount=amount,
        rate=round(rate, 6),
        converted_amount=round(amount * rate, 4),
    )


def record_conversion(
    session: Session,
    *,
    user: User,
    from_currency: str | None,
    to_currency: str | None,
    amount: float | None,
    converted_amount: float | None,
    rate: float | None = None,
) -> ConversionHistory:
    if not from_currency or not to_currency or not amount or not converted_amount:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing fields")
    from_code = normalize_currency(from_currency)
    to_code = normalize_currency(to_currency)
    if not from_code or not to_code:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid currency")

    conversion = ConversionHistory(
        user_id=user.id,
        from_currency=from_code,
        to_currency=to_code,
        amount=amount,
        converted_amount=converted_amount,
        rate=rate or 0.0,
    )
    session.add(conversion)
    session.commit()
    session.refresh(conversion)
    return conversion


def list_conversions(session: Session, *, user: User, limit: int = 50) -> list[ConversionHistory]:
    return list(
        session.scalars(
            select(ConversionHistory)
            .where(ConversionHistory.user_id == user.id)
            .order_by(ConversionHistory.created_at.desc())
            .limit(limit)
        )
    )
