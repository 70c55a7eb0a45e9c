from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from doviz.api.deps import get_current_user, get_rates_service
from doviz.core.db import db_session
from doviz.core.errors import UpstreamUnavailable
from doviz.modules.conversions.schemas import ConversionCreate, ConversionOut, ConversionQuote
from doviz.modules.conversions.service import convert_amount, list_conversions, record_conversion
from doviz.modules.identity.models import User
from doviz.modules.rates.service import RatesService

router = APIRouter(tags=["conversions"])


@router.get("/convert", response_model=ConversionQuote)
def convert(
    from_currency: str = Query(..., alias="from"),
    to_currency: str = Query(..., alias="to"),
    amount: float = Query(1.0, ge=0),
    rates: RatesService = Depends(get_rates_service),
) -> ConversionQuote:
    try:
        table = rates.get_latest_table()
    except UpstreamUnavailable as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Exchange rates are currently unavailable",
        ) from e
    return convert_amount(
        table, from_currency=from_currency, to_currency=to_currency, amount=amount
    )


@router.post("/conversions", response_model=ConversionOut, status_code=status.HTTP_201_CREATED)
def create_conversion(
    payload: ConversionCreate,
    session: Session = Depends(db_session),
    user: User = Depends(get_current_user),
) -> ConversionOut:
    conversion = record_conversion(
        session,
        user=user,
        from_currency=payload.from_currency,
        to_currency=payload.to_currency,
        amount=payload.amount,
        converted_amount=payload.converted_amount,
        rate=payload.rate,
    )
    return ConversionOut.model_validate(conversion, from_attributes=True)


@router.get("/conversions", response_model=list[ConversionOut])
def get_conversions(
    session: Session = Depends(db_session),
    user: User = Depends(get_current_user),
) -> list[ConversionOut]:
    return [
        ConversionOut.model_validate(c, from_attributes=True)
        for c in list_conversions(session, user=user)
    ]
