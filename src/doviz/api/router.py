from __future__ import annotations

from fastapi import APIRouter

from doviz.modules.conversions.api import router as conversions_router
from doviz.modules.currencies.api import router as currencies_router
from doviz.modules.identity.api import router as identity_router
from doviz.modules.messages.api import router as messages_router
from doviz.modules.rates.api import router as rates_router

router = APIRouter()

router.include_router(identity_router, prefix="/api")
router.include_router(rates_router, prefix="/api")
router.include_router(conversions_router, prefix="/api")
router.include_router(currencies_router, prefix="/api")
router.include_router(messages_router, prefix="/api")


@router.get("/healthz")
def healthz() -> dict[str, str]:
    return {"status": "ok"}
