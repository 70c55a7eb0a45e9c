from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from doviz.api.router import router as api_router
from doviz.bootstrap import bootstrap
from doviz.core.logging import RequestContextMiddleware, configure_logging
from doviz.core.security import resolve_secret_key
from doviz.modules.rates.service import RatesService
from doviz.web.session import SessionMiddleware
from doviz.web.ui import STATIC_DIR, router as ui_router


def create_app(*, rates_service: RatesService | None = None) -> FastAPI:
    configure_logging()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Fails fast in production when no signing key is configured.
        resolve_secret_key()
        bootstrap()
        if not hasattr(app.state, "rates_service"):
            app.state.rates_service = RatesService()
        yield

    app = FastAPI(title="Doviz", version="0.1.0", lifespan=lifespan)
    if rates_service is not None:
        app.state.rates_service = rates_service
    app.add_middleware(SessionMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestContextMiddleware)
    app.include_router(api_router)
    app.include_router(ui_router)
    app.mount("/static", StaticFiles(directory=str(STATIC_DIR)), name="static")
    return app


app = create_app()
