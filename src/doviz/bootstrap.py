from __future__ import annotations

from sqlalchemy import select

import doviz.models  # noqa: F401
from doviz.core.config import settings
from doviz.core.db import SessionLocal, engine
from doviz.core.logging import get_logger, log_event
from doviz.core.models import Base
from doviz.core.security import hash_password
from doviz.modules.currencies.service import ensure_currencies
from doviz.modules.identity.models import User, UserRole

logger = get_logger(__name__)


def bootstrap() -> None:
    if settings.environment in {"dev", "test"} and str(settings.database_url).startswith("sqlite"):
        Base.metadata.create_all(engine)

    with SessionLocal() as session:
        created = ensure_currencies(session, settings.default_currencies)
        if created:
            log_event(logger, "bootstrap.currencies", codes=[c.code for c in created])

    if not settings.init_admin_email or not settings.init_admin_password:
        return

    # Support comma-separated list of admin emails
    admin_emails = [
        e.strip().lower() for e in settings.init_admin_email.split(",") if e.strip()
    ]

    with SessionLocal() as session:
        for email in admin_emails:
            existing = session.scalar(select(User).where(User.email == email))
            if existing:
                if existing.role != UserRole.ADMIN:
                    existing.role = UserRole.ADMIN
                    session.add(existing)
                continue
            session.add(
                User(
                    email=email,
                    name="Admin",
                    password_hash=hash_password(settings.init_admin_password),
                    role=UserRole.ADMIN,
                )
            )
            log_event(logger, "bootstrap.admin.created", email=email)
        session.commit()
