from __future__ import annotations

import uuid
from datetime import UTC, datetime

from sqlalchemy import Boolean, DateTime, Float, ForeignKey, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from doviz.core.models import Base, Timestamped, UUIDPrimaryKey


class Currency(UUIDPrimaryKey, Timestamped, Base):
    __tablename__ = "currency"

    code: Mapped[str] = mapped_column(String(3), unique=True, index=True)
    name: Mapped[str] = mapped_column(String(100))

    snapshots = relationship(
        "RateSnapshot",
        back_populates="currency",
        cascade="all, delete-orphan",
        order_by="RateSnapshot.timestamp.desc()",
    )


class RateSnapshot(UUIDPrimaryKey, Base):
    __tablename__ = "currency_rate_snapshot"

    currency_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("currency.id", ondelete="CASCADE"), index=True
    )
    base_code: Mapped[str] = mapped_column(String(3), default="USD")
    value: Mapped[float] = mapped_column(Float)
    change: Mapped[float] = mapped_column(Float, default=0.0)
    increasing: Mapped[bool] = mapped_column(Boolean, default=False)
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(UTC), index=True
    )

    currency = relationship("Currency", back_populates="snapshots")
