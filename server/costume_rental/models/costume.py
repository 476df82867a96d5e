"""Costume model definition."""

from datetime import datetime
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import Boolean, CheckConstraint, Integer, Numeric, String, Text, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from ..core.database import Base


class Costume(Base):
    """Costume entity carrying the rate card used to price bookings."""

    __tablename__ = "costumes"

    # Primary key
    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    # Catalogue details
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    slug: Mapped[str] = mapped_column(String(200), nullable=False, unique=True, index=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    size: Mapped[str | None] = mapped_column(String(50), nullable=True)
    difficulty: Mapped[str | None] = mapped_column(String(50), nullable=True)
    setup_time_minutes: Mapped[int | None] = mapped_column(Integer, nullable=True)

    # Rate card
    price_per_12_hours: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    price_per_day: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    price_per_week: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)

    is_available: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(nullable=False, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(nullable=False, server_default=func.now())

    __table_args__ = (
        CheckConstraint("price_per_day > 0", name="ck_costume_daily_rate_positive"),
        CheckConstraint("price_per_week > 0", name="ck_costume_weekly_rate_positive"),
        CheckConstraint(
            "price_per_12_hours IS NULL OR price_per_12_hours > 0",
            name="ck_costume_half_day_rate_positive",
        ),
        CheckConstraint("length(name) > 0", name="ck_costume_name_not_empty"),
    )

    def __repr__(self) -> str:
        return f"<Costume(id={self.id}, slug='{self.slug}', is_available={self.is_available})>"
