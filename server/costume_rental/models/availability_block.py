"""Admin availability block model definition."""

from datetime import date, datetime
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, Date, ForeignKey, String, Text, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from ..core.database import Base


class AvailabilityBlock(Base):
    """Calendar dates an admin has taken a costume out of circulation for."""

    __tablename__ = "availability_blocks"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    costume_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("costumes.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    # Inclusive calendar dates
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_by: Mapped[str | None] = mapped_column(String(128), nullable=True)

    created_at: Mapped[datetime] = mapped_column(nullable=False, server_default=func.now())

    __table_args__ = (
        CheckConstraint("end_date >= start_date", name="ck_block_dates_ordered"),
    )

    def __repr__(self) -> str:
        return (
            f"<AvailabilityBlock(id={self.id}, costume_id={self.costume_id}, "
            f"start_date={self.start_date}, end_date={self.end_date})>"
        )
