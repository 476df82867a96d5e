"""Booking model definition and its status lifecycle."""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID, uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Numeric,
    String,
    Text,
    Uuid,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from ..core.database import Base


class BookingStatus(str, Enum):
    """Booking status enumeration."""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


class DurationCode(str, Enum):
    """Rental durations a customer can pick."""
    TWELVE_HOURS = "12h"
    ONE_DAY = "1d"
    THREE_DAYS = "3d"
    ONE_WEEK = "1w"


# Rental length each duration code stands for
DURATION_HOURS: dict[DurationCode, int] = {
    DurationCode.TWELVE_HOURS: 12,
    DurationCode.ONE_DAY: 24,
    DurationCode.THREE_DAYS: 72,
    DurationCode.ONE_WEEK: 168,
}


# Allowed source states for each target state
ALLOWED_TRANSITIONS: dict[BookingStatus, frozenset[BookingStatus]] = {
    BookingStatus.CONFIRMED: frozenset({BookingStatus.PENDING}),
    BookingStatus.CANCELLED: frozenset({BookingStatus.PENDING, BookingStatus.CONFIRMED}),
    BookingStatus.EXPIRED: frozenset({BookingStatus.PENDING}),
    BookingStatus.COMPLETED: frozenset({BookingStatus.CONFIRMED}),
}

TERMINAL_STATUSES = frozenset({
    BookingStatus.COMPLETED,
    BookingStatus.CANCELLED,
    BookingStatus.EXPIRED,
})

# Statuses that may still occupy a costume's calendar
OCCUPYING_STATUSES = (BookingStatus.PENDING, BookingStatus.CONFIRMED)


def can_transition(current: BookingStatus, target: BookingStatus) -> bool:
    """Return True if ``current -> target`` is a legal lifecycle step."""
    return BookingStatus(current) in ALLOWED_TRANSITIONS.get(BookingStatus(target), frozenset())


class Booking(Base):
    """A customer's reservation of one costume for a date range."""

    __tablename__ = "bookings"

    # Primary key
    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    booking_reference: Mapped[str] = mapped_column(String(32), nullable=False, unique=True, index=True)

    costume_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("costumes.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )

    # Customer details
    customer_name: Mapped[str] = mapped_column(String(200), nullable=False)
    customer_email: Mapped[str] = mapped_column(String(320), nullable=False)
    customer_phone: Mapped[str] = mapped_column(String(50), nullable=False)
    special_requests: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Rental period (naive UTC)
    start_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    end_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    duration_code: Mapped[str | None] = mapped_column(String(8), nullable=True)

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=BookingStatus.PENDING.value,
        index=True
    )
    blocked_until: Mapped[datetime | None] = mapped_column(DateTime, nullable=True, index=True)

    # Money captured at creation
    total_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    security_deposit: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    late_fee_per_hour: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)

    # Return and refund
    actual_return_date: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    late_fee_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=Decimal("0"))
    security_deposit_refunded: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    refund_amount: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    refund_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    refund_processed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    messenger_opened: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, server_default=func.now())

    __table_args__ = (
        CheckConstraint("end_date > start_date", name="ck_booking_dates_ordered"),
        CheckConstraint(
            "status IN ('pending', 'confirmed', 'completed', 'cancelled', 'expired')",
            name="ck_booking_status_valid",
        ),
        CheckConstraint("total_price >= 0", name="ck_booking_total_non_negative"),
        CheckConstraint(
            "status != 'pending' OR blocked_until IS NOT NULL",
            name="ck_booking_pending_has_hold",
        ),
        CheckConstraint("length(customer_name) > 0", name="ck_booking_customer_name_not_empty"),
        Index("ix_bookings_costume_dates", "costume_id", "start_date", "end_date"),
    )

    def is_live_hold(self, now: datetime) -> bool:
        """A pending booking whose hold has not lapsed yet."""
        return (
            self.status == BookingStatus.PENDING.value
            and self.blocked_until is not None
            and self.blocked_until > now
        )

    def occupies_calendar(self, now: datetime) -> bool:
        return self.status == BookingStatus.CONFIRMED.value or self.is_live_hold(now)

    def effective_status(self, now: datetime) -> BookingStatus:
        """Status as readers must see it: a lapsed hold reads as expired before the sweep runs."""
        if self.status == BookingStatus.PENDING.value and not self.is_live_hold(now):
            return BookingStatus.EXPIRED
        return BookingStatus(self.status)

    def __repr__(self) -> str:
        return (
            f"<Booking(id={self.id}, reference='{self.booking_reference}', "
            f"costume_id={self.costume_id}, status={self.status})>"
        )
