"""Availability index over bookings and admin blocks."""

import logging
from dataclasses import dataclass
from datetime import date, datetime, time
from typing import Optional
from uuid import UUID

from sqlalchemy import delete, select, text
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.clock import Clock
from ..core.database import commit_or_raise, supports_advisory_locks
from ..core.date_ranges import date_span_intersection, iter_dates, month_bounds
from ..core.exceptions import NotFoundError, ValidationError
from ..models.availability_block import AvailabilityBlock
from ..models.booking import OCCUPYING_STATUSES, Booking, BookingStatus
from .costume_service import CostumeService

logger = logging.getLogger(__name__)


@dataclass
class AvailabilityCheck:
    """Whether a range is free and, if not, what is in the way."""

    blocked: bool
    blocking_booking: Optional[Booking] = None
    blocking_block: Optional[AvailabilityBlock] = None

    @property
    def is_temporary(self) -> bool:
        """True when only a pending hold blocks the range."""
        return (
            self.blocking_booking is not None
            and self.blocking_booking.status == BookingStatus.PENDING.value
        )


class AvailabilityService:
    """Service answering availability questions for a costume's calendar."""

    def __init__(self, db: AsyncSession, clock: Clock):
        self.db = db
        self.clock = clock

    async def lock_costume(self, costume_id: UUID) -> None:
        """
        Serialize check-then-write sequences on one costume.

        Takes a PostgreSQL advisory lock released at transaction end. Other
        backends have no equivalent and run unlocked.
        """
        if supports_advisory_locks(self.db):
            await self.db.execute(
                text("SELECT pg_advisory_xact_lock(hashtext(:costume_id))"),
                {"costume_id": str(costume_id)}
            )
            logger.debug(
                "Acquired advisory lock for costume",
                extra={"costume_id": str(costume_id)}
            )

    async def find_overlapping_bookings(
        self,
        costume_id: UUID,
        start: datetime,
        end: datetime,
        exclude_booking_id: Optional[UUID] = None,
    ) -> list[Booking]:
        """Pending or confirmed bookings whose stored range touches [start, end]."""
        stmt = (
            select(Booking)
            .where(
                Booking.costume_id == costume_id,
                Booking.status.in_([status.value for status in OCCUPYING_STATUSES]),
                Booking.start_date <= end,
                Booking.end_date >= start,
            )
            .order_by(Booking.created_at, Booking.id)
        )
        if exclude_booking_id is not None:
            stmt = stmt.where(Booking.id != exclude_booking_id)

        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def find_overlapping_blocks(
        self, costume_id: UUID, start: date, end: date
    ) -> list[AvailabilityBlock]:
        """Admin blocks sharing at least one calendar date with [start, end]."""
        stmt = (
            select(AvailabilityBlock)
            .where(
                AvailabilityBlock.costume_id == costume_id,
                AvailabilityBlock.start_date <= end,
                AvailabilityBlock.end_date >= start,
            )
            .order_by(AvailabilityBlock.start_date, AvailabilityBlock.id)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def is_blocked(
        self,
        costume_id: UUID,
        start: datetime,
        end: datetime,
        exclude_booking_id: Optional[UUID] = None,
        confirmed_only: bool = False,
    ) -> AvailabilityCheck:
        """
        Check a requested range against bookings and admin blocks.

        Overlap is inclusive: a booking ending exactly when the request starts
        still conflicts. Pending bookings whose hold has lapsed are ignored
        whether or not the sweep has marked them expired yet.

        Args:
            costume_id: Costume to check
            start: Requested start (naive UTC)
            end: Requested end (naive UTC)
            exclude_booking_id: Booking to leave out, used when re-checking itself
            confirmed_only: Ignore pending holds entirely

        Returns:
            AvailabilityCheck naming the earliest-created confirmed booking,
            else the first admin block, else the earliest-created live hold
        """
        now = self.clock.now()
        candidates = await self.find_overlapping_bookings(costume_id, start, end, exclude_booking_id)

        # Permanent blockers are reported before live holds
        for booking in candidates:
            if booking.status == BookingStatus.CONFIRMED.value:
                return AvailabilityCheck(blocked=True, blocking_booking=booking)

        blocks = await self.find_overlapping_blocks(costume_id, start.date(), end.date())
        if blocks:
            return AvailabilityCheck(blocked=True, blocking_block=blocks[0])

        if not confirmed_only:
            for booking in candidates:
                if booking.is_live_hold(now):
                    return AvailabilityCheck(blocked=True, blocking_booking=booking)

        return AvailabilityCheck(blocked=False)

    async def _covered_dates(self, costume_id: UUID, first: date, last: date) -> set[date]:
        now = self.clock.now()
        covered: set[date] = set()

        bookings = await self.find_overlapping_bookings(
            costume_id,
            datetime.combine(first, time.min),
            datetime.combine(last, time.max),
        )
        for booking in bookings:
            if booking.occupies_calendar(now):
                covered.update(
                    date_span_intersection(booking.start_date.date(), booking.end_date.date(), first, last)
                )

        for block in await self.find_overlapping_blocks(costume_id, first, last):
            covered.update(date_span_intersection(block.start_date, block.end_date, first, last))

        return covered

    async def blocked_dates_for_month(self, costume_id: UUID, year: int, month: int) -> list[date]:
        """
        Calendar dates of a month taken by an active booking or an admin block.

        Raises:
            ValidationError: If month is not 1-12
        """
        if not 1 <= month <= 12:
            raise ValidationError(
                "Month must be between 1 and 12",
                violations=[{"path": "month", "message": "Month must be between 1 and 12"}],
            )
        first, last = month_bounds(year, month)
        return sorted(await self._covered_dates(costume_id, first, last))

    async def check_range(self, costume_id: UUID, start: datetime, end: datetime) -> tuple[bool, list[date]]:
        """
        Check whether a costume can be held for a range.

        Returns:
            ``(is_available, blocked_dates)`` where blocked_dates lists the
            calendar dates of the range already taken

        Raises:
            ValidationError: If end is before start
        """
        if end < start:
            raise ValidationError("End date must not be before start date")

        check = await self.is_blocked(costume_id, start, end)
        covered = await self._covered_dates(costume_id, start.date(), end.date())
        return not check.blocked, sorted(covered.intersection(iter_dates(start, end)))

    async def list_blocks(self, costume_id: UUID) -> list[AvailabilityBlock]:
        stmt = (
            select(AvailabilityBlock)
            .where(AvailabilityBlock.costume_id == costume_id)
            .order_by(AvailabilityBlock.start_date)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def create_block(
        self,
        costume_id: UUID,
        start_date: date,
        end_date: date,
        reason: Optional[str] = None,
        created_by: Optional[str] = None,
    ) -> AvailabilityBlock:
        """
        Take a costume out of circulation for a range of calendar dates.

        Existing bookings are left alone; the block only constrains new holds
        and confirmations.

        Raises:
            ValidationError: If end_date is before start_date
            NotFoundError: If the costume does not exist
        """
        if end_date < start_date:
            raise ValidationError(
                "End date must not be before start date",
                violations=[{"path": "end_date", "message": "must be on or after start_date"}],
            )

        await CostumeService(self.db).get_costume_by_id_or_raise(costume_id)

        block = AvailabilityBlock(
            costume_id=costume_id,
            start_date=start_date,
            end_date=end_date,
            reason=reason,
            created_by=created_by or "admin",
            created_at=self.clock.now(),
        )
        self.db.add(block)
        await commit_or_raise(self.db, "create_availability_block")
        await self.db.refresh(block)

        logger.info(
            "Availability block created",
            extra={
                "block_id": str(block.id),
                "costume_id": str(costume_id),
                "start_date": start_date.isoformat(),
                "end_date": end_date.isoformat(),
                "created_by": block.created_by,
            }
        )
        return block

    async def delete_block(self, block_id: UUID) -> None:
        """
        Remove an admin block.

        Raises:
            NotFoundError: If the block does not exist
        """
        result = await self.db.execute(
            delete(AvailabilityBlock).where(AvailabilityBlock.id == block_id)
        )
        if result.rowcount == 0:
            await self.db.rollback()
            raise NotFoundError(resource_type="availability block", resource_id=str(block_id))

        await commit_or_raise(self.db, "delete_availability_block")
        logger.info("Availability block deleted", extra={"block_id": str(block_id)})
