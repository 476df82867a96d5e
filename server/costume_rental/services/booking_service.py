"""Booking ledger: soft holds, lifecycle transitions and returns."""

import logging
import secrets
import string
from datetime import datetime, timedelta, timezone
from typing import Any, Iterable, Optional
from uuid import UUID

from sqlalchemy import delete, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.clock import Clock
from ..core.config import BookingPolicyConfig
from ..core.database import commit_or_raise
from ..core.exceptions import (
    AuthorizationError,
    AvailabilityConflictError,
    InvalidStateError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from ..core.observability import metrics_collector
from ..models.booking import DURATION_HOURS, Booking, BookingStatus, DurationCode, can_transition
from ..schemas.booking import CreateBookingRequest, PatchBookingRequest, UpdateBookingRequest
from .availability_service import AvailabilityCheck, AvailabilityService
from .costume_service import CostumeService
from .pricing import ZERO, PricingEngine
from .seasonal_policy import SeasonalPolicy

logger = logging.getLogger(__name__)

BASE36_ALPHABET = string.digits + string.ascii_uppercase
REFERENCE_SUFFIX_LENGTH = 4
MAX_REFERENCE_ATTEMPTS = 10

CONTACT_FIELDS = ("customer_name", "customer_email", "customer_phone")


def to_base36(value: int) -> str:
    """Uppercase base-36 rendering of a non-negative integer."""
    if value < 0:
        raise ValueError("value must be non-negative")
    if value == 0:
        return "0"
    digits = []
    while value:
        value, remainder = divmod(value, 36)
        digits.append(BASE36_ALPHABET[remainder])
    return "".join(reversed(digits))


def generate_booking_reference(now: datetime) -> str:
    """
    Build a human-shareable booking reference.

    Format is ``BOOK-<base36 epoch millis>-<4 random base36 chars>``.
    """
    millis = int(now.replace(tzinfo=timezone.utc).timestamp() * 1000)
    suffix = "".join(secrets.choice(BASE36_ALPHABET) for _ in range(REFERENCE_SUFFIX_LENGTH))
    return f"BOOK-{to_base36(max(millis, 0))}-{suffix}"


def _require_contact_fields(values: dict[str, Any]) -> None:
    violations = [
        {"path": field, "message": "must not be empty"}
        for field in CONTACT_FIELDS
        if not (values.get(field) or "").strip()
    ]
    if violations:
        raise ValidationError("Customer name, email and phone are required", violations=violations)


def _require_ordered_range(start: datetime, end: datetime) -> None:
    if end <= start:
        raise ValidationError(
            "End date must be after start date",
            violations=[{"path": "end_date", "message": "must be after start_date"}],
        )


def _require_range_matches_code(start: datetime, end: datetime, code: DurationCode | str) -> None:
    """The range must last exactly as long as the duration code it is priced by."""
    code = DurationCode(code)
    expected = DURATION_HOURS[code]
    if end - start != timedelta(hours=expected):
        raise ValidationError(
            f"A {code.value} rental must end exactly {expected} hours after it starts",
            violations=[{"path": "end_date", "message": f"must be start_date plus {expected} hours"}],
        )


class BookingService:
    """Service for booking-related operations."""

    def __init__(self, db: AsyncSession, clock: Clock, policy: BookingPolicyConfig):
        self.db = db
        self.clock = clock
        self.policy = policy
        self.pricing = PricingEngine(policy)
        self.seasonal = SeasonalPolicy(policy)
        self.availability = AvailabilityService(db, clock)
        self.costumes = CostumeService(db)

    async def _generate_unique_reference(self, now: datetime) -> str:
        for _ in range(MAX_REFERENCE_ATTEMPTS):
            reference = generate_booking_reference(now)
            if await self.get_booking_by_reference(reference) is None:
                return reference
        raise PersistenceError(
            detail="Could not allocate a unique booking reference",
            operation="generate_booking_reference",
        )

    def _conflict_error(self, check: AvailabilityCheck) -> AvailabilityConflictError:
        booking = check.blocking_booking
        if booking is not None and check.is_temporary:
            error = AvailabilityConflictError(
                detail=(
                    "This costume is temporarily reserved by another customer until "
                    f"{booking.blocked_until:%H:%M} UTC. Please try again later or choose different dates."
                ),
                code="TEMPORARILY_RESERVED",
                blocked_until=booking.blocked_until,
                conflicting_booking_id=str(booking.id),
            )
        elif booking is not None:
            error = AvailabilityConflictError(
                detail="This costume is already booked for the selected dates.",
                code="BOOKED",
                conflicting_booking_id=str(booking.id),
            )
        else:
            detail = "This costume is not available for the selected dates."
            if check.blocking_block is not None and check.blocking_block.reason:
                detail += f" Reason: {check.blocking_block.reason}"
            error = AvailabilityConflictError(detail=detail, code="BLOCKED_BY_ADMIN")

        metrics_collector.record_availability_conflict(error.code)
        return error

    async def _execute_write(self, stmt, operation: str):
        try:
            return await self.db.execute(stmt)
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(
                "Database write failed",
                extra={"operation": operation, "error": str(e)},
                exc_info=True
            )
            raise PersistenceError(operation=operation) from e

    async def _refetch(self, booking_id: UUID) -> Booking:
        stmt = (
            select(Booking)
            .where(Booking.id == booking_id)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        booking = result.scalar_one_or_none()
        if booking is None:
            raise NotFoundError(resource_type="booking", resource_id=str(booking_id))
        return booking

    async def compare_and_set(
        self,
        booking_id: UUID,
        allowed_from: Iterable[BookingStatus],
        values: dict[str, Any],
        operation: str,
        extra_criteria: tuple = (),
    ) -> Booking:
        """
        Apply ``values`` only if the booking is still in one of ``allowed_from``.

        Raises:
            NotFoundError: If the booking does not exist
            InvalidStateError: If the booking left the allowed states
        """
        allowed = [BookingStatus(status).value for status in allowed_from]
        stmt = (
            update(Booking)
            .where(Booking.id == booking_id, Booking.status.in_(allowed), *extra_criteria)
            .values(**values, updated_at=self.clock.now())
            .execution_options(synchronize_session=False)
        )
        result = await self._execute_write(stmt, operation)

        if result.rowcount == 0:
            await self.db.rollback()
            current = await self.get_booking(booking_id)
            if current is None:
                raise NotFoundError(resource_type="booking", resource_id=str(booking_id))
            logger.warning(
                "Booking transition rejected",
                extra={
                    "booking_id": str(booking_id),
                    "operation": operation,
                    "current_status": current.status,
                    "allowed_from": allowed,
                }
            )
            raise InvalidStateError(
                detail=f"Cannot {operation.replace('_', ' ')} a booking that is {current.status}",
                current_status=current.status,
                booking_id=str(booking_id),
            )

        await commit_or_raise(self.db, operation)
        return await self._refetch(booking_id)

    async def sweep_expired_holds(self) -> int:
        """
        Mark every lapsed pending hold as expired.

        A single conditional update, so concurrent sweeps cannot double-apply
        and a hold confirmed in the meantime is never touched. Failures are
        logged and swallowed; readers ignore lapsed holds anyway.

        Returns:
            Number of holds expired by this sweep
        """
        now = self.clock.now()
        stmt = (
            update(Booking)
            .where(
                Booking.status == BookingStatus.PENDING.value,
                Booking.blocked_until < now,
            )
            .values(status=BookingStatus.EXPIRED.value, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        try:
            result = await self.db.execute(stmt)
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(
                "Expired hold sweep failed",
                extra={"error": str(e)},
                exc_info=True
            )
            return 0

        expired = result.rowcount or 0
        if expired:
            metrics_collector.record_holds_expired(expired)
            logger.info("Expired holds swept", extra={"expired_count": expired})
        return expired

    async def create_hold(self, request: CreateBookingRequest) -> Booking:
        """
        Place a soft hold on a costume for a date range.

        Args:
            request: Booking creation request (dates already naive UTC)

        Returns:
            The pending booking, blocking the costume until ``blocked_until``

        Raises:
            ValidationError: If contact fields are blank, the range is empty
                or it starts before today
            SeasonalViolationError: If the range or duration code breaks the
                season's rules
            NotFoundError: If the costume does not exist
            AvailabilityConflictError: If the costume is unavailable or the
                range overlaps a confirmed booking, live hold or admin block
            PersistenceError: If the booking cannot be stored
        """
        now = self.clock.now()
        start, end = request.start_date, request.end_date

        _require_contact_fields(request.model_dump(include=set(CONTACT_FIELDS)))
        _require_ordered_range(start, end)
        if start.date() < now.date():
            raise ValidationError(
                "Start date cannot be in the past",
                violations=[{"path": "start_date", "message": "must not be before today"}],
            )

        self.seasonal.validate(start, end)
        if request.duration_code is not None:
            self.seasonal.check_duration_code(start, request.duration_code)
            _require_range_matches_code(start, end, request.duration_code)

        await self.sweep_expired_holds()

        costume = await self.costumes.get_costume_by_id_or_raise(request.costume_id)
        if not costume.is_available:
            metrics_collector.record_availability_conflict("COSTUME_UNAVAILABLE")
            raise AvailabilityConflictError(
                detail="This costume is currently not available for rental.",
                code="COSTUME_UNAVAILABLE",
            )

        await self.availability.lock_costume(costume.id)
        check = await self.availability.is_blocked(costume.id, start, end)
        if check.blocked:
            logger.warning(
                "Hold rejected - costume not available",
                extra={
                    "costume_id": str(costume.id),
                    "start_date": start.isoformat(),
                    "end_date": end.isoformat(),
                    "blocking_booking_id": str(check.blocking_booking.id) if check.blocking_booking else None,
                    "blocking_block_id": str(check.blocking_block.id) if check.blocking_block else None,
                }
            )
            # Rollback expires loaded rows, so build the error first
            error = self._conflict_error(check)
            await self.db.rollback()
            raise error

        if request.duration_code is not None:
            total_price = self.pricing.price(costume, request.duration_code)
        else:
            total_price = self.pricing.price_for_range(costume, start, end)

        reference = await self._generate_unique_reference(now)
        blocked_until = now + timedelta(minutes=self.policy.hold_duration_minutes)

        booking = Booking(
            booking_reference=reference,
            costume_id=costume.id,
            customer_name=request.customer_name.strip(),
            customer_email=request.customer_email.strip(),
            customer_phone=request.customer_phone.strip(),
            special_requests=request.special_requests or None,
            start_date=start,
            end_date=end,
            duration_code=request.duration_code.value if request.duration_code else None,
            status=BookingStatus.PENDING.value,
            blocked_until=blocked_until,
            total_price=total_price,
            security_deposit=self.pricing.security_deposit(),
            late_fee_per_hour=self.policy.late_fee_per_hour,
            actual_return_date=None,
            late_fee_amount=ZERO,
            security_deposit_refunded=False,
            refund_amount=None,
            refund_notes=None,
            refund_processed_at=None,
            messenger_opened=False,
            created_at=now,
            updated_at=now,
        )
        self.db.add(booking)
        await commit_or_raise(self.db, "create_hold")

        metrics_collector.record_hold_created(booking.duration_code)
        logger.info(
            "Hold created successfully",
            extra={
                "booking_id": str(booking.id),
                "booking_reference": reference,
                "costume_id": str(costume.id),
                "start_date": start.isoformat(),
                "end_date": end.isoformat(),
                "total_price": str(total_price),
                "blocked_until": blocked_until.isoformat(),
            }
        )
        return booking

    async def get_booking(self, booking_id: UUID) -> Optional[Booking]:
        stmt = (
            select(Booking)
            .where(Booking.id == booking_id)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_booking_or_raise(self, booking_id: UUID) -> Booking:
        """
        Get booking by ID or raise NotFoundError.

        Raises:
            NotFoundError: If booking not found
        """
        booking = await self.get_booking(booking_id)
        if booking is None:
            raise NotFoundError(resource_type="booking", resource_id=str(booking_id))
        return booking

    async def get_booking_by_reference(self, reference: str) -> Optional[Booking]:
        stmt = (
            select(Booking)
            .where(Booking.booking_reference == reference)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def list_bookings(
        self,
        status: Optional[str] = None,
        costume_id: Optional[UUID] = None,
    ) -> list[Booking]:
        """
        List bookings newest first, after sweeping lapsed holds.

        Args:
            status: Lifecycle status to filter on; ``all`` or None disables the filter
            costume_id: Restrict to one costume

        Raises:
            ValidationError: If status is not a known lifecycle status
        """
        await self.sweep_expired_holds()

        stmt = (
            select(Booking)
            .order_by(Booking.created_at.desc(), Booking.id.desc())
            .execution_options(populate_existing=True)
        )
        if status and status != "all":
            try:
                wanted = BookingStatus(status)
            except ValueError:
                allowed = ["all"] + [s.value for s in BookingStatus]
                raise ValidationError(
                    f"Unknown booking status '{status}'",
                    violations=[{"path": "status", "message": f"must be one of: {', '.join(allowed)}"}],
                )
            stmt = stmt.where(Booking.status == wanted.value)
        if costume_id is not None:
            stmt = stmt.where(Booking.costume_id == costume_id)

        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def confirm(self, booking_id: UUID) -> Booking:
        """
        Promote a live hold to a confirmed booking.

        The range is re-checked against other confirmed bookings and admin
        blocks under the costume lock, so at most one of several overlapping
        holds can ever be confirmed.

        Raises:
            NotFoundError: If booking not found
            InvalidStateError: If the booking is not pending or its hold lapsed
            AvailabilityConflictError: If another confirmed booking or an
                admin block now covers the range
        """
        await self.sweep_expired_holds()
        now = self.clock.now()

        booking = await self.get_booking_or_raise(booking_id)
        await self.availability.lock_costume(booking.costume_id)
        booking = await self._refetch(booking_id)

        if booking.status != BookingStatus.PENDING.value or not booking.is_live_hold(now):
            current = booking.effective_status(now).value
            await self.db.rollback()
            raise InvalidStateError(
                detail=f"Only a pending booking with an active hold can be confirmed; this booking is {current}",
                current_status=current,
                booking_id=str(booking_id),
            )

        check = await self.availability.is_blocked(
            booking.costume_id,
            booking.start_date,
            booking.end_date,
            exclude_booking_id=booking.id,
            confirmed_only=True,
        )
        if check.blocked:
            logger.warning(
                "Confirmation rejected - overlapping reservation",
                extra={"booking_id": str(booking_id), "costume_id": str(booking.costume_id)}
            )
            error = self._conflict_error(check)
            await self.db.rollback()
            raise error

        confirmed = await self.compare_and_set(
            booking_id,
            [BookingStatus.PENDING],
            {"status": BookingStatus.CONFIRMED.value, "blocked_until": None},
            "confirm",
            extra_criteria=(Booking.blocked_until > now,),
        )

        metrics_collector.record_booking_confirmed()
        logger.info(
            "Booking confirmed successfully",
            extra={"booking_id": str(booking_id), "booking_reference": confirmed.booking_reference}
        )
        return confirmed

    async def cancel(self, booking_id: UUID, booking_reference: Optional[str] = None) -> Booking:
        """
        Cancel a pending or confirmed booking.

        Args:
            booking_id: Booking to cancel
            booking_reference: Required proof when a customer cancels; None
                for admin cancellations

        Raises:
            NotFoundError: If booking not found
            AuthorizationError: If the supplied reference does not match
            InvalidStateError: If the booking is already terminal
        """
        await self.sweep_expired_holds()

        actor = "admin"
        if booking_reference is not None:
            actor = "customer"
            booking = await self.get_booking_or_raise(booking_id)
            supplied = booking_reference.strip().upper().encode()
            if not secrets.compare_digest(booking.booking_reference.encode(), supplied):
                logger.warning(
                    "Customer cancellation rejected - reference mismatch",
                    extra={"booking_id": str(booking_id)}
                )
                raise AuthorizationError("Booking reference does not match this booking")

        cancelled = await self.compare_and_set(
            booking_id,
            [BookingStatus.PENDING, BookingStatus.CONFIRMED],
            {"status": BookingStatus.CANCELLED.value, "blocked_until": None},
            "cancel",
        )

        metrics_collector.record_booking_cancelled(actor)
        logger.info(
            "Booking cancelled",
            extra={"booking_id": str(booking_id), "actor": actor}
        )
        return cancelled

    async def expire(self, booking_id: UUID) -> Booking:
        """Expire a pending booking ahead of its hold lapsing."""
        expired = await self.compare_and_set(
            booking_id,
            [BookingStatus.PENDING],
            {"status": BookingStatus.EXPIRED.value},
            "expire",
        )
        metrics_collector.record_holds_expired(1)
        logger.info("Booking expired manually", extra={"booking_id": str(booking_id)})
        return expired

    async def mark_returned(
        self,
        booking_id: UUID,
        actual_return_date: datetime,
        late_fee_per_hour=None,
    ) -> Booking:
        """
        Record the costume's return and complete the booking.

        Args:
            booking_id: Booking being returned
            actual_return_date: When the costume came back (naive UTC)
            late_fee_per_hour: Overrides the rate captured at booking time

        Returns:
            The completed booking with ``late_fee_amount`` set

        Raises:
            NotFoundError: If booking not found
            ValidationError: If the return predates the rental start
            InvalidStateError: If the booking is not confirmed or was
                already returned
        """
        booking = await self.get_booking_or_raise(booking_id)

        if actual_return_date < booking.start_date:
            raise ValidationError(
                "Return date cannot be before the rental start",
                violations=[{"path": "actual_return_date", "message": "must not be before start_date"}],
            )

        rate = booking.late_fee_per_hour if late_fee_per_hour is None else late_fee_per_hour
        late_fee = self.pricing.late_fee(actual_return_date, booking.end_date, rate)

        completed = await self.compare_and_set(
            booking_id,
            [BookingStatus.CONFIRMED],
            {
                "status": BookingStatus.COMPLETED.value,
                "actual_return_date": actual_return_date,
                "late_fee_amount": late_fee,
            },
            "mark_returned",
            extra_criteria=(Booking.actual_return_date.is_(None),),
        )

        metrics_collector.record_booking_completed(late=late_fee > 0)
        logger.info(
            "Costume returned",
            extra={
                "booking_id": str(booking_id),
                "actual_return_date": actual_return_date.isoformat(),
                "late_fee_amount": str(late_fee),
            }
        )
        return completed

    async def update_booking(self, booking_id: UUID, request: UpdateBookingRequest) -> Booking:
        """
        Replace an active booking's customer details and dates.

        The seasonal and availability checks are re-run against everything
        but the booking itself. The total price captured at creation is kept.

        Raises:
            NotFoundError: If booking not found
            ValidationError: If contact fields are blank or the range is empty
            InvalidStateError: If the booking is no longer pending or confirmed
            SeasonalViolationError: If the new range breaks the season's rules
            AvailabilityConflictError: If the new range is taken
        """
        await self.sweep_expired_holds()

        _require_contact_fields(request.model_dump(include=set(CONTACT_FIELDS)))
        start, end = request.start_date, request.end_date
        _require_ordered_range(start, end)

        booking = await self.get_booking_or_raise(booking_id)
        if booking.status not in (BookingStatus.PENDING.value, BookingStatus.CONFIRMED.value):
            raise InvalidStateError(
                detail=f"Cannot update a booking that is {booking.status}",
                current_status=booking.status,
                booking_id=str(booking_id),
            )

        self.seasonal.validate(start, end)
        if booking.duration_code:
            self.seasonal.check_duration_code(start, DurationCode(booking.duration_code))
            _require_range_matches_code(start, end, booking.duration_code)

        await self.availability.lock_costume(booking.costume_id)
        check = await self.availability.is_blocked(
            booking.costume_id, start, end, exclude_booking_id=booking.id
        )
        if check.blocked:
            error = self._conflict_error(check)
            await self.db.rollback()
            raise error

        updated = await self.compare_and_set(
            booking_id,
            [BookingStatus.PENDING, BookingStatus.CONFIRMED],
            {
                "customer_name": request.customer_name.strip(),
                "customer_email": request.customer_email.strip(),
                "customer_phone": request.customer_phone.strip(),
                "special_requests": request.special_requests or None,
                "start_date": start,
                "end_date": end,
            },
            "update",
        )
        logger.info("Booking updated", extra={"booking_id": str(booking_id)})
        return updated

    async def set_messenger_opened(self, booking_id: UUID, opened: bool) -> Booking:
        """
        Record whether the customer was handed off to Messenger.

        Raises:
            NotFoundError: If booking not found
        """
        stmt = (
            update(Booking)
            .where(Booking.id == booking_id)
            .values(messenger_opened=opened, updated_at=self.clock.now())
            .execution_options(synchronize_session=False)
        )
        result = await self._execute_write(stmt, "set_messenger_opened")
        if result.rowcount == 0:
            await self.db.rollback()
            raise NotFoundError(resource_type="booking", resource_id=str(booking_id))
        await commit_or_raise(self.db, "set_messenger_opened")
        return await self._refetch(booking_id)

    async def update_flags(self, booking_id: UUID, request: PatchBookingRequest) -> Booking:
        """
        Apply a partial update: a status transition and/or the messenger flag.

        Raises:
            NotFoundError: If booking not found
            InvalidStateError: If the status change is not a legal transition
        """
        booking = None
        if request.status is not None:
            target = BookingStatus(request.status)
            current = await self.get_booking_or_raise(booking_id)
            if not can_transition(current.status, target):
                raise InvalidStateError(
                    detail=f"Cannot change a {current.status} booking to {target.value}",
                    current_status=current.status,
                    booking_id=str(booking_id),
                )

            if target is BookingStatus.CONFIRMED:
                booking = await self.confirm(booking_id)
            elif target is BookingStatus.CANCELLED:
                booking = await self.cancel(booking_id)
            elif target is BookingStatus.COMPLETED:
                booking = await self.mark_returned(booking_id, self.clock.now())
            else:
                booking = await self.expire(booking_id)

        if request.messenger_opened is not None:
            booking = await self.set_messenger_opened(booking_id, request.messenger_opened)

        return booking

    async def delete_booking(self, booking_id: UUID) -> None:
        """
        Hard-delete a booking.

        Raises:
            NotFoundError: If booking not found
        """
        result = await self._execute_write(
            delete(Booking).where(Booking.id == booking_id), "delete_booking"
        )
        if result.rowcount == 0:
            await self.db.rollback()
            raise NotFoundError(resource_type="booking", resource_id=str(booking_id))
        await commit_or_raise(self.db, "delete_booking")
        logger.info("Booking deleted", extra={"booking_id": str(booking_id)})

    async def return_status(self, booking_id: UUID) -> dict[str, Any]:
        """
        Whether the costume is back, and if not, whether it is running late.

        Raises:
            NotFoundError: If booking not found
        """
        booking = await self.get_booking_or_raise(booking_id)
        now = self.clock.now()
        expected = self.pricing.expected_return(booking.end_date)
        has_been_returned = booking.actual_return_date is not None

        is_currently_late = (
            not has_been_returned
            and booking.status == BookingStatus.CONFIRMED.value
            and now > expected
        )
        if has_been_returned:
            current_fee = booking.late_fee_amount
        elif is_currently_late:
            current_fee = self.pricing.late_fee(now, booking.end_date, booking.late_fee_per_hour)
        else:
            current_fee = ZERO

        return {
            "booking": booking,
            "expected_return": expected,
            "has_been_returned": has_been_returned,
            "is_currently_late": is_currently_late,
            "current_late_fee": current_fee,
            "security_deposit_refunded": booking.security_deposit_refunded,
        }
