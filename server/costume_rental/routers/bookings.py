"""Booking router for the rental ledger."""

import logging
from datetime import datetime
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.clock import Clock, get_clock
from ..core.config import BookingPolicyConfig, settings
from ..core.dependencies import (
    get_booking_policy,
    get_db,
    get_optional_principal,
    is_admin,
    require_admin,
)
from ..core.exceptions import (
    AuthenticationError,
    AuthorizationError,
    InternalServerError,
    ProblemDetailsException,
)
from ..models.booking import Booking as BookingModel
from ..schemas.booking import (
    Booking,
    BookingList,
    CancelBookingRequest,
    CreateBookingRequest,
    MessengerLink,
    PatchBookingRequest,
    RefundRequest,
    RefundResult,
    RefundStatus,
    ReturnRequest,
    ReturnResult,
    ReturnStatus,
    UpdateBookingRequest,
)
from ..schemas.common import PROBLEM_RESPONSES, Problem
from ..services.booking_service import BookingService
from ..services.costume_service import CostumeService
from ..services.messenger import build_booking_message, build_messenger_url
from ..services.refund_service import RefundService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/bookings", tags=["bookings"], responses=PROBLEM_RESPONSES)

# Define dependencies to avoid B008 linting errors
DB_DEPENDENCY = Depends(get_db)
CLOCK_DEPENDENCY = Depends(get_clock)
POLICY_DEPENDENCY = Depends(get_booking_policy)
ADMIN_DEPENDENCY = Depends(require_admin)
PRINCIPAL_DEPENDENCY = Depends(get_optional_principal)


def _convert_booking_to_schema(booking_model: BookingModel, now: datetime) -> Booking:
    """Convert booking model to schema, reporting lapsed holds as expired."""
    booking = Booking.model_validate(booking_model)
    return booking.model_copy(update={"status": booking_model.effective_status(now)})


@router.post(
    "",
    response_model=Booking,
    status_code=status.HTTP_201_CREATED,
    responses={409: {"model": Problem, "description": "Costume not available for the dates"}},
)
async def create_booking(
    request: CreateBookingRequest,
    db: AsyncSession = DB_DEPENDENCY,
    clock: Clock = CLOCK_DEPENDENCY,
    policy: BookingPolicyConfig = POLICY_DEPENDENCY,
) -> Booking:
    """
    Place a soft hold on a costume.

    The booking starts out pending and blocks the costume until
    ``blocked_until``; an admin confirms it once the customer has been in
    touch over Messenger.
    """
    booking_service = BookingService(db, clock, policy)

    try:
        booking = await booking_service.create_hold(request)
        return _convert_booking_to_schema(booking, clock.now())

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error in hold creation",
            extra={
                "costume_id": str(request.costume_id),
                "start_date": request.start_date.isoformat(),
                "end_date": request.end_date.isoformat(),
                "error": str(e)
            },
            exc_info=True
        )
        raise InternalServerError() from e


@router.get("", response_model=BookingList)
async def list_bookings(
    status_filter: Optional[str] = Query(None, alias="status", description="Lifecycle status or 'all'"),
    costume_id: Optional[UUID] = Query(None),
    db: AsyncSession = DB_DEPENDENCY,
    clock: Clock = CLOCK_DEPENDENCY,
    policy: BookingPolicyConfig = POLICY_DEPENDENCY,
    admin: dict = ADMIN_DEPENDENCY,
) -> BookingList:
    """List bookings newest first."""
    bookings = await BookingService(db, clock, policy).list_bookings(status_filter, costume_id)
    now = clock.now()
    items = [_convert_booking_to_schema(b, now) for b in bookings]
    return BookingList(items=items, total=len(items))


@router.get("/{booking_id}", response_model=Booking)
async def get_booking(
    booking_id: UUID,
    db: AsyncSession = DB_DEPENDENCY,
    clock: Clock = CLOCK_DEPENDENCY,
    policy: BookingPolicyConfig = POLICY_DEPENDENCY,
) -> Booking:
    booking = await BookingService(db, clock, policy).get_booking_or_raise(booking_id)
    return _convert_booking_to_schema(booking, clock.now())


@router.put("/{booking_id}", response_model=Booking)
async def update_booking(
    booking_id: UUID,
    request: UpdateBookingRequest,
    db: AsyncSession = DB_DEPENDENCY,
    clock: Clock = CLOCK_DEPENDENCY,
    policy: BookingPolicyConfig = POLICY_DEPENDENCY,
    admin: dict = ADMIN_DEPENDENCY,
) -> Booking:
    """Replace customer details and dates of an active booking."""
    booking = await BookingService(db, clock, policy).update_booking(booking_id, request)
    return _convert_booking_to_schema(booking, clock.now())


@router.patch("/{booking_id}", response_model=Booking)
async def patch_booking(
    booking_id: UUID,
    request: PatchBookingRequest,
    db: AsyncSession = DB_DEPENDENCY,
    clock: Clock = CLOCK_DEPENDENCY,
    policy: BookingPolicyConfig = POLICY_DEPENDENCY,
    principal: Optional[dict] = PRINCIPAL_DEPENDENCY,
) -> Booking:
    """
    Change a booking's status or record the Messenger handoff.

    Status changes are admin-only; any caller may flag that the Messenger
    conversation was opened.
    """
    if request.status is not None:
        if principal is None:
            raise AuthenticationError("Changing a booking's status requires an admin token")
        if not is_admin(principal):
            raise AuthorizationError(required_roles=["admin"])

    booking_service = BookingService(db, clock, policy)

    try:
        booking = await booking_service.update_flags(booking_id, request)

        logger.info(
            "Booking patched",
            extra={
                "booking_id": str(booking_id),
                "status": request.status.value if request.status else None,
                "messenger_opened": request.messenger_opened,
                "user_id": principal.get("user_id") if principal else None,
            }
        )
        return _convert_booking_to_schema(booking, clock.now())

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error in booking update",
            extra={"booking_id": str(booking_id), "error": str(e)},
            exc_info=True
        )
        raise InternalServerError() from e


@router.delete("/{booking_id}", status_code=status.HTTP_204_NO_CONTENT, response_class=Response)
async def delete_booking(
    booking_id: UUID,
    db: AsyncSession = DB_DEPENDENCY,
    clock: Clock = CLOCK_DEPENDENCY,
    policy: BookingPolicyConfig = POLICY_DEPENDENCY,
    admin: dict = ADMIN_DEPENDENCY,
) -> Response:
    await BookingService(db, clock, policy).delete_booking(booking_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{booking_id}/cancel", response_model=Booking)
async def cancel_booking(
    booking_id: UUID,
    request: CancelBookingRequest,
    db: AsyncSession = DB_DEPENDENCY,
    clock: Clock = CLOCK_DEPENDENCY,
    policy: BookingPolicyConfig = POLICY_DEPENDENCY,
) -> Booking:
    """Customer cancellation; the booking reference proves ownership."""
    booking = await BookingService(db, clock, policy).cancel(
        booking_id, booking_reference=request.booking_reference
    )
    return _convert_booking_to_schema(booking, clock.now())


@router.get("/{booking_id}/return", response_model=ReturnStatus)
async def get_return_status(
    booking_id: UUID,
    db: AsyncSession = DB_DEPENDENCY,
    clock: Clock = CLOCK_DEPENDENCY,
    policy: BookingPolicyConfig = POLICY_DEPENDENCY,
    admin: dict = ADMIN_DEPENDENCY,
) -> ReturnStatus:
    """Whether the costume is back and the late fee accrued so far."""
    result = await BookingService(db, clock, policy).return_status(booking_id)
    result["booking"] = _convert_booking_to_schema(result["booking"], clock.now())
    return ReturnStatus(**result)


@router.patch("/{booking_id}/return", response_model=ReturnResult)
async def mark_returned(
    booking_id: UUID,
    request: ReturnRequest,
    db: AsyncSession = DB_DEPENDENCY,
    clock: Clock = CLOCK_DEPENDENCY,
    policy: BookingPolicyConfig = POLICY_DEPENDENCY,
    admin: dict = ADMIN_DEPENDENCY,
) -> ReturnResult:
    """Record the return of a confirmed booking and compute its late fee."""
    booking_service = BookingService(db, clock, policy)

    try:
        booking = await booking_service.mark_returned(
            booking_id, request.actual_return_date, request.late_fee_per_hour
        )
    except ProblemDetailsException:
        raise
    except Exception as e:
        logger.error(
            "Unexpected error in return processing",
            extra={"booking_id": str(booking_id), "error": str(e)},
            exc_info=True
        )
        raise InternalServerError() from e

    is_late = booking.late_fee_amount > 0
    message = (
        f"Costume returned late. Late fee: ₱{booking.late_fee_amount}"
        if is_late else "Costume returned on time"
    )
    return ReturnResult(
        booking=_convert_booking_to_schema(booking, clock.now()),
        late_fee_amount=booking.late_fee_amount,
        is_late_return=is_late,
        message=message,
    )


@router.get("/{booking_id}/refund", response_model=RefundStatus)
async def get_refund_status(
    booking_id: UUID,
    db: AsyncSession = DB_DEPENDENCY,
    clock: Clock = CLOCK_DEPENDENCY,
    policy: BookingPolicyConfig = POLICY_DEPENDENCY,
    admin: dict = ADMIN_DEPENDENCY,
) -> RefundStatus:
    result = await RefundService(db, clock, policy).refund_status(booking_id)
    result["booking"] = _convert_booking_to_schema(result["booking"], clock.now())
    return RefundStatus(**result)


@router.patch("/{booking_id}/refund", response_model=RefundResult)
async def process_refund(
    booking_id: UUID,
    request: RefundRequest,
    db: AsyncSession = DB_DEPENDENCY,
    clock: Clock = CLOCK_DEPENDENCY,
    policy: BookingPolicyConfig = POLICY_DEPENDENCY,
    admin: dict = ADMIN_DEPENDENCY,
) -> RefundResult:
    """Refund the security deposit of a returned booking, once."""
    refund_service = RefundService(db, clock, policy)

    try:
        booking, refund_amount, amount_due = await refund_service.process_refund(
            booking_id, request.refund_amount, request.notes
        )
    except ProblemDetailsException:
        raise
    except Exception as e:
        logger.error(
            "Unexpected error in refund processing",
            extra={"booking_id": str(booking_id), "error": str(e)},
            exc_info=True
        )
        raise InternalServerError() from e

    return RefundResult(
        booking=_convert_booking_to_schema(booking, clock.now()),
        refund_amount=refund_amount,
        amount_due=amount_due,
        message=f"Security deposit refund processed: ₱{refund_amount}",
    )


@router.get("/{booking_id}/messenger-link", response_model=MessengerLink)
async def get_messenger_link(
    booking_id: UUID,
    db: AsyncSession = DB_DEPENDENCY,
    clock: Clock = CLOCK_DEPENDENCY,
    policy: BookingPolicyConfig = POLICY_DEPENDENCY,
) -> MessengerLink:
    """Messenger deep link carrying the booking summary for the customer to send."""
    booking = await BookingService(db, clock, policy).get_booking_or_raise(booking_id)
    costume = await CostumeService(db).get_costume_by_id_or_raise(booking.costume_id)

    message = build_booking_message(booking, costume)
    return MessengerLink(
        booking_reference=booking.booking_reference,
        url=build_messenger_url(message, settings.messenger_page_url),
        message=message,
    )
