"""Availability router: calendars, range checks and admin blocks."""

import logging
from datetime import datetime
from typing import Optional, Union
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.clock import Clock, get_clock, to_naive_utc
from ..core.config import BookingPolicyConfig
from ..core.dependencies import get_booking_policy, get_db, require_admin
from ..core.exceptions import ValidationError
from ..schemas.availability import (
    AvailabilityBlock,
    AvailabilityBlockCreate,
    AvailabilityCheck,
    BlockedDates,
)
from ..schemas.common import PROBLEM_RESPONSES
from ..services.availability_service import AvailabilityService
from ..services.booking_service import BookingService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/availability", tags=["availability"], responses=PROBLEM_RESPONSES)

DB_DEPENDENCY = Depends(get_db)
CLOCK_DEPENDENCY = Depends(get_clock)
POLICY_DEPENDENCY = Depends(get_booking_policy)
ADMIN_DEPENDENCY = Depends(require_admin)


@router.get("", response_model=Union[BlockedDates, list[AvailabilityBlock]])
async def get_availability(
    costume_id: UUID = Query(..., description="Costume to inspect"),
    year: Optional[int] = Query(None, ge=1970, le=9999),
    month: Optional[int] = Query(None, ge=1, le=12),
    db: AsyncSession = DB_DEPENDENCY,
    clock: Clock = CLOCK_DEPENDENCY,
    policy: BookingPolicyConfig = POLICY_DEPENDENCY,
):
    """
    Admin blocks of a costume, or its blocked dates for one month.

    With both ``year`` and ``month`` the response lists every date of that
    month taken by an active booking or an admin block; otherwise it lists
    the admin blocks themselves.
    """
    availability_service = AvailabilityService(db, clock)

    if year is None and month is None:
        blocks = await availability_service.list_blocks(costume_id)
        return [AvailabilityBlock.model_validate(block) for block in blocks]

    if year is None or month is None:
        raise ValidationError(
            "Provide both year and month to get blocked dates",
            violations=[{"path": "year" if year is None else "month", "message": "is required"}],
        )

    await BookingService(db, clock, policy).sweep_expired_holds()
    blocked = await availability_service.blocked_dates_for_month(costume_id, year, month)
    return BlockedDates(costume_id=costume_id, year=year, month=month, blocked_dates=blocked)


@router.get("/check", response_model=AvailabilityCheck)
async def check_availability(
    costume_id: UUID = Query(...),
    start_date: datetime = Query(..., description="Requested start (ISO 8601)"),
    end_date: datetime = Query(..., description="Requested end (ISO 8601)"),
    db: AsyncSession = DB_DEPENDENCY,
    clock: Clock = CLOCK_DEPENDENCY,
    policy: BookingPolicyConfig = POLICY_DEPENDENCY,
) -> AvailabilityCheck:
    """Whether a costume can be held for a range, with the dates already taken."""
    start, end = to_naive_utc(start_date), to_naive_utc(end_date)

    await BookingService(db, clock, policy).sweep_expired_holds()
    is_available, blocked_dates = await AvailabilityService(db, clock).check_range(costume_id, start, end)

    return AvailabilityCheck(
        costume_id=costume_id,
        start_date=start,
        end_date=end,
        is_available=is_available,
        blocked_dates=blocked_dates,
    )


@router.post("", response_model=AvailabilityBlock, status_code=status.HTTP_201_CREATED)
async def create_block(
    request: AvailabilityBlockCreate,
    db: AsyncSession = DB_DEPENDENCY,
    clock: Clock = CLOCK_DEPENDENCY,
    admin: dict = ADMIN_DEPENDENCY,
) -> AvailabilityBlock:
    """Block a costume's calendar dates."""
    block = await AvailabilityService(db, clock).create_block(
        costume_id=request.costume_id,
        start_date=request.start_date,
        end_date=request.end_date,
        reason=request.reason,
        created_by=admin["user_id"],
    )
    return AvailabilityBlock.model_validate(block)


@router.delete("")
async def delete_block(
    block_id: UUID = Query(..., alias="id"),
    db: AsyncSession = DB_DEPENDENCY,
    clock: Clock = CLOCK_DEPENDENCY,
    admin: dict = ADMIN_DEPENDENCY,
) -> dict:
    await AvailabilityService(db, clock).delete_block(block_id)
    return {"message": "Availability block deleted successfully"}
