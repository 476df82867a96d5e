"""Unit tests for the availability index."""

from datetime import date, datetime
from uuid import uuid4

import pytest

from costume_rental.core.exceptions import NotFoundError, ValidationError
from costume_rental.services.availability_service import AvailabilityService


@pytest.fixture
def availability_service(test_session, clock):
    return AvailabilityService(test_session, clock)


@pytest.mark.asyncio
async def test_create_and_list_blocks(availability_service, costume):
    costume_id = costume.id
    late = await availability_service.create_block(
        costume_id, date(2024, 6, 20), date(2024, 6, 22), reason="Repair", created_by="admin-1"
    )
    early = await availability_service.create_block(costume_id, date(2024, 6, 5), date(2024, 6, 5))

    assert late.reason == "Repair"
    assert late.created_by == "admin-1"
    assert early.created_by == "admin"

    blocks = await availability_service.list_blocks(costume_id)
    assert [b.id for b in blocks] == [early.id, late.id]


@pytest.mark.asyncio
async def test_create_block_validation(availability_service, costume):
    costume_id = costume.id

    with pytest.raises(ValidationError):
        await availability_service.create_block(costume_id, date(2024, 6, 22), date(2024, 6, 20))

    with pytest.raises(NotFoundError):
        await availability_service.create_block(uuid4(), date(2024, 6, 20), date(2024, 6, 22))


@pytest.mark.asyncio
async def test_delete_block(availability_service, costume):
    block = await availability_service.create_block(costume.id, date(2024, 6, 20), date(2024, 6, 22))
    block_id = block.id

    await availability_service.delete_block(block_id)
    assert await availability_service.list_blocks(costume.id) == []

    with pytest.raises(NotFoundError):
        await availability_service.delete_block(block_id)


@pytest.mark.asyncio
async def test_blocked_dates_for_month(availability_service, booking_service, make_booking_request, costume):
    costume_id = costume.id
    await booking_service.create_hold(
        make_booking_request(datetime(2024, 6, 10, 10, 0), datetime(2024, 6, 12, 10, 0))
    )
    await availability_service.create_block(costume_id, date(2024, 6, 29), date(2024, 7, 2))

    blocked = await availability_service.blocked_dates_for_month(costume_id, 2024, 6)

    assert blocked == [
        date(2024, 6, 10),
        date(2024, 6, 11),
        date(2024, 6, 12),
        date(2024, 6, 29),
        date(2024, 6, 30),
    ]
    assert await availability_service.blocked_dates_for_month(costume_id, 2024, 7) == [
        date(2024, 7, 1),
        date(2024, 7, 2),
    ]


@pytest.mark.asyncio
async def test_blocked_dates_ignore_lapsed_holds(
    availability_service, booking_service, make_booking_request, costume, clock
):
    costume_id = costume.id
    await booking_service.create_hold(
        make_booking_request(datetime(2024, 6, 10, 10, 0), datetime(2024, 6, 12, 10, 0))
    )

    clock.advance(minutes=11)
    assert await availability_service.blocked_dates_for_month(costume_id, 2024, 6) == []


@pytest.mark.asyncio
async def test_blocked_dates_rejects_bad_month(availability_service, costume):
    with pytest.raises(ValidationError):
        await availability_service.blocked_dates_for_month(costume.id, 2024, 13)


@pytest.mark.asyncio
async def test_check_range(availability_service, booking_service, make_booking_request, costume):
    costume_id = costume.id
    booking = await booking_service.create_hold(
        make_booking_request(datetime(2024, 6, 10, 10, 0), datetime(2024, 6, 12, 10, 0))
    )
    await booking_service.confirm(booking.id)

    is_available, blocked = await availability_service.check_range(
        costume_id, datetime(2024, 6, 11, 12, 0), datetime(2024, 6, 13, 12, 0)
    )
    assert is_available is False
    assert blocked == [date(2024, 6, 11), date(2024, 6, 12)]

    # Starting after the booking ends on the same day is bookable; the calendar
    # still shows that day as taken
    is_available, blocked = await availability_service.check_range(
        costume_id, datetime(2024, 6, 12, 12, 0), datetime(2024, 6, 14, 12, 0)
    )
    assert is_available is True
    assert blocked == [date(2024, 6, 12)]

    is_available, blocked = await availability_service.check_range(
        costume_id, datetime(2024, 6, 15, 10, 0), datetime(2024, 6, 16, 10, 0)
    )
    assert is_available is True
    assert blocked == []


@pytest.mark.asyncio
async def test_is_blocked_can_exclude_a_booking(
    availability_service, booking_service, make_booking_request, costume
):
    costume_id = costume.id
    booking = await booking_service.create_hold(
        make_booking_request(datetime(2024, 6, 10, 10, 0), datetime(2024, 6, 12, 10, 0))
    )
    start, end = datetime(2024, 6, 10, 10, 0), datetime(2024, 6, 12, 10, 0)

    check = await availability_service.is_blocked(costume_id, start, end)
    assert check.blocked and check.is_temporary
    assert check.blocking_booking.id == booking.id

    check = await availability_service.is_blocked(costume_id, start, end, exclude_booking_id=booking.id)
    assert not check.blocked

    check = await availability_service.is_blocked(costume_id, start, end, confirmed_only=True)
    assert not check.blocked
