"""Unit tests for security deposit refunds."""

from datetime import datetime
from decimal import Decimal
from uuid import uuid4

import pytest

from costume_rental.core.exceptions import InvalidStateError, NotFoundError, ValidationError
from costume_rental.services.refund_service import RefundService


@pytest.fixture
def refund_service(test_session, clock, policy):
    return RefundService(test_session, clock, policy)


@pytest.fixture
def returned_booking(booking_service, make_booking_request):
    """Factory for a confirmed June 10-13 booking returned at the given time."""

    async def _make(actual_return_date):
        booking = await booking_service.create_hold(
            make_booking_request(datetime(2024, 6, 10, 10, 0), datetime(2024, 6, 13, 10, 0))
        )
        await booking_service.confirm(booking.id)
        return await booking_service.mark_returned(booking.id, actual_return_date)

    return _make


@pytest.mark.asyncio
async def test_refund_before_return_rejected(refund_service, booking_service, make_booking_request):
    booking = await booking_service.create_hold(
        make_booking_request(datetime(2024, 6, 10, 10, 0), datetime(2024, 6, 13, 10, 0))
    )
    await booking_service.confirm(booking.id)

    with pytest.raises(InvalidStateError) as exc_info:
        await refund_service.process_refund(booking.id)
    assert exc_info.value.problem_details["detail"] == "Cannot refund security deposit before costume is returned"


@pytest.mark.asyncio
async def test_refund_deducts_late_fee(refund_service, returned_booking, clock):
    booking = await returned_booking(datetime(2024, 6, 13, 11, 30))

    refunded, refund_amount, amount_due = await refund_service.process_refund(booking.id, notes="Cash")

    assert refund_amount == Decimal("380.00")
    assert amount_due == Decimal("0.00")
    assert refunded.security_deposit_refunded is True
    assert refunded.refund_amount == Decimal("380.00")
    assert refunded.refund_notes == "Cash"
    assert refunded.refund_processed_at == clock.now()


@pytest.mark.asyncio
async def test_refund_happens_once(refund_service, returned_booking):
    booking = await returned_booking(datetime(2024, 6, 13, 8, 0))
    booking_id = booking.id

    _, refund_amount, _ = await refund_service.process_refund(booking_id)
    assert refund_amount == Decimal("500.00")

    with pytest.raises(InvalidStateError) as exc_info:
        await refund_service.process_refund(booking_id)
    assert exc_info.value.problem_details["detail"] == "Security deposit has already been refunded"


@pytest.mark.asyncio
async def test_refund_floored_when_late_fee_exceeds_deposit(refund_service, returned_booking):
    # 25 started hours late at 30/hour
    booking = await returned_booking(datetime(2024, 6, 14, 8, 30))
    assert booking.late_fee_amount == Decimal("750.00")

    _, refund_amount, amount_due = await refund_service.process_refund(booking.id)

    assert refund_amount == Decimal("0.00")
    assert amount_due == Decimal("250.00")


@pytest.mark.asyncio
async def test_refund_override(refund_service, returned_booking):
    booking = await returned_booking(datetime(2024, 6, 13, 8, 0))

    refunded, refund_amount, _ = await refund_service.process_refund(booking.id, Decimal("0"))

    assert refund_amount == Decimal("0.00")
    assert refunded.refund_amount == Decimal("0.00")


@pytest.mark.asyncio
async def test_refund_override_cannot_exceed_deposit(refund_service, returned_booking):
    booking = await returned_booking(datetime(2024, 6, 13, 8, 0))

    with pytest.raises(ValidationError):
        await refund_service.process_refund(booking.id, Decimal("500.01"))


@pytest.mark.asyncio
async def test_refund_status(refund_service, returned_booking):
    booking = await returned_booking(datetime(2024, 6, 13, 11, 30))

    status = await refund_service.refund_status(booking.id)
    assert status["is_eligible_for_refund"] is True
    assert status["has_been_refunded"] is False
    assert status["late_fee_amount"] == Decimal("120.00")
    assert status["estimated_refund"] == Decimal("380.00")

    await refund_service.process_refund(booking.id)
    status = await refund_service.refund_status(booking.id)
    assert status["is_eligible_for_refund"] is False
    assert status["has_been_refunded"] is True


@pytest.mark.asyncio
async def test_refund_unknown_booking(refund_service):
    with pytest.raises(NotFoundError):
        await refund_service.process_refund(uuid4())
