"""Concurrency tests for booking operations.

Every simulated request gets its own session on a shared file-backed SQLite
database. SQLite has no advisory locks, so racing holds may both be stored;
confirmation must still let only one of them through.
"""

import asyncio
import os
from datetime import datetime, timedelta
from decimal import Decimal

import pytest
import pytest_asyncio
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from costume_rental.core.clock import FixedClock
from costume_rental.core.config import BookingPolicyConfig
from costume_rental.core.database import Base
from costume_rental.core.exceptions import (
    AvailabilityConflictError,
    InvalidStateError,
    PersistenceError,
    ProblemDetailsException,
)
from costume_rental.models import BookingStatus
from costume_rental.schemas.booking import CreateBookingRequest
from costume_rental.schemas.costume import CostumeCreate
from costume_rental.services.booking_service import BookingService
from costume_rental.services.costume_service import CostumeService

NOW = datetime(2024, 6, 1, 9, 0, 0)

# Set to a postgresql+asyncpg URL to race confirmations under advisory locks
POSTGRES_URL = os.environ.get("TEST_POSTGRES_URL")


async def _create_schema(engine):
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)


@pytest_asyncio.fixture
async def session_factory(tmp_path):
    """Session factory over a database that several connections can share."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'concurrency.db'}",
        connect_args={"timeout": 30},
    )
    await _create_schema(engine)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


async def _seed_costume(factory, clock):
    async with factory() as session:
        costume = await CostumeService(session).create_costume(
            CostumeCreate(
                name="Concurrent T-Rex",
                slug="concurrent-t-rex",
                price_per_day=Decimal("500.00"),
                price_per_week=Decimal("2250.00"),
            ),
            clock.now(),
        )
        return costume.id


def _hold_request(costume_id, customer_id, start=datetime(2024, 6, 10, 10, 0)):
    return CreateBookingRequest(
        costume_id=costume_id,
        customer_name=f"Customer {customer_id}",
        customer_email=f"customer{customer_id}@example.com",
        customer_phone=f"+63 900 000 {customer_id:04d}",
        start_date=start,
        end_date=start + timedelta(days=3),
        duration_code="3d",
    )


async def _try_hold(factory, clock, policy, costume_id, customer_id):
    """Attempt a hold; a request lost to SQLite write-lock contention counts as rejected."""
    async with factory() as session:
        try:
            booking = await BookingService(session, clock, policy).create_hold(
                _hold_request(costume_id, customer_id)
            )
        except (ProblemDetailsException, SQLAlchemyError):
            return None
        return booking.id


async def _try_confirm(factory, clock, policy, booking_id):
    async with factory() as session:
        try:
            booking = await BookingService(session, clock, policy).confirm(booking_id)
        except (AvailabilityConflictError, InvalidStateError, PersistenceError):
            return None
        return booking.id


async def _statuses(factory, clock, policy):
    async with factory() as session:
        bookings = await BookingService(session, clock, policy).list_bookings()
        return [b.status for b in bookings]


@pytest.mark.asyncio
@pytest.mark.concurrency
async def test_racing_holds_confirm_at_most_once(session_factory):
    """However many overlapping holds slip through, only one can be confirmed."""
    clock = FixedClock(NOW)
    policy = BookingPolicyConfig()
    costume_id = await _seed_costume(session_factory, clock)

    num_concurrent_requests = 5
    results = await asyncio.gather(
        *[_try_hold(session_factory, clock, policy, costume_id, i) for i in range(num_concurrent_requests)]
    )
    holds = [booking_id for booking_id in results if booking_id is not None]
    assert holds

    confirmed = []
    for booking_id in holds:
        result = await _try_confirm(session_factory, clock, policy, booking_id)
        if result is not None:
            confirmed.append(result)

    assert len(confirmed) == 1
    statuses = await _statuses(session_factory, clock, policy)
    assert statuses.count(BookingStatus.CONFIRMED.value) == 1


@pytest.mark.asyncio
@pytest.mark.concurrency
async def test_hold_and_cancel_interleaved(session_factory):
    """Cancelling frees the range for exactly the holds placed afterwards."""
    clock = FixedClock(NOW)
    policy = BookingPolicyConfig()
    costume_id = await _seed_costume(session_factory, clock)

    first = await _try_hold(session_factory, clock, policy, costume_id, 1)
    assert first is not None
    assert await _try_hold(session_factory, clock, policy, costume_id, 2) is None

    async with session_factory() as session:
        await BookingService(session, clock, policy).cancel(first)

    second = await _try_hold(session_factory, clock, policy, costume_id, 3)
    assert second is not None
    assert await _try_confirm(session_factory, clock, policy, second) == second


@pytest.mark.asyncio
@pytest.mark.concurrency
async def test_concurrent_sweeps_expire_each_hold_once(session_factory):
    clock = FixedClock(NOW)
    policy = BookingPolicyConfig()
    costume_id = await _seed_costume(session_factory, clock)

    for day in range(3):
        async with session_factory() as session:
            await BookingService(session, clock, policy).create_hold(
                _hold_request(costume_id, day, start=datetime(2024, 6, 10 + day * 4, 10, 0))
            )

    clock.advance(minutes=11)

    async def sweep():
        async with session_factory() as session:
            return await BookingService(session, clock, policy).sweep_expired_holds()

    swept = await asyncio.gather(*[sweep() for _ in range(4)])
    # A sweep that loses the write lock reports zero; a final pass picks up the rest
    leftover = await sweep()

    assert sum(swept) + leftover == 3
    statuses = await _statuses(session_factory, clock, policy)
    assert statuses == [BookingStatus.EXPIRED.value] * 3


@pytest.mark.asyncio
@pytest.mark.concurrency
@pytest.mark.skipif(POSTGRES_URL is None, reason="TEST_POSTGRES_URL not set")
async def test_concurrent_confirms_under_advisory_lock():
    """With PostgreSQL advisory locks, racing holds and confirms leave one confirmed booking."""
    engine = create_async_engine(POSTGRES_URL)
    await _create_schema(engine)
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    try:
        clock = FixedClock(NOW)
        policy = BookingPolicyConfig()
        costume_id = await _seed_costume(factory, clock)

        results = await asyncio.gather(
            *[_try_hold(factory, clock, policy, costume_id, i) for i in range(10)]
        )
        holds = [booking_id for booking_id in results if booking_id is not None]
        assert len(holds) == 1

        confirmed = await asyncio.gather(*[_try_confirm(factory, clock, policy, b) for b in holds * 3])
        assert len([c for c in confirmed if c is not None]) == 1
    finally:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
        await engine.dispose()
