"""Test configuration and fixtures."""

import os

# The app's global engine is built at import time; keep it off PostgreSQL
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import jwt
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from costume_rental.core.clock import FixedClock, get_clock
from costume_rental.core.config import BookingPolicyConfig, settings
from costume_rental.core.database import Base
from costume_rental.core.dependencies import get_booking_policy, get_db
from costume_rental.models import *  # noqa: F403 - Import all models
from costume_rental.schemas.booking import CreateBookingRequest
from costume_rental.schemas.costume import CostumeCreate
from costume_rental.services.booking_service import BookingService
from costume_rental.services.costume_service import CostumeService

# Test database URL (in-memory SQLite for speed)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

# Regular season; the tests book from June 10 onwards
TEST_NOW = datetime(2024, 6, 1, 9, 0, 0)


@pytest_asyncio.fixture(scope="function")
async def test_engine():
    """Create a test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    # Create tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    # Drop tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def test_session(test_engine):
    """Create a test database session."""
    async_session = async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with async_session() as session:
        yield session


@pytest.fixture
def clock():
    """Clock frozen at TEST_NOW; tests advance it explicitly."""
    return FixedClock(TEST_NOW)


@pytest.fixture
def policy():
    return BookingPolicyConfig()


@pytest.fixture
def sample_costume_data():
    """Sample costume data for testing."""
    return {
        "name": "Giant Inflatable T-Rex",
        "slug": "giant-inflatable-t-rex",
        "description": "Walk-in inflatable dinosaur",
        "size": "Adult",
        "difficulty": "Easy",
        "setup_time_minutes": 5,
        "price_per_12_hours": Decimal("350.00"),
        "price_per_day": Decimal("500.00"),
        "price_per_week": Decimal("2250.00"),
    }


@pytest_asyncio.fixture
async def costume(test_session, clock, sample_costume_data):
    """A bookable costume stored in the test database."""
    return await CostumeService(test_session).create_costume(
        CostumeCreate(**sample_costume_data), clock.now()
    )


@pytest.fixture
def booking_service(test_session, clock, policy):
    return BookingService(test_session, clock, policy)


@pytest.fixture
def make_booking_request(costume):
    """Factory for hold requests against the stored costume."""
    # Read once; a rollback later in the test expires the instance
    costume_id = costume.id

    def _make(start, end, duration_code=None, **overrides):
        values = {
            "costume_id": costume_id,
            "customer_name": "Maria Santos",
            "customer_email": "maria@example.com",
            "customer_phone": "+63 917 555 0100",
            "start_date": start,
            "end_date": end,
            "duration_code": duration_code,
        }
        values.update(overrides)
        return CreateBookingRequest(**values)

    return _make


def make_token(roles, subject="admin-1", expires_in=timedelta(hours=1)):
    payload = {
        "sub": subject,
        "roles": roles,
        "exp": datetime.now(timezone.utc) + expires_in,
    }
    return jwt.encode(payload, settings.bearer_token_secret, algorithm="HS256")


@pytest.fixture
def admin_headers():
    return {"Authorization": f"Bearer {make_token(['admin'])}"}


@pytest.fixture
def customer_headers():
    """A valid token that lacks the admin role."""
    return {"Authorization": f"Bearer {make_token([], subject='customer-1')}"}


@pytest_asyncio.fixture(scope="function")
async def test_app(test_session, clock, policy):
    """Create the application with the database and clock swapped for test doubles."""
    from costume_rental.main import create_app

    app = create_app()

    # Override database dependency
    async def override_get_db():
        yield test_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_booking_policy] = lambda: policy

    yield app

    # Clean up
    app.dependency_overrides.clear()


@pytest_asyncio.fixture(scope="function")
async def test_client(test_app):
    """Create a test HTTP client."""
    transport = ASGITransport(app=test_app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
