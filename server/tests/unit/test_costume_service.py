"""Unit tests for the costume catalogue service."""

from decimal import Decimal
from uuid import uuid4

import pytest

from costume_rental.core.exceptions import ConflictError, NotFoundError
from costume_rental.schemas.costume import CostumeCreate, CostumeUpdate
from costume_rental.services.costume_service import CostumeService


@pytest.mark.asyncio
async def test_create_costume(test_session, clock, sample_costume_data):
    """Test creating a costume."""
    service = CostumeService(test_session)

    costume = await service.create_costume(CostumeCreate(**sample_costume_data), clock.now())

    assert costume.id is not None
    assert costume.slug == sample_costume_data["slug"]
    assert costume.price_per_day == Decimal("500.00")
    assert costume.is_available is True
    assert costume.created_at == clock.now()


@pytest.mark.asyncio
async def test_create_costume_duplicate_slug(test_session, clock, costume, sample_costume_data):
    """Test creating a costume with duplicate slug raises error."""
    service = CostumeService(test_session)

    with pytest.raises(ConflictError) as exc_info:
        await service.create_costume(
            CostumeCreate(**{**sample_costume_data, "name": "Another T-Rex"}), clock.now()
        )
    assert exc_info.value.status_code == 409


@pytest.mark.asyncio
async def test_get_costume(test_session, costume):
    service = CostumeService(test_session)

    assert (await service.get_costume_by_id(costume.id)).slug == costume.slug
    assert (await service.get_costume_by_slug(costume.slug)).id == costume.id
    assert await service.get_costume_by_id(uuid4()) is None

    with pytest.raises(NotFoundError):
        await service.get_costume_by_id_or_raise(uuid4())


@pytest.mark.asyncio
async def test_list_costumes_available_only(test_session, clock, costume, sample_costume_data):
    service = CostumeService(test_session)
    await service.create_costume(
        CostumeCreate(**{
            **sample_costume_data,
            "name": "Archived Bear",
            "slug": "archived-bear",
            "is_available": False,
        }),
        clock.now(),
    )

    assert [c.slug for c in await service.list_costumes()] == ["archived-bear", "giant-inflatable-t-rex"]
    assert [c.slug for c in await service.list_costumes(available_only=True)] == ["giant-inflatable-t-rex"]


@pytest.mark.asyncio
async def test_update_costume_partial(test_session, clock, costume):
    service = CostumeService(test_session)
    clock.advance(hours=1)

    updated = await service.update_costume(
        costume.id,
        CostumeUpdate(price_per_day=Decimal("550.00"), price_per_12_hours=None, name=None),
        clock.now(),
    )

    assert updated.price_per_day == Decimal("550.00")
    assert updated.price_per_12_hours is None
    # Non-nullable fields ignore an explicit null
    assert updated.name == "Giant Inflatable T-Rex"
    assert updated.price_per_week == Decimal("2250.00")
    assert updated.updated_at == clock.now()


@pytest.mark.asyncio
async def test_update_unknown_costume(test_session, clock):
    with pytest.raises(NotFoundError):
        await CostumeService(test_session).update_costume(uuid4(), CostumeUpdate(name="x"), clock.now())
