"""Costume catalogue service."""

import logging
from datetime import datetime
from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import commit_or_raise
from ..core.exceptions import ConflictError, NotFoundError
from ..models.costume import Costume
from ..schemas.costume import CostumeCreate, CostumeUpdate

logger = logging.getLogger(__name__)

# Fields a partial update may clear with an explicit null
NULLABLE_FIELDS = frozenset({"description", "size", "difficulty", "setup_time_minutes", "price_per_12_hours"})


class CostumeService:
    """Service for costume-related operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_costume(self, request: CostumeCreate, now: datetime) -> Costume:
        """
        Add a costume to the catalogue.

        Args:
            request: Costume creation request
            now: Creation timestamp

        Returns:
            Created costume entity

        Raises:
            ConflictError: If a costume with the same slug already exists
        """
        existing = await self.get_costume_by_slug(request.slug)
        if existing:
            logger.warning(
                "Costume creation failed - slug already exists",
                extra={"slug": request.slug, "existing_costume_id": str(existing.id)}
            )
            raise ConflictError(
                detail=f"Costume with slug '{request.slug}' already exists",
                conflicting_resource={"id": str(existing.id), "slug": existing.slug}
            )

        costume = Costume(**request.model_dump(), created_at=now, updated_at=now)

        try:
            self.db.add(costume)
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            logger.warning(
                "Costume creation failed - integrity error",
                extra={"slug": request.slug, "error": str(e)}
            )
            raise ConflictError(detail=f"Costume with slug '{request.slug}' already exists") from e

        await self.db.refresh(costume)
        logger.info(
            "Costume created successfully",
            extra={"costume_id": str(costume.id), "slug": costume.slug}
        )
        return costume

    async def get_costume_by_id(self, costume_id: UUID) -> Optional[Costume]:
        result = await self.db.execute(select(Costume).where(Costume.id == costume_id))
        return result.scalar_one_or_none()

    async def get_costume_by_id_or_raise(self, costume_id: UUID) -> Costume:
        """
        Get costume by ID or raise NotFoundError.

        Raises:
            NotFoundError: If costume not found
        """
        costume = await self.get_costume_by_id(costume_id)
        if not costume:
            raise NotFoundError(resource_type="costume", resource_id=str(costume_id))
        return costume

    async def get_costume_by_slug(self, slug: str) -> Optional[Costume]:
        result = await self.db.execute(select(Costume).where(Costume.slug == slug))
        return result.scalar_one_or_none()

    async def list_costumes(self, available_only: bool = False) -> list[Costume]:
        stmt = select(Costume).order_by(Costume.name)
        if available_only:
            stmt = stmt.where(Costume.is_available.is_(True))
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def update_costume(self, costume_id: UUID, request: CostumeUpdate, now: datetime) -> Costume:
        """
        Apply a partial update to a costume.

        Rate-card changes only affect bookings created afterwards; existing
        bookings keep the total captured when they were placed.

        Raises:
            NotFoundError: If costume not found
        """
        costume = await self.get_costume_by_id_or_raise(costume_id)

        changes = {
            field: value
            for field, value in request.model_dump(exclude_unset=True).items()
            if value is not None or field in NULLABLE_FIELDS
        }
        for field, value in changes.items():
            setattr(costume, field, value)
        costume.updated_at = now

        await commit_or_raise(self.db, "update_costume")
        await self.db.refresh(costume)

        logger.info(
            "Costume updated",
            extra={"costume_id": str(costume_id), "fields": sorted(changes)}
        )
        return costume
