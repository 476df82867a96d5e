"""Costume catalogue router."""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.clock import Clock, get_clock
from ..core.dependencies import get_db, require_admin
from ..schemas.common import PROBLEM_RESPONSES
from ..schemas.costume import Costume, CostumeCreate, CostumeUpdate
from ..services.costume_service import CostumeService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/costumes", tags=["costumes"], responses=PROBLEM_RESPONSES)

DB_DEPENDENCY = Depends(get_db)
CLOCK_DEPENDENCY = Depends(get_clock)
ADMIN_DEPENDENCY = Depends(require_admin)


@router.post("", response_model=Costume, status_code=status.HTTP_201_CREATED)
async def create_costume(
    request: CostumeCreate,
    db: AsyncSession = DB_DEPENDENCY,
    clock: Clock = CLOCK_DEPENDENCY,
    admin: dict = ADMIN_DEPENDENCY,
) -> Costume:
    costume = await CostumeService(db).create_costume(request, clock.now())
    return Costume.model_validate(costume)


@router.get("", response_model=list[Costume])
async def list_costumes(
    available_only: bool = Query(False, description="Only costumes open for booking"),
    db: AsyncSession = DB_DEPENDENCY,
) -> list[Costume]:
    costumes = await CostumeService(db).list_costumes(available_only=available_only)
    return [Costume.model_validate(c) for c in costumes]


@router.get("/{costume_id}", response_model=Costume)
async def get_costume(costume_id: UUID, db: AsyncSession = DB_DEPENDENCY) -> Costume:
    costume = await CostumeService(db).get_costume_by_id_or_raise(costume_id)
    return Costume.model_validate(costume)


@router.patch("/{costume_id}", response_model=Costume)
async def update_costume(
    costume_id: UUID,
    request: CostumeUpdate,
    db: AsyncSession = DB_DEPENDENCY,
    clock: Clock = CLOCK_DEPENDENCY,
    admin: dict = ADMIN_DEPENDENCY,
) -> Costume:
    """Edit a costume; rate-card changes never reprice existing bookings."""
    costume = await CostumeService(db).update_costume(costume_id, request, clock.now())
    return Costume.model_validate(costume)
