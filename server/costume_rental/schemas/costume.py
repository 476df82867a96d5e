"""Costume catalogue Pydantic schemas."""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class RateCard(BaseModel):
    """Prices a costume is rented at."""

    price_per_12_hours: Optional[Decimal] = Field(None, gt=0, description="Half-day rate; derived from the daily rate if unset")
    price_per_day: Decimal = Field(..., gt=0, description="Daily rate")
    price_per_week: Decimal = Field(..., gt=0, description="Weekly rate")


class CostumeCreate(RateCard):
    """Request schema for adding a costume to the catalogue."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=1, max_length=200)
    slug: str = Field(..., min_length=1, max_length=200, pattern=r"^[a-z0-9]+(?:-[a-z0-9]+)*$")
    description: Optional[str] = None
    size: Optional[str] = Field(None, max_length=50)
    difficulty: Optional[str] = Field(None, max_length=50)
    setup_time_minutes: Optional[int] = Field(None, ge=0)
    is_available: bool = True


class CostumeUpdate(BaseModel):
    """Partial update of a costume; omitted fields are left unchanged."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    size: Optional[str] = Field(None, max_length=50)
    difficulty: Optional[str] = Field(None, max_length=50)
    setup_time_minutes: Optional[int] = Field(None, ge=0)
    price_per_12_hours: Optional[Decimal] = Field(None, gt=0)
    price_per_day: Optional[Decimal] = Field(None, gt=0)
    price_per_week: Optional[Decimal] = Field(None, gt=0)
    is_available: Optional[bool] = None


class Costume(BaseModel):
    """Costume response schema."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    slug: str
    description: Optional[str] = None
    size: Optional[str] = None
    difficulty: Optional[str] = None
    setup_time_minutes: Optional[int] = None
    price_per_12_hours: Optional[Decimal] = None
    price_per_day: Decimal
    price_per_week: Decimal
    is_available: bool
    created_at: datetime
    updated_at: datetime
