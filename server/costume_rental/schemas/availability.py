"""Availability Pydantic schemas."""

from datetime import date, datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator


class AvailabilityBlockCreate(BaseModel):
    """Request schema for blocking a costume's dates."""

    costume_id: UUID
    start_date: date = Field(..., description="First blocked date (inclusive)")
    end_date: date = Field(..., description="Last blocked date (inclusive)")
    reason: Optional[str] = Field(None, max_length=500)

    @model_validator(mode="after")
    def check_order(self) -> "AvailabilityBlockCreate":
        if self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class AvailabilityBlock(BaseModel):
    """Availability block response schema."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    costume_id: UUID
    start_date: date
    end_date: date
    reason: Optional[str] = None
    created_by: Optional[str] = None
    created_at: datetime


class BlockedDates(BaseModel):
    """Blocked calendar dates of a costume for one month."""

    costume_id: UUID
    year: int
    month: int
    blocked_dates: List[date]


class AvailabilityCheck(BaseModel):
    """Result of checking a requested range against the calendar."""

    costume_id: UUID
    start_date: datetime
    end_date: datetime
    is_available: bool
    blocked_dates: List[date]
