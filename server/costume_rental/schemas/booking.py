"""Booking-related Pydantic schemas."""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from ..core.clock import to_naive_utc
from ..models.booking import BookingStatus, DurationCode


class _NaiveUTCDates(BaseModel):
    """Normalizes rental dates to naive UTC on the way in."""

    model_config = ConfigDict(str_strip_whitespace=True)

    @field_validator("start_date", "end_date", check_fields=False)
    @classmethod
    def normalize_timezone(cls, v: datetime) -> datetime:
        return to_naive_utc(v)


class CreateBookingRequest(_NaiveUTCDates):
    """Request schema for placing a soft hold on a costume."""

    costume_id: UUID = Field(..., description="Costume to book")
    customer_name: str = Field(..., min_length=1, max_length=200)
    customer_email: str = Field(..., min_length=1, max_length=320)
    customer_phone: str = Field(..., min_length=1, max_length=50)
    special_requests: Optional[str] = Field(None, max_length=2000)
    start_date: datetime = Field(..., description="Rental start (ISO 8601)")
    end_date: datetime = Field(..., description="Rental end (ISO 8601)")
    duration_code: Optional[DurationCode] = Field(
        None, description="Chosen duration; priced from the date range when omitted"
    )


class UpdateBookingRequest(_NaiveUTCDates):
    """Full update of an active booking's customer details and dates."""

    customer_name: str = Field(..., min_length=1, max_length=200)
    customer_email: str = Field(..., min_length=1, max_length=320)
    customer_phone: str = Field(..., min_length=1, max_length=50)
    special_requests: Optional[str] = Field(None, max_length=2000)
    start_date: datetime
    end_date: datetime


class PatchBookingRequest(BaseModel):
    """Partial update: a status transition and/or the messenger flag."""

    status: Optional[BookingStatus] = Field(None, description="Target lifecycle status")
    messenger_opened: Optional[bool] = Field(None, description="Customer was handed off to Messenger")

    @model_validator(mode="after")
    def require_change(self) -> "PatchBookingRequest":
        if self.status is None and self.messenger_opened is None:
            raise ValueError("Provide status or messenger_opened")
        return self


class CancelBookingRequest(BaseModel):
    """Customer cancellation, authorized by the booking reference."""

    booking_reference: str = Field(..., min_length=1, max_length=32)


class ReturnRequest(BaseModel):
    """Request schema for recording a costume return."""

    actual_return_date: datetime = Field(..., description="When the costume came back (ISO 8601)")
    late_fee_per_hour: Optional[Decimal] = Field(
        None, ge=0, description="Overrides the hourly rate captured at booking time"
    )

    @field_validator("actual_return_date")
    @classmethod
    def normalize_timezone(cls, v: datetime) -> datetime:
        return to_naive_utc(v)


class RefundRequest(BaseModel):
    """Request schema for refunding the security deposit."""

    refund_amount: Optional[Decimal] = Field(
        None, ge=0, description="Overrides the computed deposit minus late fee"
    )
    notes: Optional[str] = Field(None, max_length=2000)


class Booking(BaseModel):
    """Booking response schema."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID = Field(..., description="Unique booking ID")
    booking_reference: str = Field(..., description="Reference shared with the customer")
    costume_id: UUID
    customer_name: str
    customer_email: str
    customer_phone: str
    special_requests: Optional[str] = None
    start_date: datetime
    end_date: datetime
    duration_code: Optional[str] = None
    status: BookingStatus
    blocked_until: Optional[datetime] = None
    total_price: Decimal
    security_deposit: Decimal
    late_fee_per_hour: Decimal
    actual_return_date: Optional[datetime] = None
    late_fee_amount: Decimal
    security_deposit_refunded: bool
    refund_amount: Optional[Decimal] = None
    refund_notes: Optional[str] = None
    refund_processed_at: Optional[datetime] = None
    messenger_opened: bool
    created_at: datetime
    updated_at: datetime


class BookingList(BaseModel):
    """List of bookings, newest first."""

    items: List[Booking]
    total: int


class ReturnResult(BaseModel):
    """Outcome of recording a return."""

    booking: Booking
    late_fee_amount: Decimal
    is_late_return: bool
    message: str


class ReturnStatus(BaseModel):
    """Return state of a booking and its running late fee."""

    booking: Booking
    expected_return: datetime
    has_been_returned: bool
    is_currently_late: bool
    current_late_fee: Decimal
    security_deposit_refunded: bool


class RefundResult(BaseModel):
    """Outcome of processing a deposit refund."""

    booking: Booking
    refund_amount: Decimal
    amount_due: Decimal
    message: str


class RefundStatus(BaseModel):
    """Deposit refund state of a booking."""

    booking: Booking
    is_eligible_for_refund: bool
    has_been_refunded: bool
    security_deposit: Decimal
    late_fee_amount: Decimal
    estimated_refund: Decimal
    amount_due: Decimal


class MessengerLink(BaseModel):
    """Deep link that opens Messenger with the booking summary prefilled."""

    booking_reference: str
    url: str
    message: str
