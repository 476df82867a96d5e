"""Models module exporting all database models."""

from .availability_block import AvailabilityBlock
from .booking import (
    ALLOWED_TRANSITIONS,
    Booking,
    BookingStatus,
    DurationCode,
    can_transition,
)
from .costume import Costume

__all__ = [
    # Catalogue
    "Costume",
    "AvailabilityBlock",

    # Booking ledger
    "Booking",
    "BookingStatus",
    "DurationCode",
    "ALLOWED_TRANSITIONS",
    "can_transition",
]
