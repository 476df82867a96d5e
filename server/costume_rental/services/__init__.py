"""Business logic services."""

from .availability_service import AvailabilityCheck, AvailabilityService
from .booking_service import BookingService, generate_booking_reference
from .costume_service import CostumeService
from .pricing import PricingEngine
from .refund_service import RefundService
from .seasonal_policy import SeasonalPolicy, SeasonRules

__all__ = [
    "AvailabilityCheck",
    "AvailabilityService",
    "BookingService",
    "CostumeService",
    "PricingEngine",
    "RefundService",
    "SeasonalPolicy",
    "SeasonRules",
    "generate_booking_reference",
]
