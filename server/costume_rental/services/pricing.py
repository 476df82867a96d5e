"""Rental price, deposit and late-fee arithmetic.

All amounts are ``Decimal`` quantized to cents with half-up rounding.
"""

import math
from dataclasses import dataclass
from datetime import datetime, time
from decimal import ROUND_HALF_UP, Decimal

from ..core.config import BookingPolicyConfig
from ..core.date_ranges import calendar_days, elapsed_hours
from ..core.exceptions import ValidationError
from ..models.booking import DurationCode

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def quantize(amount) -> Decimal:
    return Decimal(amount).quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class RefundEstimate:
    """Deposit refund after late fees; ``amount_due`` is what the fee leaves uncovered."""

    refund: Decimal
    amount_due: Decimal


class PricingEngine:
    """Prices rentals from a costume's rate card and the booking policy."""

    def __init__(self, policy: BookingPolicyConfig):
        self.policy = policy

    def price(self, costume, duration_code: DurationCode | str) -> Decimal:
        """
        Price a rental by its duration code.

        Args:
            costume: Anything exposing the rate card attributes
            duration_code: One of ``12h``, ``1d``, ``3d``, ``1w``

        Returns:
            Total rental price
        """
        code = DurationCode(duration_code)
        daily = Decimal(costume.price_per_day)

        if code is DurationCode.TWELVE_HOURS:
            if costume.price_per_12_hours is not None:
                return quantize(costume.price_per_12_hours)
            return quantize(daily * self.policy.twelve_hour_fallback_ratio)
        if code is DurationCode.ONE_DAY:
            return quantize(daily)
        if code is DurationCode.THREE_DAYS:
            return quantize(daily * 3 * self.policy.multi_day_discount)
        return quantize(costume.price_per_week)

    def price_for_range(self, costume, start: datetime, end: datetime) -> Decimal:
        """Price a rental from its date range when no duration code was chosen."""
        days = calendar_days(start, end)
        daily = Decimal(costume.price_per_day)
        weekly = Decimal(costume.price_per_week)

        if days <= 1:
            return quantize(daily)
        if days <= 3:
            return quantize(daily * days * self.policy.multi_day_discount)
        if days <= 7:
            return quantize(weekly)
        weeks = math.ceil(days / 7)
        return quantize(weekly * weeks * self.policy.extended_rental_discount)

    def security_deposit(self) -> Decimal:
        return quantize(self.policy.security_deposit)

    def expected_return(self, end: datetime) -> datetime:
        """The costume is due back on the end date at the start of the pickup window."""
        return datetime.combine(end.date(), time(hour=self.policy.pickup_window_start_hour))

    def hours_late(self, actual_return: datetime, end: datetime) -> int:
        """Started hours past the expected return; 0 when on time."""
        expected = self.expected_return(end)
        if actual_return <= expected:
            return 0
        return math.ceil(elapsed_hours(expected, actual_return))

    def late_fee(self, actual_return: datetime, end: datetime, per_hour_rate) -> Decimal:
        """
        Late-return fee, charged per started hour past the expected return.

        Raises:
            ValidationError: If the hourly rate is negative
        """
        rate = Decimal(per_hour_rate)
        if rate < 0:
            raise ValidationError("Late fee per hour cannot be negative")
        return quantize(self.hours_late(actual_return, end) * rate)

    def estimated_refund(self, deposit, late_fee) -> RefundEstimate:
        """Deposit minus late fee, floored at zero unless the policy allows negatives."""
        difference = quantize(Decimal(deposit) - Decimal(late_fee))
        if difference >= 0:
            return RefundEstimate(refund=difference, amount_due=ZERO)
        if self.policy.refund_floor_at_zero:
            return RefundEstimate(refund=ZERO, amount_due=-difference)
        return RefundEstimate(refund=difference, amount_due=-difference)
