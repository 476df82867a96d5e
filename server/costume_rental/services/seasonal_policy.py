"""Season-dependent rental duration rules.

Peak months (October to December by default) only allow short 12-hour
rentals so costumes turn over quickly; the rest of the year requires at
least a full day. The season is always decided by the month of the rental
start, so a range starting on 30 September follows the regular rules even
if it ends in October.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

from ..core.config import BookingPolicyConfig
from ..core.date_ranges import elapsed_hours
from ..core.exceptions import SeasonalViolationError
from ..models.booking import DurationCode


class Season(str, Enum):
    PEAK = "peak"
    REGULAR = "regular"


@dataclass(frozen=True)
class SeasonRules:
    """What a customer may book when the rental starts in a given season."""

    season: Season
    allowed_duration_codes: tuple[DurationCode, ...]
    min_hours: Optional[int]
    max_hours: Optional[int]
    description: str


PEAK_RULES = SeasonRules(
    season=Season.PEAK,
    allowed_duration_codes=(DurationCode.TWELVE_HOURS,),
    min_hours=None,
    max_hours=12,
    description="Peak season: rentals are limited to 12 hours.",
)

REGULAR_RULES = SeasonRules(
    season=Season.REGULAR,
    allowed_duration_codes=(DurationCode.ONE_DAY, DurationCode.THREE_DAYS, DurationCode.ONE_WEEK),
    min_hours=24,
    max_hours=None,
    description="Regular season: rentals start at 1 day; 3-day and weekly rentals are available.",
)


class SeasonalPolicy:
    """Validates rental periods against the rules of the season they start in."""

    def __init__(self, policy: BookingPolicyConfig):
        self.policy = policy

    def is_peak(self, when: datetime) -> bool:
        return when.month in self.policy.peak_months

    def rules_for(self, when: datetime) -> SeasonRules:
        return PEAK_RULES if self.is_peak(when) else REGULAR_RULES

    def validate(self, start: datetime, end: datetime) -> SeasonRules:
        """
        Check the requested range against its season's hour limits.

        The check looks only at elapsed hours, whatever duration code the
        customer claims.

        Args:
            start: Rental start (naive UTC)
            end: Rental end (naive UTC)

        Returns:
            The rules that applied

        Raises:
            SeasonalViolationError: If the range is too long for peak season
                or too short for regular season
        """
        rules = self.rules_for(start)
        hours = elapsed_hours(start, end)
        allowed = [code.value for code in rules.allowed_duration_codes]

        if rules.max_hours is not None and hours > rules.max_hours:
            raise SeasonalViolationError(
                detail=(
                    f"Rentals starting in peak season can last at most {rules.max_hours} hours; "
                    f"the requested period is {hours:.2f} hours."
                ),
                season=rules.season.value,
                hours=hours,
                allowed_durations=allowed,
            )

        if rules.min_hours is not None and hours < rules.min_hours:
            raise SeasonalViolationError(
                detail=(
                    f"Rentals starting in regular season must last at least {rules.min_hours} hours; "
                    f"the requested period is {hours:.2f} hours."
                ),
                season=rules.season.value,
                hours=hours,
                allowed_durations=allowed,
            )

        return rules

    def check_duration_code(self, start: datetime, code: DurationCode | str) -> SeasonRules:
        """
        Reject a duration code the start date's season does not offer.

        Raises:
            SeasonalViolationError: If ``code`` is not offered in that season
        """
        rules = self.rules_for(start)
        code = DurationCode(code)
        if code not in rules.allowed_duration_codes:
            allowed = [c.value for c in rules.allowed_duration_codes]
            raise SeasonalViolationError(
                detail=(
                    f"The {code.value} rental is not offered in {rules.season.value} season; "
                    f"choose one of: {', '.join(allowed)}."
                ),
                season=rules.season.value,
                allowed_durations=allowed,
            )
        return rules
