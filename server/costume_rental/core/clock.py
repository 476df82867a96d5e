"""Time source used for hold expiry and lateness computation.

All timestamps handled by the service are naive UTC datetimes, which is
what the database columns store.
"""

from datetime import datetime, timedelta, timezone


def to_naive_utc(value: datetime) -> datetime:
    """Convert an aware datetime to naive UTC; naive values are assumed UTC."""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


class Clock:
    """Wall clock returning the current naive UTC time."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc).replace(tzinfo=None)


class FixedClock(Clock):
    """Clock frozen at a given instant; can be moved forward explicitly."""

    def __init__(self, current: datetime):
        self.current = to_naive_utc(current)

    def now(self) -> datetime:
        return self.current

    def advance(self, **delta) -> None:
        self.current = self.current + timedelta(**delta)


system_clock = Clock()


def get_clock() -> Clock:
    """FastAPI dependency returning the process clock."""
    return system_clock
