"""Calendar helpers for booking date ranges."""

import math
from collections.abc import Iterator
from datetime import date, datetime, timedelta


def iter_dates(start: date, end: date) -> Iterator[date]:
    """Yield every calendar date from start to end, both inclusive."""
    if isinstance(start, datetime):
        start = start.date()
    if isinstance(end, datetime):
        end = end.date()
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


def ranges_overlap(start_a, end_a, start_b, end_b) -> bool:
    """Inclusive overlap test: touching endpoints count as overlapping."""
    return start_a <= end_b and end_a >= start_b


def date_span_intersection(start_a: date, end_a: date, start_b: date, end_b: date) -> list[date]:
    """Calendar dates shared by two inclusive date spans."""
    lower = max(start_a, start_b)
    upper = min(end_a, end_b)
    if lower > upper:
        return []
    return list(iter_dates(lower, upper))


def elapsed_hours(start: datetime, end: datetime) -> float:
    return (end - start).total_seconds() / 3600


def calendar_days(start: datetime, end: datetime) -> int:
    """Whole days between two instants, rounding any partial day up."""
    return math.ceil((end - start).total_seconds() / 86400)


def month_bounds(year: int, month: int) -> tuple[date, date]:
    """First and last calendar date of a month."""
    first = date(year, month, 1)
    if month == 12:
        next_first = date(year + 1, 1, 1)
    else:
        next_first = date(year, month + 1, 1)
    return first, next_first - timedelta(days=1)
