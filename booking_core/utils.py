"""Shared interval and clock helpers used across the scheduling core."""

import math
from datetime import date, datetime, time, timedelta


def overlaps(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    """Half-open interval overlap: touching endpoints do not overlap.

    Examples:
        >>> t = datetime(2025, 3, 18, 9, 0)
        >>> overlaps(t, t + timedelta(hours=1), t + timedelta(hours=1), t + timedelta(hours=2))
        False
    """
    return a_start < b_end and b_start < a_end


def at(day: date, moment: time) -> datetime:
    """Combine a calendar day and a wall-clock time."""
    return datetime.combine(day, moment)


def minutes(value: int) -> timedelta:
    return timedelta(minutes=value)


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves toward positive infinity.

    Examples:
        >>> round_half_up(1.5), round_half_up(-1.5), round_half_up(0.49)
        (2, -1, 0)
    """
    return math.floor(value + 0.5)
