"""
business_days.py — Elapsed-time helpers for SLA alerts and time-to-event stats.
"""

from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional

from metrics import round_half_up

SECONDS_PER_DAY = 86400


def business_days_between(start: Optional[datetime], end: Optional[datetime]) -> int:
    """
    Count Monday–Friday calendar days after start's date, up to and including end's date.
    Returns 0 when either side is missing or start >= end.
    """
    if start is None or end is None or start >= end:
        return 0

    current = start.astimezone(timezone.utc).date()
    last = end.astimezone(timezone.utc).date()

    count = 0
    # Whole weeks contribute five weekdays each
    full_weeks = (last - current).days // 7
    count += full_weeks * 5
    current += timedelta(days=full_weeks * 7)

    while current < last:
        current += timedelta(days=1)
        if current.weekday() < 5:
            count += 1
    return count


def days_between(start: Optional[datetime], end: Optional[datetime]) -> Optional[float]:
    """Fractional days from start to end, or None if missing or negative."""
    if start is None or end is None:
        return None
    seconds = (end - start).total_seconds()
    if seconds < 0:
        return None
    return seconds / SECONDS_PER_DAY


def average_days(pairs: Iterable[tuple[Optional[datetime], Optional[datetime]]]) -> Optional[float]:
    """Mean of days_between over the valid pairs, rounded to one decimal."""
    total = 0.0
    count = 0
    for start, end in pairs:
        diff = days_between(start, end)
        if diff is None:
            continue
        total += diff
        count += 1
    if count == 0:
        return None
    return round_half_up(total / count)
