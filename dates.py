"""
dates.py — The single date-normalization boundary.

Every cell that holds a date passes through normalize_date(), which accepts
spreadsheet serial numbers, datetime objects and a handful of string formats
and always returns a timezone-aware datetime or None. It never raises.
"""

import math
import re
from datetime import date, datetime, timedelta, timezone
from typing import Any, Optional

UNIX_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

# Days between the spreadsheet epoch (1899-12-30) and the Unix epoch
SERIAL_UNIX_OFFSET_DAYS = 25569

# Numbers above this are read as spreadsheet date serials.
# Known ambiguity: a large plain numeric cell would be misread as a date.
SERIAL_THRESHOLD = 10000

# "04 May 2025 11:39 GMT+05:30", "05/04/2025 11:39 +0530", "2025-05-04 11:39 UTC-04:00"
OFFSET_SUFFIX_RE = re.compile(
    r"^(?P<wall>.*?\S)(?:\s*(?:GMT|UTC)\s*|\s+)(?P<sign>[+-])(?P<hours>\d{2}):?(?P<minutes>\d{2})?$",
    re.IGNORECASE,
)

MAX_OFFSET_HOURS = 14

WALL_CLOCK_FORMATS = [
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d %H:%M",
    "%Y-%m-%d",
    "%m/%d/%Y %H:%M:%S",
    "%m/%d/%Y %H:%M",
    "%m/%d/%Y",
    "%d %b %Y %H:%M:%S",
    "%d %b %Y %H:%M",
    "%d %b %Y",
    "%d-%b-%Y",
    "%d-%b-%y",
    "%B %d, %Y %H:%M:%S",
    "%B %d, %Y",
    "%b %d, %Y",
    "%a %b %d %Y %H:%M:%S",
]


def normalize_date(value: Any, default_tz: timezone = timezone.utc) -> Optional[datetime]:
    """
    Convert a cell value into an aware datetime.
    Returns None for empty or unparseable values.
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=default_tz)
        return value

    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=default_tz)

    if isinstance(value, (int, float)):
        return _from_serial(value)

    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        return _parse_string(text, default_tz)

    return None


def parse_offset_timestamp(text: str) -> Optional[tuple[datetime, int]]:
    """
    Parse a wall-clock string with an explicit UTC offset suffix.
    Returns (utc_instant, offset_minutes), or None if there is no valid offset.
    """
    if not isinstance(text, str):
        return None
    match = OFFSET_SUFFIX_RE.match(text.strip())
    if not match:
        return None

    hours = int(match.group("hours"))
    minutes = int(match.group("minutes") or 0)
    if hours > MAX_OFFSET_HOURS or minutes > 59:
        return None

    wall_clock = _parse_wall_clock(match.group("wall").strip())
    if wall_clock is None:
        return None

    offset_minutes = hours * 60 + minutes
    if match.group("sign") == "-":
        offset_minutes = -offset_minutes

    # Wall-clock fields are read as if they were UTC, then the offset is removed
    instant = wall_clock.replace(tzinfo=timezone.utc) - timedelta(minutes=offset_minutes)
    return instant, offset_minutes


def _from_serial(value: float) -> Optional[datetime]:
    """Convert a spreadsheet serial day count to a UTC instant."""
    if isinstance(value, float) and not math.isfinite(value):
        return None
    if value <= SERIAL_THRESHOLD:
        return None
    try:
        return UNIX_EPOCH + timedelta(seconds=(value - SERIAL_UNIX_OFFSET_DAYS) * 86400)
    except OverflowError:
        return None


def _parse_string(text: str, default_tz: timezone) -> Optional[datetime]:
    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00") if text.endswith("Z") else text)
    except ValueError:
        parsed = None
    if parsed is not None:
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=default_tz)

    with_offset = parse_offset_timestamp(text)
    if with_offset is not None:
        return with_offset[0]

    wall_clock = _parse_wall_clock(text)
    if wall_clock is not None:
        return wall_clock.replace(tzinfo=default_tz)
    return None


def _parse_wall_clock(text: str) -> Optional[datetime]:
    """Try each known wall-clock format."""
    for fmt in WALL_CLOCK_FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return None


def format_day(instant: Optional[datetime]) -> str:
    """Format an instant as YYYY-MM-DD in UTC, or 'N/A'."""
    if instant is None:
        return "N/A"
    return instant.astimezone(timezone.utc).strftime("%Y-%m-%d")
