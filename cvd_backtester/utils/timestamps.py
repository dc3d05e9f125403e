"""
Timestamp parsing and day keys.

Bar timestamps are wall-clock components in the storage timezone. They are
parsed into naive datetimes and never converted inside the engine; day keys
use those components directly. Conversion to a display timezone is a fixed
hour offset applied only when presenting results.
"""

from __future__ import annotations
from datetime import date, datetime, time, timedelta
from typing import Tuple, Union

_FORMATS = (
    "%Y-%m-%d %I:%M:%S %p",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d %H:%M",
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%d",
)


def parse_timestamp(value: str) -> datetime:
    """
    Parse "2025-01-15 09:30:00 AM", "2025-01-15 09:30:00" or ISO-8601.
    An explicit UTC offset is dropped; the wall-clock components are kept.
    Raises ValueError if nothing matches.
    """
    text = value.strip()
    for fmt in _FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    try:
        return datetime.fromisoformat(text).replace(tzinfo=None)
    except ValueError:
        raise ValueError(f"Unparseable timestamp: {value!r}") from None


def parse_clock(value: str) -> time:
    """Parse "HH:MM" or "HH:MM:SS" into a time of day."""
    for fmt in ("%H:%M", "%H:%M:%S"):
        try:
            return datetime.strptime(value.strip(), fmt).time()
        except ValueError:
            continue
    raise ValueError(f"Unparseable time of day: {value!r}")


def day_key(ts: Union[datetime, date]) -> str:
    """ISO date key (YYYY-MM-DD) in the storage timezone."""
    d = ts.date() if isinstance(ts, datetime) else ts
    return d.isoformat()


def days_between(start: datetime, end: datetime) -> int:
    """Whole calendar days from start to end."""
    return (end.date() - start.date()).days


def to_display(ts: datetime, offset_hours: float = 0.0) -> datetime:
    """Shift a storage-time timestamp into the display timezone."""
    return ts + timedelta(hours=offset_hours)


def format_display(ts: datetime, offset_hours: float = 0.0) -> Tuple[str, str]:
    """(MM/DD/YYYY, hh:mm:ss AM) pair for reports."""
    shifted = to_display(ts, offset_hours)
    return shifted.strftime("%m/%d/%Y"), shifted.strftime("%I:%M:%S %p")
