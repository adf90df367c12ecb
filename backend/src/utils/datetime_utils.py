"""
Datetime utilities for consistent timezone handling across the application.

All business logic runs in the practice timezone (Europe/Rome by default).
Datetimes are converted to practice-local time at input boundaries, and
values loaded from databases that drop tzinfo (SQLite) are re-localized with
`ensure_local` before being compared in Python.
"""

import logging
from datetime import datetime, date, time, timedelta
from typing import Optional
from zoneinfo import ZoneInfo

from core.config import PRACTICE_TIMEZONE

logger = logging.getLogger(__name__)

PRACTICE_TZ = ZoneInfo(PRACTICE_TIMEZONE)

# ISO weekday (1=Monday ... 7=Sunday) to Italian label
WEEKDAY_LABELS = {
    1: "Lunedì",
    2: "Martedì",
    3: "Mercoledì",
    4: "Giovedì",
    5: "Venerdì",
    6: "Sabato",
    7: "Domenica",
}

ITALIAN_MONTHS = [
    "gennaio", "febbraio", "marzo", "aprile", "maggio", "giugno",
    "luglio", "agosto", "settembre", "ottobre", "novembre", "dicembre",
]


def practice_now() -> datetime:
    """
    Get current datetime in the practice timezone.

    Returns:
        Current timezone-aware datetime
    """
    return datetime.now(PRACTICE_TZ)


def ensure_local(dt: Optional[datetime]) -> Optional[datetime]:
    """
    Ensure a datetime is timezone-aware in the practice timezone.

    Naive datetimes are assumed to already be practice-local time.

    Args:
        dt: Datetime to localize

    Returns:
        Timezone-aware datetime in the practice timezone, or None if input is None
    """
    if dt is None:
        return None

    if dt.tzinfo is None:
        return dt.replace(tzinfo=PRACTICE_TZ)
    return dt.astimezone(PRACTICE_TZ)


def parse_datetime_to_local(v: str | datetime) -> datetime:
    """
    Parse datetime from an ISO string or datetime object into practice-local time.

    Raises:
        ValueError: If the value cannot be parsed
    """
    if isinstance(v, datetime):
        return ensure_local(v)  # type: ignore[return-value]
    if not isinstance(v, str) or not v.strip():
        raise ValueError(f"Invalid datetime value: {v!r}")
    try:
        parsed = datetime.fromisoformat(v.strip().replace("Z", "+00:00"))
    except ValueError as e:
        raise ValueError(f"Invalid datetime string format: {v}") from e
    return ensure_local(parsed)  # type: ignore[return-value]


def local_datetime(day: date, hour: int = 0, minute: int = 0) -> datetime:
    """Build a practice-local datetime for a calendar day and wall-clock time."""
    return datetime.combine(day, time(hour, minute), tzinfo=PRACTICE_TZ)


def minutes_since_midnight(dt: datetime) -> int:
    """Minutes elapsed since local midnight."""
    return dt.hour * 60 + dt.minute


def parse_hhmm(value: str) -> Optional[int]:
    """
    Parse a "HH:MM" wall-clock string into minutes since midnight.

    Returns None for malformed or out-of-range values. "24:00" is accepted
    as the end of day.
    """
    if not value:
        return None
    parts = value.strip().split(":")
    if len(parts) != 2 or not all(p.isdigit() for p in parts):
        return None
    hours, minutes = int(parts[0]), int(parts[1])
    if minutes > 59 or hours > 24 or (hours == 24 and minutes != 0):
        return None
    return hours * 60 + minutes


def format_minutes(minutes: int) -> str:
    """Format minutes since midnight as "HH:MM"."""
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def format_date_it(value: date | datetime) -> str:
    """Format as dd/mm/yyyy."""
    if isinstance(value, datetime):
        value = ensure_local(value)  # type: ignore[assignment]
    return value.strftime("%d/%m/%Y")


def format_date_long_it(value: date | datetime) -> str:
    """Format as "25 dicembre 2025"."""
    if isinstance(value, datetime):
        value = ensure_local(value)  # type: ignore[assignment]
    return f"{value.day} {ITALIAN_MONTHS[value.month - 1]} {value.year}"


def format_time_it(value: datetime) -> str:
    """Format as HH:MM in practice-local time."""
    local = ensure_local(value)
    assert local is not None
    return local.strftime("%H:%M")


def add_days(dt: datetime, days: int) -> datetime:
    """Add calendar days keeping the local wall-clock time."""
    local = ensure_local(dt)
    assert local is not None
    shifted = local.replace(tzinfo=None) + timedelta(days=days)
    return shifted.replace(tzinfo=PRACTICE_TZ)
