"""
Scheduling warnings for proposed appointments.

The warning is advisory: the caller may still save the appointment after
showing it to the user. `compute_scheduling_warning` is pure and works on any
objects exposing the model attributes, so it can be tested without a database.
"""

import logging
from datetime import datetime, timedelta
from typing import Iterable, List, Optional

from sqlalchemy.orm import Session

from models import DoctorAvailabilityWindow, PracticeClosure, PracticeWeeklyClosure
from utils.datetime_utils import WEEKDAY_LABELS, ensure_local, minutes_since_midnight, parse_datetime_to_local

logger = logging.getLogger(__name__)

PROCEED_SUFFIX = " Vuoi procedere comunque?"


def intervals_overlap(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    """Half-open overlap test: touching intervals do not overlap."""
    return a_start < b_end and a_end > b_start


def _with_title(title: Optional[str]) -> str:
    title = (title or "").strip()
    return f" ({title})" if title else ""


def compute_scheduling_warning(
    starts_at: Optional[datetime | str],
    ends_at: Optional[datetime | str],
    doctor_id: Optional[int],
    windows: Iterable,
    closures: Iterable,
    weekly_closures: Iterable = (),
) -> Optional[str]:
    """
    Build the warning shown before saving an appointment.

    Args:
        starts_at: Proposed start (datetime or ISO string)
        ends_at: Proposed end (datetime or ISO string)
        doctor_id: Doctor of the appointment; without one there is no warning
        windows: Availability windows (doctor_id, day_of_week, start_minute, end_minute)
        closures: Practice closures (starts_at, ends_at, title)
        weekly_closures: Weekly closures (day_of_week, title, is_active)

    Returns:
        The warning text, or None when nothing applies or the input is invalid
    """
    if doctor_id is None or not starts_at or not ends_at:
        return None
    try:
        start = parse_datetime_to_local(starts_at)
        end = parse_datetime_to_local(ends_at)
    except ValueError:
        return None
    if end <= start:
        return None

    day = start.isoweekday()
    day_label = WEEKDAY_LABELS[day]
    parts: List[str] = []

    # A doctor with no window on that weekday is outside availability
    start_min = minutes_since_midnight(start)
    end_min = minutes_since_midnight(end)
    same_day = start.date() == end.date()
    within_window = same_day and any(
        w.doctor_id == doctor_id and w.day_of_week == day
        and start_min >= w.start_minute and end_min <= w.end_minute
        for w in windows
    )
    if not within_window:
        parts.append(f"L'appuntamento è fuori dalla disponibilità del medico ({day_label}).")

    weekly_match = next(
        (w for w in weekly_closures if w.day_of_week == day and getattr(w, "is_active", True)),
        None,
    )
    if weekly_match is not None:
        parts.append(f"Lo studio risulta chiuso ogni {day_label.lower()}{_with_title(weekly_match.title)}.")

    for closure in closures:
        closure_start = ensure_local(closure.starts_at)
        closure_end = ensure_local(closure.ends_at)
        if closure_start is None or closure_end is None:
            continue
        if intervals_overlap(start, end, closure_start, closure_end):
            parts.append(f"Lo studio risulta chiuso in questo periodo{_with_title(closure.title)}.")
            break

    if not parts:
        return None
    return " ".join(part + PROCEED_SUFFIX for part in parts)


def load_scheduling_warning(
    db: Session,
    starts_at: Optional[datetime | str],
    ends_at: Optional[datetime | str],
    doctor_id: Optional[int],
) -> Optional[str]:
    """Load windows and closures around the proposed range and compute the warning."""
    if doctor_id is None or not starts_at or not ends_at:
        return None
    try:
        start = parse_datetime_to_local(starts_at)
        end = parse_datetime_to_local(ends_at)
    except ValueError:
        return None

    windows = db.query(DoctorAvailabilityWindow).filter(
        DoctorAvailabilityWindow.doctor_id == doctor_id
    ).all()
    # One day of slack on each side; the exact overlap test runs in Python
    closures = db.query(PracticeClosure).filter(
        PracticeClosure.starts_at < end + timedelta(days=1),
        PracticeClosure.ends_at > start - timedelta(days=1),
    ).order_by(PracticeClosure.starts_at).all()
    weekly = db.query(PracticeWeeklyClosure).filter(PracticeWeeklyClosure.is_active.is_(True)).all()

    return compute_scheduling_warning(start, end, doctor_id, windows, closures, weekly)
