"""
Unit tests for appointment scheduling warnings.
"""

from datetime import datetime
from types import SimpleNamespace

from services.scheduling_warnings import compute_scheduling_warning, intervals_overlap
from utils.datetime_utils import PRACTICE_TZ


def local(year, month, day, hour=0, minute=0):
    return datetime(year, month, day, hour, minute, tzinfo=PRACTICE_TZ)


# Monday 19 October 2026, 09:00-13:00 for doctor 1
MONDAY_MORNING = SimpleNamespace(doctor_id=1, day_of_week=1, start_minute=540, end_minute=780)
SATURDAY_MORNING = SimpleNamespace(doctor_id=1, day_of_week=6, start_minute=540, end_minute=780)


class TestIntervalsOverlap:
    def test_overlapping(self):
        assert intervals_overlap(local(2026, 10, 19, 9), local(2026, 10, 19, 10),
                                 local(2026, 10, 19, 9, 30), local(2026, 10, 19, 11))

    def test_touching_intervals_do_not_overlap(self):
        assert not intervals_overlap(local(2026, 10, 19, 9), local(2026, 10, 19, 10),
                                     local(2026, 10, 19, 10), local(2026, 10, 19, 11))


class TestComputeSchedulingWarning:
    """Test the warning text for proposed appointments."""

    def test_inside_availability_window(self):
        """No warning when the appointment fits a window of its doctor."""
        warning = compute_scheduling_warning(
            local(2026, 10, 19, 10), local(2026, 10, 19, 10, 30), 1, [MONDAY_MORNING], []
        )
        assert warning is None

    def test_outside_availability_window(self):
        warning = compute_scheduling_warning(
            local(2026, 10, 19, 14), local(2026, 10, 19, 14, 30), 1, [MONDAY_MORNING], []
        )
        assert warning == (
            "L'appuntamento è fuori dalla disponibilità del medico (Lunedì). Vuoi procedere comunque?"
        )

    def test_window_must_contain_whole_appointment(self):
        """An appointment straddling the window end is outside availability."""
        warning = compute_scheduling_warning(
            local(2026, 10, 19, 12, 30), local(2026, 10, 19, 13, 30), 1, [MONDAY_MORNING], []
        )
        assert warning is not None

    def test_doctor_without_windows_is_outside_availability(self):
        """Only the doctor's own windows count; none at all means always outside."""
        other_doctor_window = SimpleNamespace(doctor_id=2, day_of_week=1, start_minute=540, end_minute=780)
        warning = compute_scheduling_warning(
            local(2026, 10, 19, 10), local(2026, 10, 19, 11), 1, [other_doctor_window], []
        )
        assert warning == (
            "L'appuntamento è fuori dalla disponibilità del medico (Lunedì). Vuoi procedere comunque?"
        )

    def test_no_doctor_no_warning(self):
        """Without a doctor nothing is checked, not even closures."""
        closure = SimpleNamespace(starts_at=local(2026, 10, 19), ends_at=local(2026, 10, 20), title="Ferie")
        mondays = SimpleNamespace(day_of_week=1, title=None, is_active=True)
        warning = compute_scheduling_warning(
            local(2026, 10, 19, 10), local(2026, 10, 19, 11), None, [MONDAY_MORNING], [closure], [mondays]
        )
        assert warning is None

    def test_overlapping_closure(self):
        closure = SimpleNamespace(starts_at=local(2026, 10, 19), ends_at=local(2026, 10, 20), title="Ferie")
        warning = compute_scheduling_warning(
            local(2026, 10, 19, 10), local(2026, 10, 19, 11), 1, [MONDAY_MORNING], [closure]
        )
        assert warning == "Lo studio risulta chiuso in questo periodo (Ferie). Vuoi procedere comunque?"

    def test_closure_touching_appointment(self):
        """A closure ending exactly when the appointment starts does not warn."""
        closure = SimpleNamespace(starts_at=local(2026, 10, 19, 8), ends_at=local(2026, 10, 19, 10), title=None)
        warning = compute_scheduling_warning(
            local(2026, 10, 19, 10), local(2026, 10, 19, 11), 1, [MONDAY_MORNING], [closure]
        )
        assert warning is None

    def test_naive_closure_times_are_practice_local(self):
        """Closures loaded from SQLite come back naive and are read as local time."""
        closure = SimpleNamespace(
            starts_at=datetime(2026, 10, 19, 9), ends_at=datetime(2026, 10, 19, 12), title="Manutenzione"
        )
        warning = compute_scheduling_warning(
            "2026-10-19T10:00:00", "2026-10-19T10:30:00", 1, [MONDAY_MORNING], [closure]
        )
        assert warning == "Lo studio risulta chiuso in questo periodo (Manutenzione). Vuoi procedere comunque?"

    def test_weekly_closure(self):
        saturday = SimpleNamespace(day_of_week=6, title=None, is_active=True)
        warning = compute_scheduling_warning(
            local(2026, 10, 24, 10), local(2026, 10, 24, 11), 1, [SATURDAY_MORNING], [], [saturday]
        )
        assert warning == "Lo studio risulta chiuso ogni sabato. Vuoi procedere comunque?"

    def test_inactive_weekly_closure_is_ignored(self):
        saturday = SimpleNamespace(day_of_week=6, title="Chiuso", is_active=False)
        warning = compute_scheduling_warning(
            local(2026, 10, 24, 10), local(2026, 10, 24, 11), 1, [SATURDAY_MORNING], [], [saturday]
        )
        assert warning is None

    def test_multiple_reasons_are_joined(self):
        closure = SimpleNamespace(starts_at=local(2026, 10, 19), ends_at=local(2026, 10, 20), title="Ferie")
        warning = compute_scheduling_warning(
            local(2026, 10, 19, 18), local(2026, 10, 19, 19), 1, [MONDAY_MORNING], [closure]
        )
        assert warning.startswith("L'appuntamento è fuori dalla disponibilità del medico")
        assert warning.count("Vuoi procedere comunque?") == 2

    def test_invalid_input(self):
        """Missing, unparsable or reversed ranges produce no warning."""
        assert compute_scheduling_warning(None, local(2026, 10, 19, 10), 1, [MONDAY_MORNING], []) is None
        assert compute_scheduling_warning("domani", "dopodomani", 1, [MONDAY_MORNING], []) is None
        assert compute_scheduling_warning(
            local(2026, 10, 19, 11), local(2026, 10, 19, 10), 1, [MONDAY_MORNING], []
        ) is None
