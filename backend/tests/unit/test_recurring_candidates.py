"""
Unit tests for recurring message candidates and the Italian holiday calendar.
"""

from datetime import date, datetime
from types import SimpleNamespace

import pytest

from services.recurring_message_service import (
    DEFAULT_CLOSURE_TITLE, RecurringConfig, build_candidates, normalize_birthday,
)
from utils.datetime_utils import PRACTICE_TZ
from utils.holidays import easter_sunday, get_italian_holidays


def local(year, month, day, hour=0, minute=0):
    return datetime(year, month, day, hour, minute, tzinfo=PRACTICE_TZ)


def config(kind, enabled=True, days_before=None):
    return RecurringConfig(kind=kind, enabled=enabled, subject=f"{kind} subject", body=f"{kind} body", days_before=days_before)


def patient(patient_id, email="paziente@example.com", birth_date=None):
    return SimpleNamespace(id=patient_id, email=email, first_name="Mario", last_name="Rossi", birth_date=birth_date)


class TestHolidays:
    @pytest.mark.parametrize("year, expected", [
        (2024, date(2024, 3, 31)),
        (2025, date(2025, 4, 20)),
        (2026, date(2026, 4, 5)),
    ])
    def test_easter_sunday(self, year, expected):
        assert easter_sunday(year) == expected

    def test_holiday_calendar(self):
        holidays = get_italian_holidays(2025)

        assert len(holidays) == 12
        assert [h.day for h in holidays] == sorted(h.day for h in holidays)
        by_key = {h.key: h.day for h in holidays}
        assert by_key["pasquetta"] == date(2025, 4, 21)
        assert by_key["ferragosto"] == date(2025, 8, 15)


class TestNormalizeBirthday:
    def test_leap_day_in_non_leap_year(self):
        assert normalize_birthday(date(2000, 2, 29), 2027) == date(2027, 2, 28)

    def test_leap_day_in_leap_year(self):
        assert normalize_birthday(date(2000, 2, 29), 2028) == date(2028, 2, 29)

    def test_regular_day(self):
        assert normalize_birthday(date(1980, 3, 15), 2026) == date(2026, 3, 15)


class TestBuildCandidates:
    """Test which recurring messages are due at a given time."""

    def test_holiday_greeting_on_the_day(self):
        patients = [patient(1), patient(2, email=None)]
        candidates = build_candidates(local(2026, 12, 25, 10), {"HOLIDAY": config("HOLIDAY")}, patients)

        assert len(candidates) == 1
        candidate = candidates[0]
        assert candidate.kind == "HOLIDAY"
        assert candidate.patient_id == 1
        assert candidate.dedupe_key == "holiday:natale:2026:1"
        assert candidate.template_vars["holidayName"] == "Natale"
        assert candidate.template_vars["holidayDate"] == "25 dicembre 2026"

    def test_holiday_before_send_hour(self):
        candidates = build_candidates(local(2026, 12, 25, 8), {"HOLIDAY": config("HOLIDAY")}, [patient(1)])
        assert candidates == []

    def test_disabled_kind(self):
        candidates = build_candidates(
            local(2026, 12, 25, 10), {"HOLIDAY": config("HOLIDAY", enabled=False)}, [patient(1)]
        )
        assert candidates == []

    def test_birthday(self):
        patients = [patient(1, birth_date=date(1980, 3, 15)), patient(2, birth_date=date(1980, 3, 16))]
        candidates = build_candidates(local(2026, 3, 15, 9, 30), {"BIRTHDAY": config("BIRTHDAY")}, patients)

        assert [c.dedupe_key for c in candidates] == ["birthday:2026:1"]
        assert candidates[0].event_date == date(2026, 3, 15)

    def test_closure_notice_window(self):
        """A closure notice is due from days_before at 09:00 until the closure starts."""
        closure = SimpleNamespace(id=5, title="  ", starts_at=local(2026, 8, 10), ends_at=local(2026, 8, 21))
        configs = {"CLOSURE": config("CLOSURE", days_before=7)}

        too_early = build_candidates(local(2026, 8, 2, 12), configs, [patient(1)], [closure])
        due = build_candidates(local(2026, 8, 3, 9), configs, [patient(1)], [closure])
        started = build_candidates(local(2026, 8, 10, 10), configs, [patient(1)], [closure])

        assert too_early == []
        assert started == []
        assert len(due) == 1
        assert due[0].dedupe_key == "closure:5:1"
        assert due[0].template_vars["closureTitle"] == DEFAULT_CLOSURE_TITLE
        assert due[0].template_vars["closureEnd"] == "21 agosto 2026"

    def test_order_is_holiday_closure_birthday(self):
        closure = SimpleNamespace(id=1, title="Ferie", starts_at=local(2026, 12, 28), ends_at=local(2027, 1, 2))
        configs = {
            "HOLIDAY": config("HOLIDAY"),
            "CLOSURE": config("CLOSURE", days_before=7),
            "BIRTHDAY": config("BIRTHDAY"),
        }
        patients = [patient(1, birth_date=date(1990, 12, 25))]

        candidates = build_candidates(local(2026, 12, 25, 10), configs, patients, [closure])

        assert [c.kind for c in candidates] == ["HOLIDAY", "CLOSURE", "BIRTHDAY"]
