"""
Italian public holidays used by the recurring holiday greetings.
"""

from dataclasses import dataclass
from datetime import date, timedelta
from typing import List


@dataclass(frozen=True)
class Holiday:
    key: str
    name: str
    day: date


def easter_sunday(year: int) -> date:
    """Compute Easter Sunday with the anonymous Gregorian algorithm."""
    a = year % 19
    b = year // 100
    c = year % 100
    d = b // 4
    e = b % 4
    f = (b + 8) // 25
    g = (b - f + 1) // 3
    h = (19 * a + b - d - g + 15) % 30
    i = c // 4
    k = c % 4
    l = (32 + 2 * e + 2 * i - h - k) % 7
    m = (a + 11 * h + 22 * l) // 451
    month = (h + l - 7 * m + 114) // 31
    day = ((h + l - 7 * m + 114) % 31) + 1
    return date(year, month, day)


def get_italian_holidays(year: int) -> List[Holiday]:
    """Return the holidays of a given year, in calendar order."""
    easter = easter_sunday(year)
    holidays = [
        Holiday("capodanno", "Capodanno", date(year, 1, 1)),
        Holiday("epifania", "Epifania", date(year, 1, 6)),
        Holiday("pasqua", "Pasqua", easter),
        Holiday("pasquetta", "Pasquetta", easter + timedelta(days=1)),
        Holiday("liberazione", "Festa della Liberazione", date(year, 4, 25)),
        Holiday("lavoro", "Festa del Lavoro", date(year, 5, 1)),
        Holiday("repubblica", "Festa della Repubblica", date(year, 6, 2)),
        Holiday("ferragosto", "Ferragosto", date(year, 8, 15)),
        Holiday("ognissanti", "Ognissanti", date(year, 11, 1)),
        Holiday("immacolata", "Immacolata Concezione", date(year, 12, 8)),
        Holiday("natale", "Natale", date(year, 12, 25)),
        Holiday("santo-stefano", "Santo Stefano", date(year, 12, 26)),
    ]
    return sorted(holidays, key=lambda h: h.day)
