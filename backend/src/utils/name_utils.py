"""
Person name normalization.

Names typed in forms or imported from spreadsheets arrive in any casing
("ROSSI", "de luca", "d'angelo"). They are stored title-cased, keeping
Italian and Dutch/German particles lowercase unless they open the name.
"""

import re
from typing import Optional

LOWERCASE_PARTICLES = {
    "da", "de", "dei", "degli", "della", "delle", "del", "di",
    "e", "il", "la", "le", "lo", "gli", "van", "von",
}


def _capitalize(segment: str) -> str:
    if not segment:
        return segment
    return segment[0].upper() + segment[1:]


def _capitalize_word(word: str) -> str:
    # "d'angelo" -> "D'Angelo", "rossi-bianchi" -> "Rossi-Bianchi"
    parts = re.split(r"([-'’])", word)
    return "".join(part if part in ("-", "'", "’") else _capitalize(part) for part in parts)


def normalize_person_name(value: Optional[str]) -> str:
    """
    Title-case a person name.

    Args:
        value: Raw name as typed

    Returns:
        Normalized name with collapsed whitespace ("" for empty input)
    """
    if not value:
        return ""

    words = value.strip().lower().split()
    normalized = []
    for index, word in enumerate(words):
        if index > 0 and word in LOWERCASE_PARTICLES:
            normalized.append(word)
        else:
            normalized.append(_capitalize_word(word))
    return " ".join(normalized)
