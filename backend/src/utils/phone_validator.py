"""
Phone number normalization utilities.

Phone numbers are stored in E.164-like form with an Italian default prefix,
so SMS delivery can use them without further processing.
"""

import re
from typing import Optional


def clean_phone_number(phone: str) -> str:
    """
    Clean phone number by removing common separators.

    Args:
        phone: Phone number string (may contain spaces, dashes, parentheses)

    Returns:
        Phone number without separators (a leading "+" is preserved)
    """
    return re.sub(r'[\s()\-]', '', phone)


def normalize_italian_phone(phone: Optional[str]) -> Optional[str]:
    """
    Normalize a phone number to international format, defaulting to Italy.

    - "+..." is kept as is
    - "00..." becomes "+..."
    - "39..." becomes "+39..."
    - anything else gets the "+39" prefix

    Args:
        phone: Optional raw phone number

    Returns:
        Normalized phone number, or None if phone is None/empty
    """
    if phone is None:
        return None

    cleaned = clean_phone_number(phone.strip())
    if not cleaned:
        return None

    if cleaned.startswith('+'):
        return cleaned
    if cleaned.startswith('00'):
        return f"+{cleaned[2:]}"
    if cleaned.startswith('39'):
        return f"+{cleaned}"
    return f"+39{cleaned}"
