"""
Utility modules for the dental practice backend.

This package contains shared helpers used across the application, including
datetime handling, phone and name normalization, holiday calendars and
template rendering.
"""

from utils.datetime_utils import practice_now, ensure_local
from utils.template_utils import replace_placeholders

__all__ = ['practice_now', 'ensure_local', 'replace_placeholders']
