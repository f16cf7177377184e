"""
Date shape detection and parsing for statement cells.

Ambiguous day/month values (both <= 12) are read as DD/MM/YYYY. This is a
fixed policy: imports made before and after any change must agree on it.
"""

import re
from datetime import date
from typing import Optional

DATE_PATTERNS = [
    # DD/MM/YYYY, DD-MM-YY, DD.MM.YYYY
    re.compile(r"^\d{1,2}[/\-.]\d{1,2}[/\-.]\d{2,4}$"),
    # YYYY-MM-DD, YYYY/MM/DD
    re.compile(r"^\d{4}[/\-.]\d{1,2}[/\-.]\d{1,2}$"),
    # MM/DD/YYYY
    re.compile(r"^\d{1,2}[/\-.]\d{1,2}[/\-.]\d{4}$"),
]

_ISO_DATE = re.compile(r"^(\d{4})[/\-.](\d{1,2})[/\-.](\d{1,2})$")
_NUMERIC_DATE = re.compile(r"^(\d{1,2})[/\-.](\d{1,2})[/\-.](\d{2,4})$")


def looks_like_date(value: str) -> bool:
    """True if the value has the shape of a statement date."""
    value = (value or "").strip()
    return any(pattern.match(value) for pattern in DATE_PATTERNS)


def _safe_date(year: int, month: int, day: int) -> Optional[date]:
    try:
        return date(year, month, day)
    except ValueError:
        return None


def parse_date(value: str) -> Optional[date]:
    """
    Parse a statement date cell.

    Handles YYYY-MM-DD, DD/MM/YYYY and MM/DD/YYYY (with ``-``, ``/`` or ``.``
    separators). A first part above 12 must be the day, a second part above
    12 must be the day; otherwise DD/MM/YYYY is assumed. Two-digit years
    are taken as 20YY.

    Returns:
        The calendar date, or None if the value is not a recognizable date.
    """
    value = (value or "").strip()

    match = _ISO_DATE.match(value)
    if match:
        year, month, day = (int(g) for g in match.groups())
        return _safe_date(year, month, day)

    match = _NUMERIC_DATE.match(value)
    if match:
        first, second, year = (int(g) for g in match.groups())
        if year < 100:
            year += 2000

        if first > 12:
            return _safe_date(year, second, first)
        if second > 12:
            return _safe_date(year, first, second)
        return _safe_date(year, second, first)

    return None
