"""
Multi-format date parsing for CSV imports.

Formats are tried in a fixed order and the first one that yields a real
calendar date wins:

    1. YYYY-MM-DD   (month/day may be 1 or 2 digits)
    2. MM-DD-YYYY   (month/day may be 1 or 2 digits)
    3. DDMMYYYY     (8 digits, day first)
    4. YYYYMMDD     (8 digits, year first)

An 8-digit string is always tried as DDMMYYYY before YYYYMMDD, so
"03042025" is 3 April 2025 while "20250203" only succeeds as YYYYMMDD
(month 25 is impossible). Some strings are valid both ways, e.g.
"10112020"; those resolve as DDMMYYYY.
"""

import re
from datetime import date
from typing import Optional

# (pattern, group index of year, month, day)
_DATE_FORMATS: list[tuple[re.Pattern, tuple[int, int, int]]] = [
    (re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})$"), (1, 2, 3)),
    (re.compile(r"^(\d{1,2})-(\d{1,2})-(\d{4})$"), (3, 1, 2)),
    (re.compile(r"^(\d{2})(\d{2})(\d{4})$"), (3, 2, 1)),
    (re.compile(r"^(\d{4})(\d{2})(\d{2})$"), (1, 2, 3)),
]


def parse_import_date(value: Optional[str]) -> Optional[date]:
    """
    Parse a CSV date cell.

    Args:
        value: Raw cell text

    Returns:
        The calendar date, or None if no supported format matches
    """
    if not value:
        return None

    text = value.strip()
    if not text:
        return None

    for pattern, (year_idx, month_idx, day_idx) in _DATE_FORMATS:
        match = pattern.match(text)
        if not match:
            continue
        try:
            return date(
                int(match.group(year_idx)),
                int(match.group(month_idx)),
                int(match.group(day_idx)),
            )
        except ValueError:
            # Impossible calendar date for this format; try the next one
            continue

    return None


def format_date_for_db(value: Optional[str]) -> Optional[str]:
    """Parse a CSV date cell and return it as YYYY-MM-DD, or None."""
    parsed = parse_import_date(value)
    if parsed is None:
        return None
    return parsed.isoformat()
