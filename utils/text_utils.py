"""
Text utilities for matching free-text names from CSV files.

Used for account, category and goal name comparison.
"""

import re
from typing import Optional

_WHITESPACE_RUN = re.compile(r"\s+")


def normalize_name(name: Optional[str]) -> str:
    """
    Normalize an account/category/goal name for comparison.

    Whitespace runs become a single underscore. Single-word names are
    upper-cased; multi-word names keep the case they were typed in:
    - "savings" → "SAVINGS"
    - "  My   Checking " → "My_Checking"
    - "ACC-001" → "ACC-001"

    Matching is exact equality on the normalized form of both sides.

    Args:
        name: Raw name (may be None or blank)

    Returns:
        Normalized name, or "" if input is empty
    """
    if not name:
        return ""

    name = name.strip()

    if not name:
        return ""

    normalized = _WHITESPACE_RUN.sub("_", name)

    if "_" not in normalized:
        normalized = normalized.upper()

    return normalized


def is_blank(value: Optional[str]) -> bool:
    """True for None, empty or whitespace-only strings."""
    return value is None or value.strip() == ""


def clean_text(value: Optional[str], max_length: int = 255) -> Optional[str]:
    """
    Clean free text (title, notes) for storage.

    - Strips whitespace
    - Truncates to max length
    - Returns None for empty/whitespace-only strings

    Args:
        value: Raw text from the CSV cell
        max_length: Maximum characters to store

    Returns:
        Cleaned text or None
    """
    if not value:
        return None

    value = value.strip()

    if not value:
        return None

    if len(value) > max_length:
        value = value[:max_length]

    return value
