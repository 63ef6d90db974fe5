"""
Unit tests for date parsing.

Run: pytest tests/unit/test_date_utils.py -v
"""

from datetime import date

import pytest

from utils.date_utils import parse_import_date, format_date_for_db


class TestParseImportDate:
    """Tests for parse_import_date()"""

    @pytest.mark.parametrize("value", ["2025-02-03", "2025-2-3"])
    def test_iso_format(self, value):
        """Should parse YYYY-MM-DD with one or two digit month/day."""
        assert parse_import_date(value) == date(2025, 2, 3)

    def test_us_format(self):
        """Should parse MM-DD-YYYY."""
        assert parse_import_date("02-03-2025") == date(2025, 2, 3)

    def test_eight_digits_day_first(self):
        """Should read 03042025 as 3 April 2025."""
        assert parse_import_date("03042025") == date(2025, 4, 3)

    def test_eight_digits_year_first_fallback(self):
        """Should fall back to YYYYMMDD when DDMMYYYY is impossible."""
        assert parse_import_date("20250203") == date(2025, 2, 3)

    def test_trims_whitespace(self):
        """Should ignore surrounding whitespace."""
        assert parse_import_date("  2025-02-03 ") == date(2025, 2, 3)

    @pytest.mark.parametrize("value", [
        "",
        None,
        "not a date",
        "2025/02/03",
        "2025-02-30",
        "13-01-2025",
        "99999999",
    ])
    def test_rejects_invalid(self, value):
        """Should return None for unsupported or impossible dates."""
        assert parse_import_date(value) is None


class TestFormatDateForDb:
    """Tests for format_date_for_db()"""

    def test_formats_parsed_date(self):
        """Should return YYYY-MM-DD."""
        assert format_date_for_db("03042025") == "2025-04-03"

    def test_pads_month_and_day(self):
        """Should zero-pad single digit month and day."""
        assert format_date_for_db("2-3-2025") == "2025-02-03"

    def test_invalid_returns_none(self):
        """Should return None when the date cannot be parsed."""
        assert format_date_for_db("31/12/2025") is None
