"""
Unit tests for name normalization.

Run: pytest tests/unit/test_text_utils.py -v
"""

from utils.text_utils import normalize_name, is_blank, clean_text


class TestNormalizeName:
    """Tests for normalize_name()"""

    def test_single_word_upper_cased(self):
        """Should upper-case names without whitespace."""
        assert normalize_name("savings") == "SAVINGS"

    def test_whitespace_becomes_underscore(self):
        """Should collapse whitespace runs into one underscore and keep case."""
        assert normalize_name("  My   Checking ") == "My_Checking"

    def test_multi_word_keeps_case(self):
        """Should not upper-case names that contain an underscore."""
        assert normalize_name("my checking") == "my_checking"
        assert normalize_name("my_checking") == "my_checking"

    def test_identifier_unchanged(self):
        """Should leave upper-case identifiers as they are."""
        assert normalize_name("ACC-001") == "ACC-001"

    def test_blank(self):
        """Should return empty string for None or blank."""
        assert normalize_name(None) == ""
        assert normalize_name("   ") == ""

    def test_idempotent(self):
        """Should give the same result when applied twice."""
        for value in ["savings", "My  Checking", "ACC-001", "a b c"]:
            once = normalize_name(value)
            assert normalize_name(once) == once


class TestIsBlank:
    """Tests for is_blank()"""

    def test_blank_values(self):
        assert is_blank(None)
        assert is_blank("")
        assert is_blank("  \t")

    def test_non_blank(self):
        assert not is_blank(" x ")


class TestCleanText:
    """Tests for clean_text()"""

    def test_strips_and_truncates(self):
        """Should strip and cut to max length."""
        assert clean_text("  hello world  ", max_length=5) == "hello"

    def test_empty_returns_none(self):
        """Should return None for whitespace."""
        assert clean_text("   ") is None
