"""
Unit tests for the CSV tokenizer.

Run: pytest tests/unit/test_csv_parser.py -v
"""

import pytest

from parsers.csv_parser import tokenize_csv, detect_delimiter, split_line
from exceptions import EmptyInputError


class TestTokenizeCsv:
    """Tests for tokenize_csv()"""

    def test_splits_rows_and_cells(self):
        """Should split lines into rows and commas into cells."""
        result = tokenize_csv("a,b,c\n1,2,3")

        assert result == [["a", "b", "c"], ["1", "2", "3"]]

    def test_quoted_comma_is_one_cell(self):
        """Should keep a comma inside quotes as part of the cell."""
        result = tokenize_csv('Title,Amount\n"Smith, John",50')

        assert result[1] == ["Smith, John", "50"]

    def test_doubled_quote_is_literal_quote(self):
        """Should turn "" inside a quoted span into one quote."""
        result = tokenize_csv('"He said ""hi""",1')

        assert result == [['He said "hi"', "1"]]

    def test_discards_blank_lines(self):
        """Should drop empty and whitespace-only lines."""
        result = tokenize_csv("a,b\n\n   \r\nc,d\n")

        assert result == [["a", "b"], ["c", "d"]]

    def test_handles_all_line_break_styles(self):
        """Should split on \\r\\n, \\n and \\r."""
        result = tokenize_csv("a\r\nb\nc\rd")

        assert result == [["a"], ["b"], ["c"], ["d"]]

    def test_trims_cells(self):
        """Should trim whitespace around each cell."""
        result = tokenize_csv("  a ,  b  ,c  ")

        assert result == [["a", "b", "c"]]

    def test_keeps_empty_cells(self):
        """Should keep empty cells between and after delimiters."""
        result = tokenize_csv("a,,b,")

        assert result == [["a", "", "b", ""]]

    def test_custom_delimiter(self):
        """Should split on the given delimiter and keep commas."""
        result = tokenize_csv('Title;Amount\n"Rent; May";1,200.00', delimiter=";")

        assert result == [["Title", "Amount"], ["Rent; May", "1,200.00"]]

    def test_empty_text_raises(self):
        """Should raise EmptyInputError for empty text."""
        with pytest.raises(EmptyInputError) as exc_info:
            tokenize_csv("")

        assert exc_info.value.code == "CSV_EMPTY"
        assert exc_info.value.message == "CSV is empty"

    def test_whitespace_only_raises(self):
        """Should raise EmptyInputError when only blank lines remain."""
        with pytest.raises(EmptyInputError):
            tokenize_csv("\n  \r\n\t\n")

    def test_quoted_cell_round_trip(self):
        """Should recover a cell with comma and quotes exactly."""
        original = 'Dinner, "Luigi\'s"'
        encoded = '"' + original.replace('"', '""') + '"'

        result = tokenize_csv(f"{encoded},10")

        assert result == [[original, "10"]]


class TestSplitLine:
    """Tests for split_line()"""

    def test_quote_toggle_mid_cell(self):
        """Should allow a quoted span in the middle of a cell."""
        result = split_line('ab"c,d"e,f')

        assert result == ["abc,de", "f"]

    def test_single_cell(self):
        """Should return one cell when there is no delimiter."""
        assert split_line("alone") == ["alone"]


class TestDetectDelimiter:
    """Tests for detect_delimiter()"""

    def test_comma_by_default(self):
        """Should return comma for plain CSV."""
        assert detect_delimiter("a,b,c\n1,2,3") == ","

    def test_semicolon_when_no_comma(self):
        """Should return semicolon when the first line has only semicolons."""
        assert detect_delimiter("a;b;c\n1;2;3") == ";"

    def test_comma_wins_when_both_present(self):
        """Should prefer comma when the first line has both."""
        assert detect_delimiter("a;b,c") == ","

    def test_skips_leading_blank_lines(self):
        """Should look at the first non-blank line."""
        assert detect_delimiter("\n\n a;b \n") == ";"

    def test_empty_text(self):
        """Should fall back to comma for empty text."""
        assert detect_delimiter("") == ","
