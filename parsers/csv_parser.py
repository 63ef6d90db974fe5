"""
CSV tokenizer for bulk transaction imports.

Line-based: a quoted cell cannot span lines. Inside a quoted span the
delimiter is literal and a doubled quote ("") is a literal quote. Lines
and cells are trimmed; blank lines are dropped.
"""

import re

import structlog

from exceptions import EmptyInputError

logger = structlog.get_logger(__name__)

_LINE_BREAK = re.compile(r"\r\n|\n|\r")

DEFAULT_DELIMITER = ","
SEMICOLON_DELIMITER = ";"


def detect_delimiter(text: str) -> str:
    """
    Guess the delimiter from the first non-blank line.

    Semicolon only when that line has a semicolon and no comma;
    comma otherwise.
    """
    for line in _LINE_BREAK.split(text or ""):
        line = line.strip()
        if not line:
            continue
        if SEMICOLON_DELIMITER in line and DEFAULT_DELIMITER not in line:
            return SEMICOLON_DELIMITER
        return DEFAULT_DELIMITER
    return DEFAULT_DELIMITER


def split_line(line: str, delimiter: str = DEFAULT_DELIMITER) -> list[str]:
    """Split one line into trimmed cells, honouring double quotes."""
    cells: list[str] = []
    current: list[str] = []
    in_quotes = False
    i = 0
    length = len(line)

    while i < length:
        char = line[i]
        if char == '"':
            if in_quotes and i + 1 < length and line[i + 1] == '"':
                current.append('"')
                i += 2
                continue
            in_quotes = not in_quotes
        elif char == delimiter and not in_quotes:
            cells.append("".join(current).strip())
            current = []
        else:
            current.append(char)
        i += 1

    cells.append("".join(current).strip())
    return cells


def tokenize_csv(text: str, delimiter: str = DEFAULT_DELIMITER) -> list[list[str]]:
    """
    Split CSV text into rows of cells.

    Args:
        text: Raw CSV text
        delimiter: Single-character cell separator

    Returns:
        Non-empty list of rows; every row has at least one cell

    Raises:
        EmptyInputError: If no non-blank line remains
    """
    rows = [
        split_line(line.strip(), delimiter)
        for line in _LINE_BREAK.split(text or "")
        if line.strip()
    ]

    if not rows:
        raise EmptyInputError()

    logger.debug(
        "csv_tokenized",
        rows=len(rows),
        delimiter=delimiter,
    )
    return rows
