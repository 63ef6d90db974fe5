"""
Header detection and column-to-field mapping.

Maps free-form CSV headers ("Posted", "From Account", "Memo") to the
fixed ImportField set by keyword substring match.
"""

from typing import Optional

from models.bulk_import import ImportField, ColumnMapping

# Words that mark a row as a header row
HEADER_KEYWORDS = [
    "type", "title", "amount", "date", "account", "category",
    "frequency", "notes", "from", "to", "description",
]

# Checked in order; the first field with a matching keyword wins.
# Multi-word keywords sit above the generic field they contain.
FIELD_KEYWORDS: list[tuple[ImportField, list[str]]] = [
    (ImportField.TYPE, ["type"]),
    (ImportField.TITLE, ["title", "description", "name", "subject"]),
    (ImportField.GOAL_AMOUNT, ["goal amount", "goal_amount", "contribution"]),
    (ImportField.AMOUNT, ["amount", "value", "sum", "total"]),
    (ImportField.TRANSACTION_DATE, ["date", "posted"]),
    (ImportField.FROM_ACCOUNT, ["from account", "from_account", "source account"]),
    (ImportField.TO_ACCOUNT, ["to account", "to_account", "target account", "destination"]),
    (ImportField.ACCOUNT, ["account"]),
    (ImportField.CATEGORY, ["category", "cat"]),
    (ImportField.FREQUENCY, ["frequency", "recurring", "freq"]),
    (ImportField.NOTES, ["notes", "memo", "comments"]),
    (ImportField.GOAL, ["goal"]),
]

# Fields without which no row can validate
REQUIRED_FIELDS = [
    ImportField.TYPE,
    ImportField.AMOUNT,
    ImportField.TRANSACTION_DATE,
]

SAMPLE_CSV_HEADER = [
    "Type", "Title", "Amount", "Transaction Date", "Account",
    "Category", "From Account", "To Account", "Frequency", "Notes",
]

SAMPLE_CSV_ROWS = [
    ["EXPENSE", "Groceries", "150.50", "2024-01-15", "My Checking", "Groceries", "", "", "none", "Weekly shopping"],
    ["EXPENSE", "Gas", "75.00", "2024-01-16", "Credit Card", "Transport", "", "", "none", ""],
    ["INCOME", "Salary", "5000.00", "2024-01-01", "My Checking", "Salary", "", "", "monthly", "Monthly salary"],
    ["TRANSFER", "Monthly Savings", "1000.00", "2024-01-20", "", "", "My Checking", "Savings Account", "", "Monthly savings"],
]


def detect_headers(rows: list[list[str]]) -> bool:
    """
    True when the first row looks like a header row.

    At least half of its cells must contain a header keyword
    (case-insensitive substring). Exactly half counts.
    """
    if not rows or not rows[0]:
        return False

    first_row = rows[0]
    matches = sum(
        1 for cell in first_row
        if any(keyword in cell.lower() for keyword in HEADER_KEYWORDS)
    )
    return 2 * matches >= len(first_row)


def match_field(header: str) -> Optional[ImportField]:
    """First field whose keywords appear in the header, or None."""
    text = (header or "").strip().lower()
    if not text:
        return None
    for import_field, keywords in FIELD_KEYWORDS:
        if any(keyword in text for keyword in keywords):
            return import_field
    return None


def auto_detect_mapping(headers: list[str]) -> ColumnMapping:
    """
    Map header cells to import fields.

    Args:
        headers: First CSV row

    Returns:
        Column index -> field for every header that matched
    """
    mapping: ColumnMapping = {}
    for index, header in enumerate(headers):
        import_field = match_field(header)
        if import_field is not None:
            mapping[index] = import_field
    return mapping


def missing_required_fields(mapping: ColumnMapping) -> list[ImportField]:
    """Required fields not mapped to any column."""
    mapped = set(mapping.values())
    return [f for f in REQUIRED_FIELDS if f not in mapped]


def generate_sample_csv() -> str:
    """Downloadable CSV template with one example of each type."""
    lines = [",".join(SAMPLE_CSV_HEADER)]
    lines.extend(",".join(row) for row in SAMPLE_CSV_ROWS)
    return "\n".join(lines)
