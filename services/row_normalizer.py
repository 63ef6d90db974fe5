"""
Field normalization for parsed import rows.

Rewrites user-typed values into canonical form before validation:
types and frequencies lower-cased, names replaced by the stored
spelling, dates as YYYY-MM-DD and amounts with two decimals. Values
that cannot be normalized are left as typed so the validator can
report them. Original cell text stays in raw_data.
"""

import copy
import re
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Optional

from models.bulk_import import ImportRow, TransactionType, Frequency
from models.reference import ReferenceSnapshot
from utils.date_utils import format_date_for_db

CENTS = Decimal("0.01")

# "1,234" or "1,234,567.89"
_GROUPED_THOUSANDS = re.compile(r"^[+-]?\d{1,3}(,\d{3})+(\.\d+)?$")
# "45,50", "1.234,56" or "1234"
_DECIMAL_COMMA = re.compile(r"^[+-]?(\d{1,3}(\.\d{3})+|\d+)(,\d+)?$")

TYPE_ALIASES = {
    "transfer-sender": TransactionType.TRANSFER.value,
    "transfer-receiver": TransactionType.TRANSFER.value,
    "transfer_sender": TransactionType.TRANSFER.value,
    "transfer_receiver": TransactionType.TRANSFER.value,
    "bank transfer": TransactionType.TRANSFER.value,
    "money transfer": TransactionType.TRANSFER.value,
}


def parse_amount(value: Optional[str], decimal_comma: bool = False) -> Optional[Decimal]:
    """
    Parse a money cell into a finite Decimal.

    A "$" sign is ignored. By default "," is only accepted as a
    thousands separator in well-formed groups ("1,234.56"); any other
    comma makes the cell unparseable. With decimal_comma the comma is
    the decimal point and "." may group thousands ("1.234,56").

    Returns None for blank, non-numeric, NaN or infinite input.
    """
    if not value:
        return None

    text = value.strip().replace("$", "")
    if not text:
        return None

    if "," in text:
        if decimal_comma:
            if not _DECIMAL_COMMA.match(text):
                return None
            text = text.replace(".", "").replace(",", ".")
        else:
            if not _GROUPED_THOUSANDS.match(text):
                return None
            text = text.replace(",", "")

    try:
        amount = Decimal(text)
    except InvalidOperation:
        return None

    if not amount.is_finite():
        return None
    return amount


def format_amount(value: Optional[str], decimal_comma: bool = False) -> Optional[str]:
    """Amount with exactly two decimals (half-up), or None if unparseable."""
    amount = parse_amount(value, decimal_comma)
    if amount is None:
        return None
    try:
        return str(amount.quantize(CENTS, rounding=ROUND_HALF_UP))
    except InvalidOperation:
        # Too many digits to represent in cents
        return None


def normalize_type(value: Optional[str]) -> str:
    text = (value or "").strip().lower()
    return TYPE_ALIASES.get(text, text)


def normalize_frequency(value: Optional[str]) -> str:
    text = (value or "").strip().lower()
    return text or Frequency.NONE.value


def normalize_row(
    row: ImportRow,
    snapshot: ReferenceSnapshot,
    decimal_comma: bool = False,
) -> ImportRow:
    """
    Return a normalized copy of the row.

    The input row is not modified. Errors and warnings are carried over
    untouched; re-validate after normalizing.

    Args:
        row: Row as mapped from the CSV (or as edited by the user)
        snapshot: Accounts, categories and goals to match names against
        decimal_comma: Amounts use "," as the decimal point (semicolon CSVs)

    Returns:
        New ImportRow with canonical values where they could be resolved
    """
    result = copy.deepcopy(row)

    result.type = normalize_type(row.type)
    result.frequency = normalize_frequency(row.frequency)
    result.title = row.title.strip()
    result.notes = row.notes.strip()

    for attr in ("account", "from_account", "to_account"):
        typed = getattr(row, attr).strip()
        account = snapshot.find_account(typed)
        setattr(result, attr, account.name if account else typed)

    category_text = row.category.strip()
    category = snapshot.find_category(category_text, result.type)
    result.category = category.name if category else category_text

    goal_text = row.goal.strip()
    goal = snapshot.find_goal(goal_text)
    result.goal = goal.name if goal else goal_text

    date_text = row.transaction_date.strip()
    result.transaction_date = format_date_for_db(date_text) or date_text

    amount_text = row.amount.strip()
    result.amount = format_amount(amount_text, decimal_comma) or amount_text

    goal_amount_text = row.goal_amount.strip()
    result.goal_amount = format_amount(goal_amount_text, decimal_comma) or goal_amount_text

    return result
