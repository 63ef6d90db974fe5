"""
Row validation for bulk imports.

Rules never short-circuit: every failed rule adds one FieldError so the
user sees all problems in a row at once. Nothing here raises for bad
data; errors are returned and stored on the row.
"""

from datetime import date
from typing import Optional

from models.bulk_import import (
    ImportRow,
    FieldError,
    ImportField,
    TransactionType,
    VALID_TYPES,
    VALID_FREQUENCIES,
    TRANSFER_ACCOUNTS_FIELD,
)
from models.reference import ReferenceSnapshot
from services.row_normalizer import parse_amount, normalize_type
from utils.date_utils import parse_import_date
from utils.text_utils import is_blank, normalize_name


def _available(names: list[str]) -> str:
    return ", ".join(names) or "None"


def _validate_type(row: ImportRow, errors: list[FieldError]) -> Optional[str]:
    if is_blank(row.type):
        errors.append(FieldError(ImportField.TYPE.value, "Type is required"))
        return None

    type_norm = normalize_type(row.type)
    if type_norm not in VALID_TYPES:
        errors.append(FieldError(
            ImportField.TYPE.value,
            f"Invalid type. Must be INCOME, EXPENSE, or TRANSFER. Got: {row.type}",
        ))
        return None
    return type_norm


def _validate_amount(row: ImportRow, errors: list[FieldError], decimal_comma: bool) -> None:
    if is_blank(row.amount):
        errors.append(FieldError(ImportField.AMOUNT.value, "Amount is required"))
        return

    amount = parse_amount(row.amount, decimal_comma)
    if amount is None or amount <= 0:
        errors.append(FieldError(
            ImportField.AMOUNT.value,
            f"Invalid amount. Must be a positive number. Got: {row.amount}",
        ))


def _validate_date(row: ImportRow, errors: list[FieldError]) -> None:
    if is_blank(row.transaction_date):
        errors.append(FieldError(
            ImportField.TRANSACTION_DATE.value, "Transaction Date is required"
        ))
    elif parse_import_date(row.transaction_date) is None:
        errors.append(FieldError(
            ImportField.TRANSACTION_DATE.value,
            f"Invalid date format. Use YYYY-MM-DD or MM-DD-YYYY. Got: {row.transaction_date}",
        ))


def _validate_transfer(row: ImportRow, snapshot: ReferenceSnapshot, errors: list[FieldError]) -> None:
    has_from = not is_blank(row.from_account)
    has_to = not is_blank(row.to_account)

    if not has_from and not has_to:
        errors.append(FieldError(
            TRANSFER_ACCOUNTS_FIELD,
            "For TRANSFER: At least one of From Account or To Account is required",
        ))

    from_account = snapshot.find_account(row.from_account) if has_from else None
    to_account = snapshot.find_account(row.to_account) if has_to else None

    if has_from and from_account is None:
        errors.append(FieldError(
            ImportField.FROM_ACCOUNT.value,
            f'From Account not found: "{row.from_account}". '
            f"Available: {_available(snapshot.account_names())}",
        ))

    if has_to and to_account is None:
        errors.append(FieldError(
            ImportField.TO_ACCOUNT.value,
            f'To Account not found: "{row.to_account}". '
            f"Available: {_available(snapshot.account_names())}",
        ))

    if has_from and has_to:
        if from_account is not None and to_account is not None:
            same = from_account.id == to_account.id
        else:
            same = normalize_name(row.from_account) == normalize_name(row.to_account)
        if same:
            errors.append(FieldError(
                TRANSFER_ACCOUNTS_FIELD,
                "From Account and To Account must be different",
            ))

    if not is_blank(row.category):
        errors.append(FieldError(
            ImportField.CATEGORY.value,
            "Category should be empty for TRANSFER transactions",
        ))


def _validate_income_expense(
    row: ImportRow,
    type_norm: str,
    snapshot: ReferenceSnapshot,
    errors: list[FieldError],
) -> None:
    label = type_norm.upper()

    if is_blank(row.account):
        errors.append(FieldError(
            ImportField.ACCOUNT.value,
            f"Account is required for {label} transactions",
        ))
    elif snapshot.find_account(row.account) is None:
        errors.append(FieldError(
            ImportField.ACCOUNT.value,
            f'Account not found: "{row.account}". '
            f"Available: {_available(snapshot.account_names())}",
        ))

    if is_blank(row.category):
        errors.append(FieldError(
            ImportField.CATEGORY.value,
            f"Category is required for {label} transactions",
        ))
    elif snapshot.find_category(row.category, type_norm) is None:
        errors.append(FieldError(
            ImportField.CATEGORY.value,
            f'{label} category not found: "{row.category}". '
            f"Available: {_available(snapshot.category_names(type_norm))}",
        ))


def _validate_frequency(row: ImportRow, errors: list[FieldError]) -> None:
    if is_blank(row.frequency):
        return
    if row.frequency.strip().lower() not in VALID_FREQUENCIES:
        errors.append(FieldError(
            ImportField.FREQUENCY.value,
            f"Invalid frequency. Must be one of: {', '.join(VALID_FREQUENCIES)}. "
            f"Got: {row.frequency}",
        ))


def _validate_goal(
    row: ImportRow,
    type_norm: Optional[str],
    snapshot: ReferenceSnapshot,
    errors: list[FieldError],
    decimal_comma: bool,
) -> None:
    has_goal = not is_blank(row.goal)
    has_goal_amount = not is_blank(row.goal_amount)

    if not has_goal and not has_goal_amount:
        return

    if type_norm == TransactionType.TRANSFER.value:
        errors.append(FieldError(
            ImportField.GOAL.value,
            "Goals are not allowed for TRANSFER transactions",
        ))
        return

    if has_goal != has_goal_amount:
        errors.append(FieldError(
            ImportField.GOAL.value,
            "Goal and Goal Amount must both be present or both be absent",
        ))

    if has_goal and snapshot.find_goal(row.goal) is None:
        errors.append(FieldError(
            ImportField.GOAL.value,
            f'Goal not found: "{row.goal}". Available: {_available(snapshot.goal_names())}',
        ))

    if has_goal_amount:
        goal_amount = parse_amount(row.goal_amount, decimal_comma)
        if goal_amount is None or goal_amount <= 0:
            errors.append(FieldError(
                ImportField.GOAL_AMOUNT.value,
                f"Invalid goal amount. Must be a positive number. Got: {row.goal_amount}",
            ))
        else:
            amount = parse_amount(row.amount, decimal_comma)
            if amount is not None and goal_amount >= amount:
                errors.append(FieldError(
                    ImportField.GOAL_AMOUNT.value,
                    "Goal Amount must be less than Amount",
                ))


def validate_row(
    row: ImportRow,
    snapshot: ReferenceSnapshot,
    decimal_comma: bool = False,
) -> list[FieldError]:
    """
    Check one row against the import rules.

    Args:
        row: Normalized row
        snapshot: Reference data the row must resolve against
        decimal_comma: Read "," as the decimal point, as normalize_row did

    Returns:
        Every rule violation found; empty list means the row is valid
    """
    errors: list[FieldError] = []

    type_norm = _validate_type(row, errors)
    _validate_amount(row, errors, decimal_comma)
    _validate_date(row, errors)

    if type_norm == TransactionType.TRANSFER.value:
        _validate_transfer(row, snapshot, errors)
    elif type_norm in (TransactionType.INCOME.value, TransactionType.EXPENSE.value):
        _validate_income_expense(row, type_norm, snapshot, errors)

    _validate_frequency(row, errors)
    _validate_goal(row, type_norm, snapshot, errors, decimal_comma)

    return errors


def collect_warnings(
    row: ImportRow,
    snapshot: ReferenceSnapshot,
    today: Optional[date] = None,
) -> list[FieldError]:
    """
    Non-blocking notices for a row.

    - Possible duplicate: same account, amount and date as a stored transaction
    - Future date
    """
    warnings: list[FieldError] = []
    today = today or date.today()

    row_date = parse_import_date(row.transaction_date)
    if row_date is None:
        return warnings

    if row_date > today:
        warnings.append(FieldError(
            ImportField.TRANSACTION_DATE.value,
            f"Transaction date is in the future: {row_date.isoformat()}",
        ))

    account = snapshot.find_account(row.account)
    amount = parse_amount(row.amount)
    if account is not None and amount is not None:
        if snapshot.has_transaction(account.id, amount, row_date):
            warnings.append(FieldError(
                ImportField.AMOUNT.value,
                "Possible duplicate: a transaction with the same account, amount "
                "and date already exists",
            ))

    return warnings
