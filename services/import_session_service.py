"""
Bulk import orchestration.

An ImportSession walks one CSV through the import steps:

    source → preview → mapping → validation → success

Every step change is checked against ALLOWED_TRANSITIONS. The column
mapping is locked while the session is in validation; going back to
mapping unlocks it and discards the built rows. Commit runs rows one
at a time and never aborts the batch on a row failure.
"""

import threading
from dataclasses import dataclass, field
from typing import Optional

import structlog

from config import settings
from models.bulk_import import (
    ImportField,
    ImportRow,
    ImportStep,
    ImportSummary,
    RowFailure,
    ColumnMapping,
    TransactionType,
    Frequency,
)
from models.reference import ReferenceSnapshot, TransferFallbackPolicy
from models.transaction import (
    TransactionCreate,
    LedgerEntryType,
    GoalAllocation,
)
from parsers.csv_parser import tokenize_csv, detect_delimiter, SEMICOLON_DELIMITER
from parsers.header_mapping import (
    detect_headers,
    auto_detect_mapping as detect_mapping,
    missing_required_fields,
)
from services.row_normalizer import normalize_row, parse_amount
from services.row_validator import validate_row, collect_warnings
from services.transaction_service import TransactionService, get_transaction_service
from utils.date_utils import parse_import_date
from utils.text_utils import is_blank, normalize_name, clean_text
from exceptions import (
    AccountNotFoundError,
    CategoryNotFoundError,
    GoalNotFoundError,
    TransferAccountsError,
    InvalidStepTransitionError,
    MappingLockedError,
    ImportInProgressError,
    ImportRowNotFoundError,
    NoRowsToImportError,
    TooManyRowsError,
    ValidationError,
)

logger = structlog.get_logger(__name__)


ALLOWED_TRANSITIONS: dict[ImportStep, frozenset[ImportStep]] = {
    ImportStep.SOURCE: frozenset({ImportStep.PREVIEW}),
    ImportStep.PREVIEW: frozenset({ImportStep.MAPPING, ImportStep.SOURCE}),
    ImportStep.MAPPING: frozenset({ImportStep.VALIDATION, ImportStep.PREVIEW}),
    ImportStep.VALIDATION: frozenset({ImportStep.MAPPING, ImportStep.SUCCESS}),
    ImportStep.SUCCESS: frozenset(),
}

# Previous step for back()
_BACK_STEPS = {
    ImportStep.PREVIEW: ImportStep.SOURCE,
    ImportStep.MAPPING: ImportStep.PREVIEW,
    ImportStep.VALIDATION: ImportStep.MAPPING,
}


class CancellationToken:
    """Thread-safe flag checked by commit between rows."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()


@dataclass
class SessionState:
    """Payload carried alongside the current step."""
    csv_text: str = ""
    file_name: str = ""
    delimiter: str = ","
    raw_rows: list[list[str]] = field(default_factory=list)
    has_headers: bool = False
    column_mapping: ColumnMapping = field(default_factory=dict)
    mapping_locked: bool = False
    rows: list[ImportRow] = field(default_factory=list)
    is_loading: bool = False
    error: Optional[str] = None

    @property
    def data_rows(self) -> list[list[str]]:
        return self.raw_rows[1:] if self.has_headers else self.raw_rows

    @property
    def decimal_comma(self) -> bool:
        """Semicolon-separated files write amounts as "45,50"."""
        return self.delimiter == SEMICOLON_DELIMITER

    @property
    def column_count(self) -> int:
        return max((len(r) for r in self.raw_rows), default=0)

    @property
    def headers(self) -> list[str]:
        """Header cells, or "Column N" placeholders when there is no header row."""
        if self.has_headers and self.raw_rows:
            return list(self.raw_rows[0])
        return [f"Column {i + 1}" for i in range(self.column_count)]


# ===================
# COMMIT
# ===================

def _build_transfer_entries(
    row: ImportRow,
    user_id: str,
    amount,
    transaction_date,
    account_ids: dict[str, str],
    snapshot: ReferenceSnapshot,
    fallback_policy: TransferFallbackPolicy,
) -> list[TransactionCreate]:
    has_from = not is_blank(row.from_account)
    has_to = not is_blank(row.to_account)

    if not has_from and not has_to:
        raise TransferAccountsError(
            "Transfer requires at least one of From Account or To Account",
            row.from_account,
            row.to_account,
        )

    from_id = account_ids.get(normalize_name(row.from_account)) if has_from else None
    to_id = account_ids.get(normalize_name(row.to_account)) if has_to else None

    if has_from and from_id is None:
        raise AccountNotFoundError(row.from_account)
    if has_to and to_id is None:
        raise AccountNotFoundError(row.to_account)

    from_name, to_name = row.from_account, row.to_account
    if not has_from or not has_to:
        primary = snapshot.primary_account
        if fallback_policy == TransferFallbackPolicy.REJECT or primary is None:
            raise TransferAccountsError(
                "Transfer requires both From Account and To Account",
                row.from_account,
                row.to_account,
            )
        if not has_from:
            from_id, from_name = primary.id, primary.name
        else:
            to_id, to_name = primary.id, primary.name

    if from_id == to_id:
        raise TransferAccountsError(
            "From Account and To Account must be different",
            from_name,
            to_name,
        )

    common = {
        "user_id": user_id,
        "amount": amount,
        "transaction_date": transaction_date,
        "notes": clean_text(row.notes, max_length=1000),
        "frequency": Frequency(row.frequency or Frequency.NONE.value),
    }
    return [
        TransactionCreate(
            account_id=from_id,
            type=LedgerEntryType.TRANSFER_SENDER,
            description=clean_text(row.title) or f"Transfer to {to_name}",
            **common,
        ),
        TransactionCreate(
            account_id=to_id,
            type=LedgerEntryType.TRANSFER_RECEIVER,
            description=clean_text(row.title) or f"Transfer from {from_name}",
            **common,
        ),
    ]


def _build_entry(
    row: ImportRow,
    user_id: str,
    amount,
    transaction_date,
    account_ids: dict[str, str],
    category_ids: dict[str, str],
    goal_ids: dict[str, str],
) -> TransactionCreate:
    type_norm = row.type
    account_id = account_ids.get(normalize_name(row.account))
    if account_id is None:
        raise AccountNotFoundError(row.account)

    category_id = category_ids.get(f"{type_norm}_{normalize_name(row.category)}")
    if category_id is None:
        raise CategoryNotFoundError(row.category, type_norm)

    goal_id = None
    goal_amount = None
    allocation = None
    if not is_blank(row.goal):
        goal_id = goal_ids.get(normalize_name(row.goal))
        if goal_id is None:
            raise GoalNotFoundError(row.goal)
        goal_amount = parse_amount(row.goal_amount)
        allocation = (
            GoalAllocation.CONTRIBUTE
            if type_norm == TransactionType.INCOME.value
            else GoalAllocation.DEDUCT
        )

    return TransactionCreate(
        user_id=user_id,
        account_id=account_id,
        category_id=category_id,
        type=LedgerEntryType(type_norm),
        amount=amount,
        description=clean_text(row.title),
        notes=clean_text(row.notes, max_length=1000),
        transaction_date=transaction_date,
        frequency=Frequency(row.frequency or Frequency.NONE.value),
        goal_id=goal_id,
        goal_amount=goal_amount,
        goal_allocation_type=allocation,
    )


def commit_rows(
    rows: list[ImportRow],
    snapshot: ReferenceSnapshot,
    user_id: str,
    transaction_service: TransactionService,
    fallback_policy: TransferFallbackPolicy = TransferFallbackPolicy.PRIMARY_ACCOUNT,
    cancel_token: Optional[CancellationToken] = None,
) -> ImportSummary:
    """
    Write every checked, valid row.

    Rows are committed in order, one remote call at a time. A failing row
    is recorded and the next row is attempted. The cancellation token is
    checked before each row; rows not reached count as skipped.

    Args:
        rows: All session rows (unchecked and invalid rows are ignored)
        snapshot: Reference data used to resolve names to ids
        user_id: Owner of the new transactions
        transaction_service: Writes entries to the database
        fallback_policy: Handling of transfers that name only one account
        cancel_token: Optional stop signal

    Returns:
        ImportSummary

    Raises:
        NoRowsToImportError: If no row is both checked and valid
    """
    eligible = [r for r in rows if r.is_checked and r.is_valid]
    if not eligible:
        raise NoRowsToImportError()

    account_ids: dict[str, str] = {}
    for account in snapshot.accounts:
        account_ids.setdefault(normalize_name(account.name), account.id)

    category_ids: dict[str, str] = {}
    for category in snapshot.categories:
        category_ids.setdefault(f"{category.type}_{normalize_name(category.name)}", category.id)

    goal_ids: dict[str, str] = {}
    for goal in snapshot.goals:
        goal_ids.setdefault(normalize_name(goal.name), goal.id)

    logger.info(
        "import_commit_started",
        user_id=user_id,
        eligible_rows=len(eligible),
        fallback_policy=fallback_policy.value,
    )

    successful = 0
    failures: list[RowFailure] = []
    cancelled = False
    skipped = 0

    for position, row in enumerate(eligible):
        if cancel_token is not None and cancel_token.is_cancelled:
            cancelled = True
            skipped = len(eligible) - position
            logger.info("import_commit_cancelled", completed=position, skipped=skipped)
            break

        try:
            amount = parse_amount(row.amount)
            transaction_date = parse_import_date(row.transaction_date)
            if amount is None or transaction_date is None:
                raise ValidationError(f"Row {row.index + 1} has an invalid amount or date")

            if row.type == TransactionType.TRANSFER.value:
                entries = _build_transfer_entries(
                    row, user_id, amount, transaction_date,
                    account_ids, snapshot, fallback_policy,
                )
            else:
                entries = [_build_entry(
                    row, user_id, amount, transaction_date,
                    account_ids, category_ids, goal_ids,
                )]

            for entry in entries:
                transaction_service.create_transaction(entry)

            successful += 1

        except Exception as e:
            message = str(e) or type(e).__name__
            failures.append(RowFailure(row_index=row.index + 1, message=message))
            logger.warning(
                "import_row_failed",
                row_index=row.index + 1,
                type=row.type,
                error=message,
                error_type=type(e).__name__,
            )

    summary = ImportSummary(
        total_rows=successful + len(failures),
        successful_imports=successful,
        failed_imports=len(failures),
        errors=tuple(failures),
        cancelled=cancelled,
        skipped_rows=skipped,
    )

    logger.info(
        "import_commit_completed",
        user_id=user_id,
        total_rows=summary.total_rows,
        successful=summary.successful_imports,
        failed=summary.failed_imports,
        cancelled=summary.cancelled,
        skipped=summary.skipped_rows,
    )
    return summary


# ===================
# SESSION
# ===================

class ImportSession:
    """
    One user's import, from pasted text to commit summary.

    Mutating methods raise ImportInProgressError while a commit runs.
    cancel() is the only call allowed during a commit.
    """

    def __init__(
        self,
        session_id: str,
        user_id: str,
        snapshot: ReferenceSnapshot,
        transaction_service: Optional[TransactionService] = None,
        fallback_policy: Optional[TransferFallbackPolicy] = None,
        max_rows: Optional[int] = None,
    ):
        self.session_id = session_id
        self.user_id = user_id
        self.snapshot = snapshot
        self._transaction_service = transaction_service
        self.fallback_policy = fallback_policy or settings.transfer_leg_fallback
        self.max_rows = max_rows or settings.import_max_rows

        self.step = ImportStep.SOURCE
        self.state = SessionState()
        self.summary: Optional[ImportSummary] = None

        self._lock = threading.Lock()
        self._cancel_token: Optional[CancellationToken] = None

    @property
    def transaction_service(self) -> TransactionService:
        if self._transaction_service is None:
            self._transaction_service = get_transaction_service()
        return self._transaction_service

    # ===================
    # STATE HELPERS
    # ===================

    def _transition(self, target: ImportStep) -> None:
        if target not in ALLOWED_TRANSITIONS[self.step]:
            raise InvalidStepTransitionError(self.step.value, target.value)
        logger.debug(
            "import_step_changed",
            session_id=self.session_id,
            from_step=self.step.value,
            to_step=target.value,
        )
        self.step = target

    def _ensure_idle(self) -> None:
        if self.state.is_loading:
            raise ImportInProgressError(self.session_id)

    def _ensure_step(self, *steps: ImportStep, requested: ImportStep) -> None:
        if self.step not in steps:
            raise InvalidStepTransitionError(self.step.value, requested.value)

    def _ensure_mapping_editable(self) -> None:
        if self.state.mapping_locked:
            raise MappingLockedError()
        self._ensure_step(ImportStep.PREVIEW, ImportStep.MAPPING, requested=ImportStep.MAPPING)

    def _check_row_limit(self, data_row_count: int) -> None:
        if data_row_count > self.max_rows:
            raise TooManyRowsError(data_row_count, self.max_rows)

    def _get_row_position(self, index: int) -> int:
        for position, row in enumerate(self.state.rows):
            if row.index == index:
                return position
        raise ImportRowNotFoundError(index)

    def _prepare_row(self, row: ImportRow) -> ImportRow:
        """Normalize, then recompute errors and warnings."""
        prepared = normalize_row(row, self.snapshot, decimal_comma=self.state.decimal_comma)
        prepared.errors = validate_row(
            prepared, self.snapshot, decimal_comma=self.state.decimal_comma
        )
        prepared.warnings = collect_warnings(prepared, self.snapshot)
        return prepared

    @property
    def missing_required_fields(self) -> list[ImportField]:
        if self.step == ImportStep.SOURCE or self.step == ImportStep.SUCCESS:
            return []
        return missing_required_fields(self.state.column_mapping)

    @property
    def is_committing(self) -> bool:
        return self.state.is_loading

    # ===================
    # STEP: SOURCE
    # ===================

    def load_source(self, csv_text: str, file_name: str = "") -> None:
        """
        Tokenize CSV text and move to preview.

        Raises:
            EmptyInputError: No non-blank line
            TooManyRowsError: More data rows than one import accepts
        """
        with self._lock:
            self._ensure_idle()
            if ImportStep.PREVIEW not in ALLOWED_TRANSITIONS[self.step]:
                raise InvalidStepTransitionError(self.step.value, ImportStep.PREVIEW.value)

            try:
                delimiter = detect_delimiter(csv_text)
                raw_rows = tokenize_csv(csv_text, delimiter)
                has_headers = detect_headers(raw_rows)
                self._check_row_limit(len(raw_rows) - (1 if has_headers else 0))
            except Exception as e:
                self.state.error = str(e)
                raise

            self.state = SessionState(
                csv_text=csv_text,
                file_name=file_name,
                delimiter=delimiter,
                raw_rows=raw_rows,
                has_headers=has_headers,
            )
            self._transition(ImportStep.PREVIEW)

        logger.info(
            "import_source_loaded",
            session_id=self.session_id,
            file_name=file_name or None,
            rows=len(raw_rows),
            delimiter=delimiter,
            has_headers=has_headers,
        )

    def set_has_headers(self, has_headers: bool) -> None:
        """Override header detection. Clears a mapping built on the old headers."""
        with self._lock:
            self._ensure_idle()
            self._ensure_mapping_editable()

            data_rows = len(self.state.raw_rows) - (1 if has_headers else 0)
            self._check_row_limit(data_rows)

            if has_headers != self.state.has_headers:
                self.state.has_headers = has_headers
                self.state.column_mapping = {}
                logger.info(
                    "import_headers_overridden",
                    session_id=self.session_id,
                    has_headers=has_headers,
                )

    # ===================
    # STEP: MAPPING
    # ===================

    def auto_detect_mapping(self) -> ColumnMapping:
        """Map columns from header keywords. Without a header row nothing is mapped."""
        with self._lock:
            self._ensure_idle()
            self._ensure_mapping_editable()

            if self.state.has_headers:
                mapping = detect_mapping(self.state.headers)
            else:
                mapping = {}

            self.state.column_mapping = mapping
            if self.step == ImportStep.PREVIEW:
                self._transition(ImportStep.MAPPING)

        logger.info(
            "import_mapping_detected",
            session_id=self.session_id,
            mapped_columns=len(mapping),
            missing=[f.value for f in missing_required_fields(mapping)],
        )
        return dict(mapping)

    def set_column_mapping(self, mapping: dict[int, Optional[ImportField]]) -> ColumnMapping:
        """
        Replace the mapping. None values leave the column unmapped.

        Raises:
            ValidationError: Column index outside the CSV
            MappingLockedError: Validation has started
        """
        with self._lock:
            self._ensure_idle()
            self._ensure_mapping_editable()

            column_count = self.state.column_count
            bad_columns = sorted(c for c in mapping if c < 0 or c >= column_count)
            if bad_columns:
                raise ValidationError(
                    f"Column index out of range: {bad_columns}",
                    code="IMPORT_INVALID_COLUMN",
                    details={"columns": bad_columns, "column_count": column_count},
                )

            new_mapping = {c: f for c, f in sorted(mapping.items()) if f is not None}
            self.state.column_mapping = new_mapping
            if self.step == ImportStep.PREVIEW:
                self._transition(ImportStep.MAPPING)

        logger.info(
            "import_mapping_set",
            session_id=self.session_id,
            mapped_columns=len(new_mapping),
        )
        return dict(new_mapping)

    def confirm_mapping(self) -> list[ImportRow]:
        """Lock the mapping, build and validate every data row."""
        with self._lock:
            self._ensure_idle()
            if self.state.mapping_locked:
                raise MappingLockedError()
            self._ensure_step(ImportStep.MAPPING, requested=ImportStep.VALIDATION)

            mapping = self.state.column_mapping
            rows: list[ImportRow] = []
            for index, cells in enumerate(self.state.data_rows):
                row = ImportRow(index=index)
                for column, import_field in mapping.items():
                    value = cells[column] if column < len(cells) else ""
                    row.set(import_field, value)
                    row.raw_data[import_field.value] = value
                rows.append(self._prepare_row(row))

            self.state.rows = rows
            self.state.mapping_locked = True
            self._transition(ImportStep.VALIDATION)

        valid = sum(1 for r in rows if r.is_valid)
        logger.info(
            "import_rows_validated",
            session_id=self.session_id,
            total=len(rows),
            valid=valid,
            invalid=len(rows) - valid,
        )
        return rows

    # ===================
    # STEP: VALIDATION
    # ===================

    def update_row(
        self,
        index: int,
        fields: dict[ImportField, str],
        is_checked: Optional[bool] = None,
    ) -> ImportRow:
        """Apply user corrections to a row and validate it again."""
        with self._lock:
            self._ensure_idle()
            self._ensure_step(ImportStep.VALIDATION, requested=ImportStep.VALIDATION)

            position = self._get_row_position(index)
            row = self.state.rows[position]
            for import_field, value in fields.items():
                row.set(import_field, value)
            if is_checked is not None:
                row.is_checked = is_checked

            updated = self._prepare_row(row)
            self.state.rows[position] = updated

        logger.debug(
            "import_row_updated",
            session_id=self.session_id,
            row_index=index,
            fields=[f.value for f in fields],
            is_valid=updated.is_valid,
        )
        return updated

    def toggle_row_checked(self, index: int) -> ImportRow:
        with self._lock:
            self._ensure_idle()
            self._ensure_step(ImportStep.VALIDATION, requested=ImportStep.VALIDATION)

            row = self.state.rows[self._get_row_position(index)]
            row.is_checked = not row.is_checked
            return row

    # ===================
    # NAVIGATION
    # ===================

    def back(self) -> ImportStep:
        """Step back one screen."""
        with self._lock:
            self._ensure_idle()
            target = _BACK_STEPS.get(self.step)
            if target is None:
                raise InvalidStepTransitionError(self.step.value, "previous")

            if self.step == ImportStep.VALIDATION:
                self.state.mapping_locked = False
                self.state.rows = []
            elif self.step == ImportStep.PREVIEW:
                # Keep the text so it can be edited and reloaded
                self.state = SessionState(
                    csv_text=self.state.csv_text,
                    file_name=self.state.file_name,
                )

            self._transition(target)
            return self.step

    def reset(self) -> None:
        """Back to an empty source step. Allowed from any step except mid-commit."""
        with self._lock:
            self._ensure_idle()
            self.state = SessionState()
            self.summary = None
            self.step = ImportStep.SOURCE
        logger.info("import_session_reset", session_id=self.session_id)

    # ===================
    # COMMIT
    # ===================

    def commit(self) -> ImportSummary:
        """
        Write checked, valid rows and move to success.

        The session lock is released while rows are written so cancel()
        can reach the running commit.

        Raises:
            NoRowsToImportError: Nothing to import
            ImportInProgressError: A commit is already running
        """
        with self._lock:
            self._ensure_idle()
            self._ensure_step(ImportStep.VALIDATION, requested=ImportStep.SUCCESS)
            self.state.is_loading = True
            self.state.error = None
            self._cancel_token = CancellationToken()
            rows = list(self.state.rows)
            token = self._cancel_token

        try:
            summary = commit_rows(
                rows,
                self.snapshot,
                self.user_id,
                self.transaction_service,
                fallback_policy=self.fallback_policy,
                cancel_token=token,
            )
        except Exception as e:
            with self._lock:
                self.state.is_loading = False
                self.state.error = str(e)
                self._cancel_token = None
            raise

        with self._lock:
            self.state = SessionState()
            self.summary = summary
            self._cancel_token = None
            self._transition(ImportStep.SUCCESS)
        return summary

    def cancel(self) -> bool:
        """Ask a running commit to stop after the current row. False if none runs."""
        token = self._cancel_token
        if token is None:
            return False
        token.cancel()
        logger.info("import_cancel_requested", session_id=self.session_id)
        return True
