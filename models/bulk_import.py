"""
Bulk import models.

Dataclasses hold the in-memory pipeline state (rows, errors, summary);
pydantic schemas define the API requests and responses.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from pydantic import Field

from models.base import BaseSchema


class ImportField(str, Enum):
    """Semantic field a CSV column can be mapped to."""
    TYPE = "type"
    TITLE = "title"
    AMOUNT = "amount"
    TRANSACTION_DATE = "transactionDate"
    ACCOUNT = "account"
    CATEGORY = "category"
    FROM_ACCOUNT = "fromAccount"
    TO_ACCOUNT = "toAccount"
    FREQUENCY = "frequency"
    NOTES = "notes"
    GOAL = "goal"
    GOAL_AMOUNT = "goalAmount"


class TransactionType(str, Enum):
    """Row types accepted by the importer."""
    INCOME = "income"
    EXPENSE = "expense"
    TRANSFER = "transfer"


class Frequency(str, Enum):
    """Recurrence of a transaction."""
    NONE = "none"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


class ImportStep(str, Enum):
    """
    Import session steps.

    source → preview → mapping → validation → success
    """
    SOURCE = "source"
    PREVIEW = "preview"
    MAPPING = "mapping"
    VALIDATION = "validation"
    SUCCESS = "success"


VALID_TYPES = [t.value for t in TransactionType]
VALID_FREQUENCIES = [f.value for f in Frequency]

# Column index -> semantic field
ColumnMapping = dict[int, ImportField]

# ImportField -> ImportRow attribute
FIELD_ATTRIBUTES: dict[ImportField, str] = {
    ImportField.TYPE: "type",
    ImportField.TITLE: "title",
    ImportField.AMOUNT: "amount",
    ImportField.TRANSACTION_DATE: "transaction_date",
    ImportField.ACCOUNT: "account",
    ImportField.CATEGORY: "category",
    ImportField.FROM_ACCOUNT: "from_account",
    ImportField.TO_ACCOUNT: "to_account",
    ImportField.FREQUENCY: "frequency",
    ImportField.NOTES: "notes",
    ImportField.GOAL: "goal",
    ImportField.GOAL_AMOUNT: "goal_amount",
}

# Error field name used when a rule concerns both transfer legs
TRANSFER_ACCOUNTS_FIELD = "fromAccount/toAccount"


# ===================
# PIPELINE STATE
# ===================

@dataclass(frozen=True)
class FieldError:
    """One validation problem, scoped to a field."""
    field: str
    message: str

    def __str__(self) -> str:
        return f"{self.field}: {self.message}"


@dataclass
class ImportRow:
    """
    One candidate transaction parsed from the CSV.

    All semantic fields stay strings until commit. `is_valid` is derived
    from `errors` so it cannot drift out of sync.
    """
    index: int
    type: str = ""
    title: str = ""
    amount: str = ""
    transaction_date: str = ""
    account: str = ""
    category: str = ""
    from_account: str = ""
    to_account: str = ""
    frequency: str = ""
    notes: str = ""
    goal: str = ""
    goal_amount: str = ""
    raw_data: dict[str, str] = field(default_factory=dict)
    errors: list[FieldError] = field(default_factory=list)
    warnings: list[FieldError] = field(default_factory=list)
    is_checked: bool = True

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def get(self, import_field: ImportField) -> str:
        return getattr(self, FIELD_ATTRIBUTES[import_field])

    def set(self, import_field: ImportField, value: Optional[str]) -> None:
        setattr(self, FIELD_ATTRIBUTES[import_field], (value or "").strip())


@dataclass(frozen=True)
class RowFailure:
    """A row that failed during commit. row_index is 1-based for display."""
    row_index: int
    message: str


@dataclass(frozen=True)
class ImportSummary:
    """Outcome of one commit. Immutable once built."""
    total_rows: int
    successful_imports: int
    failed_imports: int
    errors: tuple[RowFailure, ...] = ()
    cancelled: bool = False
    skipped_rows: int = 0

    @property
    def success(self) -> bool:
        return self.failed_imports == 0 and not self.cancelled

    @property
    def message(self) -> str:
        text = f"Imported {self.successful_imports} transactions successfully"
        if self.failed_imports > 0:
            text += f" with {self.failed_imports} errors"
        if self.cancelled:
            text += f"; cancelled with {self.skipped_rows} rows not attempted"
        return text


# ===================
# API REQUESTS
# ===================

class CreateSessionRequest(BaseSchema):
    """Start a new import session for a user."""

    user_id: str = Field(..., min_length=1, description="Owner of the imported transactions")


class SourceRequest(BaseSchema):
    """Pasted CSV text."""

    csv_text: str = Field(..., description="Raw CSV text")
    file_name: str = Field(default="", max_length=255, description="Original file name, if any")


class HeadersRequest(BaseSchema):
    """Manual override of header detection."""

    has_headers: bool


class MappingRequest(BaseSchema):
    """
    Manual column mapping.

    Keys are column indexes; a null value leaves the column unmapped.
    Replaces the current mapping entirely.
    """

    mapping: dict[int, Optional[ImportField]]


class RowUpdateRequest(BaseSchema):
    """User correction of one row's fields."""

    fields: dict[ImportField, str] = Field(default_factory=dict)
    is_checked: Optional[bool] = None


# ===================
# API RESPONSES
# ===================

class FieldErrorResponse(BaseSchema):
    field: str
    message: str


class ImportRowResponse(BaseSchema):
    """Row as shown in the review table."""

    index: int
    type: str
    title: str
    amount: str
    transaction_date: str
    account: str
    category: str
    from_account: str
    to_account: str
    frequency: str
    notes: str
    goal: str
    goal_amount: str
    raw_data: dict[str, str]
    errors: list[FieldErrorResponse]
    warnings: list[FieldErrorResponse]
    is_valid: bool
    is_checked: bool


class RowFailureResponse(BaseSchema):
    row_index: int
    message: str


class ImportSummaryResponse(BaseSchema):
    total_rows: int
    successful_imports: int
    failed_imports: int
    errors: list[RowFailureResponse]
    cancelled: bool
    skipped_rows: int
    success: bool
    message: str


class ImportSessionResponse(BaseSchema):
    """Full session state returned after every step."""

    session_id: str
    step: ImportStep
    file_name: str = ""
    delimiter: str = ","
    has_headers: bool = False
    total_raw_rows: int = 0
    headers: list[str] = Field(default_factory=list)
    preview_rows: list[list[str]] = Field(default_factory=list)
    column_mapping: dict[int, ImportField] = Field(default_factory=dict)
    mapping_locked: bool = False
    missing_required_fields: list[ImportField] = Field(default_factory=list)
    rows: list[ImportRowResponse] = Field(default_factory=list)
    valid_rows: int = 0
    invalid_rows: int = 0
    checked_rows: int = 0
    is_loading: bool = False
    error: Optional[str] = None
    summary: Optional[ImportSummaryResponse] = None


class CancelResponse(BaseSchema):
    session_id: str
    cancel_requested: bool
