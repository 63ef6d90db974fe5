"""
Custom exception classes for the application.

Every error the API returns is an AppError subclass carrying a stable code.
Per-row validation problems are NOT exceptions; they live on ImportRow.errors.
"""

from typing import Optional, Any
from datetime import datetime, timezone


class AppError(Exception):
    """
    Base exception for all application errors.

    All custom exceptions inherit from this.

    Attributes:
        code: Error code (e.g., "IMPORT_SESSION_NOT_FOUND")
        message: Human-readable message
        status_code: HTTP status code
        details: Additional context
    """

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 500,
        details: Optional[dict[str, Any]] = None
    ):
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        self.timestamp = datetime.now(timezone.utc).isoformat()
        super().__init__(message)

    def to_dict(self) -> dict:
        """Convert to API response format."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "details": self.details,
                "timestamp": self.timestamp
            }
        }


class NotFoundError(AppError):
    """Resource not found (404)."""

    def __init__(
        self,
        resource: str,
        identifier: str,
        code: Optional[str] = None
    ):
        super().__init__(
            code=code or f"{resource.upper()}_NOT_FOUND",
            message=f"{resource} not found",
            status_code=404,
            details={"id": identifier}
        )


class ValidationError(AppError):
    """Validation failed (422)."""

    def __init__(
        self,
        message: str,
        code: str = "VALIDATION_ERROR",
        details: Optional[dict] = None
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=422,
            details=details
        )


class ConflictError(AppError):
    """Conflict with current resource state (409)."""

    def __init__(
        self,
        message: str,
        code: str = "CONFLICT",
        details: Optional[dict] = None
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=409,
            details=details
        )


class ExternalServiceError(AppError):
    """External service failure (503)."""

    def __init__(
        self,
        service: str,
        message: str,
        details: Optional[dict] = None
    ):
        super().__init__(
            code=f"{service.upper()}_ERROR",
            message=message,
            status_code=503,
            details={"service": service, **(details or {})}
        )


class DatabaseError(AppError):
    """Database operation failed (500)."""

    def __init__(
        self,
        operation: str,
        message: str,
        details: Optional[dict] = None
    ):
        super().__init__(
            code="DATABASE_ERROR",
            message=f"Database {operation} failed: {message}",
            status_code=500,
            details={"operation": operation, **(details or {})}
        )


# ===================
# CSV INPUT ERRORS
# ===================

class EmptyInputError(ValidationError):
    """CSV input has no rows after discarding blank lines."""

    def __init__(self):
        super().__init__(
            code="CSV_EMPTY",
            message="CSV is empty"
        )


class InvalidFileTypeError(ValidationError):
    """Uploaded file is not a CSV file."""

    def __init__(self, filename: Optional[str], content_type: Optional[str]):
        super().__init__(
            code="CSV_INVALID_FILE_TYPE",
            message="File must be a CSV file (.csv)",
            details={"filename": filename, "content_type": content_type}
        )


class FileTooLargeError(ValidationError):
    """Uploaded file exceeds the size limit."""

    def __init__(self, size_bytes: int, max_bytes: int):
        super().__init__(
            code="CSV_FILE_TOO_LARGE",
            message=(
                f"File size ({size_bytes / 1024 / 1024:.2f}MB) exceeds "
                f"maximum of {max_bytes / 1024 / 1024:.0f}MB"
            ),
            details={"size_bytes": size_bytes, "max_bytes": max_bytes}
        )


class TooManyRowsError(ValidationError):
    """CSV has more data rows than one import accepts."""

    def __init__(self, row_count: int, max_rows: int):
        super().__init__(
            code="CSV_TOO_MANY_ROWS",
            message=f"CSV has {row_count} rows, but maximum allowed is {max_rows}",
            details={"row_count": row_count, "max_rows": max_rows}
        )


class FileDecodeError(ValidationError):
    """Uploaded file is not valid UTF-8 text."""

    def __init__(self, filename: Optional[str]):
        super().__init__(
            code="CSV_DECODE_FAILED",
            message="File must be UTF-8 encoded text",
            details={"filename": filename}
        )


# ===================
# IMPORT SESSION ERRORS
# ===================

class ImportSessionNotFoundError(NotFoundError):
    """Import session expired or never existed."""

    def __init__(self, session_id: str):
        super().__init__(
            resource="Import session",
            identifier=session_id,
            code="IMPORT_SESSION_NOT_FOUND"
        )


class ImportRowNotFoundError(NotFoundError):
    """Row index outside the parsed row set."""

    def __init__(self, row_index: int):
        super().__init__(
            resource="Import row",
            identifier=str(row_index),
            code="IMPORT_ROW_NOT_FOUND"
        )


class InvalidStepTransitionError(ConflictError):
    """Requested step change is not allowed from the current step."""

    def __init__(self, current_step: str, requested_step: str):
        super().__init__(
            code="IMPORT_INVALID_STEP_TRANSITION",
            message=f"Cannot move from {current_step} to {requested_step}",
            details={
                "current_step": current_step,
                "requested_step": requested_step
            }
        )


class MappingLockedError(ConflictError):
    """Column mapping edited after validation began."""

    def __init__(self):
        super().__init__(
            code="IMPORT_MAPPING_LOCKED",
            message="Column mapping is locked once validation has started. Go back to edit it."
        )


class ImportInProgressError(ConflictError):
    """Session is committing and cannot be changed."""

    def __init__(self, session_id: str):
        super().__init__(
            code="IMPORT_IN_PROGRESS",
            message="Import is already running for this session",
            details={"session_id": session_id}
        )


class NoRowsToImportError(ValidationError):
    """No checked row passed validation."""

    def __init__(self):
        super().__init__(
            code="IMPORT_NO_VALID_ROWS",
            message="No valid transactions to import"
        )


# ===================
# COMMIT ROW ERRORS
# ===================

class AccountNotFoundError(AppError):
    """Account name missing from the reference snapshot (404)."""

    def __init__(self, account_name: str):
        super().__init__(
            code="ACCOUNT_NOT_FOUND",
            message=f"Account not found: {account_name}",
            status_code=404,
            details={"id": account_name}
        )


class CategoryNotFoundError(AppError):
    """Category name missing for the row's transaction type (404)."""

    def __init__(self, category_name: str, transaction_type: str):
        super().__init__(
            code="CATEGORY_NOT_FOUND",
            message=f"Category not found: {category_name} ({transaction_type})",
            status_code=404,
            details={"id": category_name, "type": transaction_type}
        )


class GoalNotFoundError(AppError):
    """Goal name missing from the reference snapshot (404)."""

    def __init__(self, goal_name: str):
        super().__init__(
            code="GOAL_NOT_FOUND",
            message=f"Goal not found: {goal_name}",
            status_code=404,
            details={"id": goal_name}
        )


class TransferAccountsError(ValidationError):
    """Transfer row cannot be resolved into two accounts."""

    def __init__(self, message: str, from_account: str, to_account: str):
        super().__init__(
            code="TRANSFER_ACCOUNTS_INVALID",
            message=message,
            details={"from_account": from_account, "to_account": to_account}
        )
