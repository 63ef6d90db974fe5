"""
Business logic services.

Each service handles one stage of the bulk import.
"""

from services.reference_service import ReferenceService, get_reference_service
from services.transaction_service import TransactionService, get_transaction_service
from services.row_normalizer import normalize_row
from services.row_validator import validate_row, collect_warnings
from services.import_session_service import (
    ImportSession,
    SessionState,
    CancellationToken,
    ALLOWED_TRANSITIONS,
    commit_rows,
)

__all__ = [
    "ReferenceService",
    "get_reference_service",
    "TransactionService",
    "get_transaction_service",
    "normalize_row",
    "validate_row",
    "collect_warnings",
    "ImportSession",
    "SessionState",
    "CancellationToken",
    "ALLOWED_TRANSITIONS",
    "commit_rows",
]
