"""
Models for the bulk import pipeline.

Pydantic schemas validate API input/output; dataclasses carry pipeline state.
"""

from models.base import BaseSchema
from models.reference import (
    TransferFallbackPolicy,
    AccountRef,
    CategoryRef,
    GoalRef,
    ExistingTransaction,
    ReferenceSnapshot,
)
from models.bulk_import import (
    ImportField,
    TransactionType,
    Frequency,
    ImportStep,
    ColumnMapping,
    FieldError,
    ImportRow,
    RowFailure,
    ImportSummary,
    CreateSessionRequest,
    SourceRequest,
    HeadersRequest,
    MappingRequest,
    RowUpdateRequest,
    ImportRowResponse,
    ImportSummaryResponse,
    ImportSessionResponse,
    CancelResponse,
)
from models.transaction import (
    LedgerEntryType,
    GoalAllocation,
    TransactionCreate,
)

__all__ = [
    # Base
    "BaseSchema",

    # Reference data
    "TransferFallbackPolicy",
    "AccountRef",
    "CategoryRef",
    "GoalRef",
    "ExistingTransaction",
    "ReferenceSnapshot",

    # Bulk import
    "ImportField",
    "TransactionType",
    "Frequency",
    "ImportStep",
    "ColumnMapping",
    "FieldError",
    "ImportRow",
    "RowFailure",
    "ImportSummary",
    "CreateSessionRequest",
    "SourceRequest",
    "HeadersRequest",
    "MappingRequest",
    "RowUpdateRequest",
    "ImportRowResponse",
    "ImportSummaryResponse",
    "ImportSessionResponse",
    "CancelResponse",

    # Transactions
    "LedgerEntryType",
    "GoalAllocation",
    "TransactionCreate",
]
