"""
Custom exceptions module.

All API-visible errors derive from AppError.
"""

from exceptions.errors import (
    # Base exceptions
    AppError,
    NotFoundError,
    ValidationError,
    ConflictError,
    ExternalServiceError,
    DatabaseError,

    # CSV input
    EmptyInputError,
    InvalidFileTypeError,
    FileTooLargeError,
    TooManyRowsError,
    FileDecodeError,

    # Import session
    ImportSessionNotFoundError,
    ImportRowNotFoundError,
    InvalidStepTransitionError,
    MappingLockedError,
    ImportInProgressError,
    NoRowsToImportError,

    # Commit rows
    AccountNotFoundError,
    CategoryNotFoundError,
    GoalNotFoundError,
    TransferAccountsError,
)

__all__ = [
    # Base
    "AppError",
    "NotFoundError",
    "ValidationError",
    "ConflictError",
    "ExternalServiceError",
    "DatabaseError",

    # CSV input
    "EmptyInputError",
    "InvalidFileTypeError",
    "FileTooLargeError",
    "TooManyRowsError",
    "FileDecodeError",

    # Import session
    "ImportSessionNotFoundError",
    "ImportRowNotFoundError",
    "InvalidStepTransitionError",
    "MappingLockedError",
    "ImportInProgressError",
    "NoRowsToImportError",

    # Commit rows
    "AccountNotFoundError",
    "CategoryNotFoundError",
    "GoalNotFoundError",
    "TransferAccountsError",
]
