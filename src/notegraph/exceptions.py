"""Custom exceptions for notegraph.

Provides a structured exception hierarchy with error codes and
machine-readable error information for better error handling.
"""
from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(Enum):
    """Error codes for machine-readable error identification."""

    # Lifecycle errors (0xxx)
    NOT_INITIALIZED = 1

    # Note errors (1xxx)
    NOTE_NOT_FOUND = 1001
    NOTE_VALIDATION_FAILED = 1002
    SLUG_EXHAUSTED = 1003

    # Storage errors (4xxx)
    STORAGE_READ_FAILED = 4001
    STORAGE_WRITE_FAILED = 4002
    STORAGE_CONNECTION_FAILED = 4004

    # Validation errors (7xxx)
    VALIDATION_FAILED = 7001
    INVALID_NOTE_TYPE = 7002
    INVALID_TASK_STATUS = 7003


class NoteGraphError(Exception):
    """Base exception for all notegraph errors.

    Attributes:
        message: Human-readable error message
        code: Machine-readable error code
        details: Additional context about the error
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.VALIDATION_FAILED,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to a dictionary for serialization."""
        return {
            "error": self.__class__.__name__,
            "code": self.code.value,
            "code_name": self.code.name,
            "message": self.message,
            "details": self.details
        }

    def __str__(self) -> str:
        if self.details:
            detail_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"[{self.code.name}] {self.message} ({detail_str})"
        return f"[{self.code.name}] {self.message}"


class NotInitializedError(NoteGraphError):
    """Raised when an operation runs before the store has been opened."""

    def __init__(self, message: str = "Database not initialized"):
        super().__init__(message, code=ErrorCode.NOT_INITIALIZED)


class NoteNotFoundError(NoteGraphError):
    """Raised when a note is missing or already soft-deleted."""

    def __init__(self, note_id: str, message: Optional[str] = None):
        super().__init__(
            message or f"Note with id '{note_id}' not found",
            code=ErrorCode.NOTE_NOT_FOUND,
            details={"note_id": note_id}
        )
        self.note_id = note_id


class SlugExhaustedError(NoteGraphError):
    """Raised when no free slug suffix was found within the retry cap."""

    def __init__(self, base_slug: str, attempts: int):
        super().__init__(
            f"No free slug derived from '{base_slug}' after {attempts} attempts",
            code=ErrorCode.SLUG_EXHAUSTED,
            details={"slug": base_slug, "attempts": attempts}
        )
        self.base_slug = base_slug
        self.attempts = attempts


class StorageError(NoteGraphError):
    """Raised for storage/persistence errors."""

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        code: ErrorCode = ErrorCode.STORAGE_READ_FAILED,
        original_error: Optional[Exception] = None
    ):
        details = {}
        if operation:
            details["operation"] = operation
        if original_error:
            details["original_error"] = str(original_error)[:200]

        super().__init__(message, code=code, details=details)
        self.operation = operation
        self.original_error = original_error


class ValidationError(NoteGraphError):
    """Raised for invalid caller input (not for skipped derived content)."""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Optional[Any] = None,
        code: ErrorCode = ErrorCode.VALIDATION_FAILED
    ):
        details = {}
        if field:
            details["field"] = field
        if value is not None:
            details["value"] = str(value)[:100]

        super().__init__(message, code=code, details=details)
        self.field = field
        self.value = value
