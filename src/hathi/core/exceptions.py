"""
Domain Exceptions

Structured exception hierarchy for the note store. Every error carries a
machine-readable code and a details dict so the API layer can map it to
an HTTP status without string matching.
"""

from enum import Enum
from typing import Any


class ErrorCode(Enum):
    """Error codes for machine-readable error identification."""

    NOT_FOUND = 1001
    CREATE_FAILED = 1002
    NO_UPDATE_FIELDS = 1003
    VALIDATION_FAILED = 1004

    CONTEXT_NOT_FOUND = 2001

    DIMENSION_MISMATCH = 3001
    EMBEDDING_REQUIRED = 3002

    STORE_FAILURE = 4001


class HathiError(Exception):
    """
    Base exception for all note store errors.

    Attributes:
        message: Human-readable error message.
        code: Machine-readable error code.
        details: Additional context about the error.
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.VALIDATION_FAILED,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to a dictionary for serialization."""
        return {
            "error": self.__class__.__name__,
            "code": self.code.value,
            "code_name": self.code.name,
            "message": self.message,
            "details": self.details,
        }

    def __str__(self) -> str:
        if self.details:
            detail_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"[{self.code.name}] {self.message} ({detail_str})"
        return f"[{self.code.name}] {self.message}"


class NotFoundError(HathiError):
    """Raised when an update/delete/embedding target note does not exist."""

    def __init__(self, note_id: str):
        super().__init__(
            f"Note '{note_id}' not found",
            code=ErrorCode.NOT_FOUND,
            details={"note_id": note_id},
        )
        self.note_id = note_id


class CreateFailedError(HathiError):
    """Raised when a note insert returns no row or context linking fails."""

    def __init__(self, message: str, note_id: str | None = None):
        super().__init__(
            message,
            code=ErrorCode.CREATE_FAILED,
            details={"note_id": note_id} if note_id else None,
        )
        self.note_id = note_id


class NoUpdateFieldsError(HathiError):
    """Raised when a patch carries neither column changes nor contexts."""

    def __init__(self, note_id: str):
        super().__init__(
            "No values to update",
            code=ErrorCode.NO_UPDATE_FIELDS,
            details={"note_id": note_id},
        )


class ValidationFailedError(HathiError):
    """Raised when caller-supplied parameters are out of bounds."""

    def __init__(self, message: str, field: str | None = None):
        super().__init__(
            message,
            code=ErrorCode.VALIDATION_FAILED,
            details={"field": field} if field else None,
        )
        self.field = field


class ContextNotFoundError(HathiError):
    """Raised when a rename source context does not exist."""

    def __init__(self, name: str):
        super().__init__(
            f'Context "{name}" not found',
            code=ErrorCode.CONTEXT_NOT_FOUND,
            details={"context": name},
        )
        self.name = name


class DimensionMismatchError(HathiError):
    """Raised when two vectors of different lengths are compared."""

    def __init__(self, left: int, right: int):
        super().__init__(
            "Vectors must have the same length",
            code=ErrorCode.DIMENSION_MISMATCH,
            details={"left": left, "right": right},
        )


class EmbeddingRequiredError(HathiError):
    """Raised when semantic search is invoked without a precomputed vector."""

    def __init__(self) -> None:
        super().__init__(
            "Semantic search requires a precomputed query embedding; "
            "embedding generation is the caller's responsibility",
            code=ErrorCode.EMBEDDING_REQUIRED,
        )


class StoreFailureError(HathiError):
    """Wraps an underlying infrastructure error with the failing operation."""

    def __init__(self, operation: str, original: Exception):
        super().__init__(
            f"Failed to {operation}: {original}",
            code=ErrorCode.STORE_FAILURE,
            details={"operation": operation},
        )
        self.operation = operation
        self.original = original
