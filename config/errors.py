"""Estimate engine error handling.

Custom exceptions and error codes for estimate generation and sealing.
"""

from typing import Optional, Dict, Any


# Error Codes
class ErrorCode:
    """Error code constants."""

    # Validation Errors (1xxx)
    VALIDATION_ERROR = "VALIDATION_ERROR"
    MISSING_FIELD = "MISSING_FIELD"
    INVALID_FIELD = "INVALID_FIELD"
    UNAUTHENTICATED = "UNAUTHENTICATED"

    # Input State Errors (2xxx)
    PROJECT_NOT_FOUND = "PROJECT_NOT_FOUND"
    EMPTY_SCOPE = "EMPTY_SCOPE"
    ESTIMATE_NOT_FOUND = "ESTIMATE_NOT_FOUND"
    ESTIMATE_SEALED = "ESTIMATE_SEALED"

    # Concurrency Errors (3xxx)
    DRAFT_CONFLICT = "DRAFT_CONFLICT"

    # Firestore Errors (5xxx)
    FIRESTORE_ERROR = "FIRESTORE_ERROR"
    FIRESTORE_WRITE_FAILED = "FIRESTORE_WRITE_FAILED"

    # LLM Errors (6xxx)
    LLM_ERROR = "LLM_ERROR"
    LLM_RATE_LIMIT = "LLM_RATE_LIMIT"
    LLM_CONTEXT_TOO_LONG = "LLM_CONTEXT_TOO_LONG"

    # External Signal Errors (7xxx)
    EXTERNAL_API_ERROR = "EXTERNAL_API_ERROR"
    SIGNAL_UNAVAILABLE = "SIGNAL_UNAVAILABLE"


class PricingError(Exception):
    """Base exception for estimate engine errors.

    Provides structured error information for API responses.

    Attributes:
        code: Error code from ErrorCode constants
        message: Human-readable error message
        details: Additional error context
    """

    def __init__(
        self,
        code: str,
        message: str,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for API response."""
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details
        }

    def __repr__(self) -> str:
        return f"PricingError(code={self.code!r}, message={self.message!r})"


class ValidationError(PricingError):
    """Validation-specific error."""

    def __init__(self, message: str, field: Optional[str] = None, details: Optional[Dict] = None):
        super().__init__(
            code=ErrorCode.VALIDATION_ERROR,
            message=message,
            details={**(details or {}), "field": field} if field else details
        )
        self.field = field


class NotFoundError(PricingError):
    """A project or estimate the request names does not exist for this user."""

    def __init__(self, code: str, message: str, resource_id: str, details: Optional[Dict] = None):
        super().__init__(
            code=code,
            message=message,
            details={**(details or {}), "resource_id": resource_id}
        )
        self.resource_id = resource_id


class DraftConflictError(PricingError):
    """Another regeneration replaced the project's draft first."""

    def __init__(
        self,
        project_id: str,
        expected_version: Optional[int] = None,
        actual_version: Optional[int] = None,
        details: Optional[Dict] = None
    ):
        super().__init__(
            code=ErrorCode.DRAFT_CONFLICT,
            message="Draft estimate was modified by a concurrent regeneration",
            details={
                **(details or {}),
                "project_id": project_id,
                "expected_version": expected_version,
                "actual_version": actual_version,
            }
        )
        self.project_id = project_id
        self.expected_version = expected_version
        self.actual_version = actual_version


class SignalError(PricingError):
    """A pricing signal source (AI, web search) failed or returned garbage.

    Never surfaced to the caller; the signal is treated as absent.
    """

    def __init__(
        self,
        source: str,
        message: str,
        code: str = ErrorCode.SIGNAL_UNAVAILABLE,
        details: Optional[Dict] = None
    ):
        super().__init__(
            code=code,
            message=message,
            details={**(details or {}), "source": source}
        )
        self.source = source
