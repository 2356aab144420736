from enum import Enum
from typing import Optional, Any
from pydantic import BaseModel, ConfigDict


class ErrorSeverity(str, Enum):
    """Severity levels for query group errors."""
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class ErrorCode(str, Enum):
    """Standardized error codes for query group operations."""
    BACKEND_NOT_FOUND = "BACKEND_NOT_FOUND"
    BACKEND_LOAD_FAILED = "BACKEND_LOAD_FAILED"
    SAVED_QUERY_SET_NOT_FOUND = "SAVED_QUERY_SET_NOT_FOUND"
    SAVED_QUERY_FETCH_FAILED = "SAVED_QUERY_FETCH_FAILED"
    MIGRATION_FAILED = "MIGRATION_FAILED"
    INVALID_STATE = "INVALID_STATE"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


class GroupError(BaseModel):
    """Represents a failure reported by a query group operation.

    Attributes:
        operation (str): The operation that failed (e.g. "initialize").
        message (str): A human-readable error message.
        severity (ErrorSeverity): The severity of the error.
        error_code (ErrorCode): The standardized error code.
        details (Optional[Any]): Additional context or metadata.
    """
    model_config = ConfigDict(extra="ignore")

    operation: str
    message: str
    severity: ErrorSeverity
    error_code: ErrorCode
    details: Optional[Any] = None


class QueryGroupError(Exception):
    """Base class for every error raised by the query group core."""

    code: ErrorCode = ErrorCode.UNKNOWN_ERROR
    severity: ErrorSeverity = ErrorSeverity.ERROR

    def __init__(self, message: str, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_record(self, operation: str) -> GroupError:
        return GroupError(
            operation=operation,
            message=self.message,
            severity=self.severity,
            error_code=self.code,
            details=self.details,
        )


class NotFoundError(QueryGroupError):
    """A referenced entity could not be resolved."""


class BackendNotFoundError(NotFoundError):
    code = ErrorCode.BACKEND_NOT_FOUND

    def __init__(self, ref: Any):
        super().__init__(f"Backend not found: {ref!r}", details={"ref": str(ref)})
        self.ref = ref


class SavedQuerySetNotFoundError(NotFoundError):
    code = ErrorCode.SAVED_QUERY_SET_NOT_FOUND

    def __init__(self, uid: str):
        super().__init__(f"Saved query set not found: {uid!r}", details={"uid": uid})
        self.uid = uid


class BackendLoadError(QueryGroupError):
    """A backend plugin was found but failed to load."""
    code = ErrorCode.BACKEND_LOAD_FAILED


class MigrationFailedError(QueryGroupError):
    """Backend resolution failed while migrating a query list."""
    code = ErrorCode.MIGRATION_FAILED


class SavedQueryFetchError(QueryGroupError):
    code = ErrorCode.SAVED_QUERY_FETCH_FAILED


class InvalidStateError(QueryGroupError):
    code = ErrorCode.INVALID_STATE
    severity = ErrorSeverity.WARNING
