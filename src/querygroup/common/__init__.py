"""Shared infrastructure: logging, settings, errors and tracing."""
from querygroup.common.errors import (
    ErrorCode,
    ErrorSeverity,
    GroupError,
    QueryGroupError,
    NotFoundError,
    BackendNotFoundError,
    SavedQuerySetNotFoundError,
    BackendLoadError,
    MigrationFailedError,
    SavedQueryFetchError,
    InvalidStateError,
)
from querygroup.common.logger import configure_logging, get_logger, group_context

__all__ = [
    "ErrorCode",
    "ErrorSeverity",
    "GroupError",
    "QueryGroupError",
    "NotFoundError",
    "BackendNotFoundError",
    "SavedQuerySetNotFoundError",
    "BackendLoadError",
    "MigrationFailedError",
    "SavedQueryFetchError",
    "InvalidStateError",
    "configure_logging",
    "get_logger",
    "group_context",
]
