"""
Infrastructure exceptions for ranksync.

Purpose
-------
Define the structured exception hierarchy for infrastructure-level concerns:
database failures, cache failures, batch sizing failures and configuration
errors that require technical attention rather than a client-facing answer.

Design Notes
------------
- All infrastructure exceptions inherit from `RankSyncInfrastructureException`.
- Each exception carries:
  - `message`: human-readable description
  - `details`: additional structured context (dict)
  - `severity`: `ErrorSeverity` value for logging/alerting
  - `is_retryable`: whether the operation can be retried
  - `error_code`: short, stable identifier for programmatic use
- The adaptive batch loader reacts to `StoreReadError` and
  `CacheCapacityOverflowError` by shrinking its batch sizes; anything else
  propagates and aborts the pass.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional


class ErrorSeverity(Enum):
    """Error severity levels for logging and alerting."""

    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class RankSyncInfrastructureException(Exception):
    """
    Base exception for all ranksync infrastructure-level errors.

    Args:
        message: Human-readable error message
        details: Additional structured data about the error
        severity: Error severity level for logging handlers
        is_retryable: Whether the operation can be retried
        error_code: Optional code for programmatic handling

    Example:
        >>> raise RankSyncInfrastructureException(
        ...     "Database connection failed",
        ...     {"host": "localhost", "port": 5432}
        ... )
    """

    DEFAULT_SEVERITY: ErrorSeverity = ErrorSeverity.ERROR
    DEFAULT_RETRYABLE: bool = False

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        severity: Optional[ErrorSeverity] = None,
        is_retryable: Optional[bool] = None,
        error_code: Optional[str] = None,
    ) -> None:
        self.message: str = message
        self.details: Dict[str, Any] = details or {}
        self.severity: ErrorSeverity = severity or self.DEFAULT_SEVERITY
        self.is_retryable: bool = (
            is_retryable if is_retryable is not None else self.DEFAULT_RETRYABLE
        )
        self.error_code: str = error_code or self.__class__.__name__
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
            "severity": self.severity.value,
            "is_retryable": self.is_retryable,
        }

    def __str__(self) -> str:
        details_str = f" | Details: {self.details}" if self.details else ""
        return f"[{self.error_code}] {self.message}{details_str}"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"details={self.details!r}, "
            f"severity={self.severity.value!r}, "
            f"is_retryable={self.is_retryable!r}"
            ")"
        )


class ConfigurationError(RankSyncInfrastructureException):
    """Raised when a configuration key is invalid or missing."""

    DEFAULT_SEVERITY = ErrorSeverity.CRITICAL
    DEFAULT_RETRYABLE = False

    def __init__(self, config_key: str, message: str) -> None:
        self.config_key = config_key
        super().__init__(
            f"Configuration error for {config_key}: {message}",
            details={"config_key": config_key, "message": message},
            error_code="CONFIG_ERROR",
        )


class StoreReadError(RankSyncInfrastructureException):
    """
    Raised when a paged read from the durable store fails transiently.

    The batch loader answers this by halving its page size and retrying
    the same offset.

    Args:
        offset: Offset of the page that failed
        limit: Page size that was requested
        original_error: The underlying SQLAlchemy/driver exception
    """

    DEFAULT_SEVERITY = ErrorSeverity.WARNING
    DEFAULT_RETRYABLE = True

    def __init__(self, offset: int, limit: int, original_error: Exception) -> None:
        self.offset = offset
        self.limit = limit
        self.original_error = original_error
        super().__init__(
            f"Store read failed at offset {offset} (limit {limit}): {original_error}",
            details={
                "offset": offset,
                "limit": limit,
                "error": str(original_error),
                "error_type": type(original_error).__name__,
            },
            error_code="STORE_READ_ERROR",
        )


class CacheCapacityOverflowError(RankSyncInfrastructureException):
    """
    Raised when a sorted-set write chunk is too large for the cache.

    The batch loader answers this by halving its chunk size and retrying
    the same sub-chunk.

    Args:
        chunk_size: Number of members in the rejected write
        original_error: The underlying exception
    """

    DEFAULT_SEVERITY = ErrorSeverity.WARNING
    DEFAULT_RETRYABLE = True

    def __init__(self, chunk_size: int, original_error: Exception) -> None:
        self.chunk_size = chunk_size
        self.original_error = original_error
        super().__init__(
            f"Cache rejected a write of {chunk_size} members: {original_error}",
            details={
                "chunk_size": chunk_size,
                "error": str(original_error),
                "error_type": type(original_error).__name__,
            },
            error_code="CACHE_CAPACITY_OVERFLOW",
        )


class BatchCollapseError(RankSyncInfrastructureException):
    """
    Raised when an adaptive batch size would shrink below its floor.

    Fatal for the running pass: the loader stops and the error propagates.

    Args:
        dimension: Which batch size collapsed ("page" or "chunk")
        attempted: The size the halving would have produced
        floor: The configured minimum
    """

    DEFAULT_SEVERITY = ErrorSeverity.CRITICAL
    DEFAULT_RETRYABLE = False

    def __init__(self, dimension: str, attempted: int, floor: int) -> None:
        self.dimension = dimension
        self.attempted = attempted
        self.floor = floor
        super().__init__(
            f"{dimension.capitalize()} size collapsed to {attempted}, below floor {floor}",
            details={"dimension": dimension, "attempted": attempted, "floor": floor},
            error_code="BATCH_COLLAPSE",
        )


# Utility functions for exception handling patterns


def is_transient_error(exc: Exception) -> bool:
    """Check if an exception represents a transient error that can be retried."""
    if isinstance(exc, RankSyncInfrastructureException):
        return exc.is_retryable
    return False


def get_error_severity(exc: Exception) -> ErrorSeverity:
    """Get the severity level of an exception for logging."""
    if isinstance(exc, RankSyncInfrastructureException):
        return exc.severity
    return ErrorSeverity.ERROR


def should_alert(exc: Exception) -> bool:
    """True if severity is ERROR or CRITICAL."""
    return get_error_severity(exc) in (ErrorSeverity.ERROR, ErrorSeverity.CRITICAL)
