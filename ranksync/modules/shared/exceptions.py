"""
Domain exceptions for ranksync.

Purpose
-------
Define the client-facing exception hierarchy for leaderboard queries. These
are raised by the query service and translated into HTTP status codes by
the request surface (`LeaderboardAPI`).

Design Notes
------------
- All domain exceptions inherit from `RankSyncDomainException`.
- Each exception carries `message`, `details`, `severity`, `is_retryable`
  and `error_code`, mirroring the infrastructure hierarchy.
- `is_retryable` tells clients whether asking again later can succeed:
  a projection that is still being built, or a player created after the
  last sync, both resolve on their own.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from ranksync.core.exceptions import ErrorSeverity


class RankSyncDomainException(Exception):
    """
    Base exception for all ranksync domain-level errors.

    Args:
        message: Human-readable error message
        details: Additional structured data about the error
        severity: Error severity level for logging handlers
        is_retryable: Whether the request can be retried later
        error_code: Optional code for programmatic handling
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


class LeaderboardNotReadyError(RankSyncDomainException):
    """
    Raised when the ranking projection is being (re)built and cannot
    answer queries yet.
    """

    DEFAULT_SEVERITY = ErrorSeverity.INFO
    DEFAULT_RETRYABLE = True

    def __init__(self, reason: str = "Leaderboard indexing is in progress") -> None:
        super().__init__(
            reason,
            details={"reason": reason},
            error_code="IndexingInProgress",
        )


class NotFoundError(RankSyncDomainException):
    """
    Raised when a requested resource cannot be found.

    Args:
        resource_type: Type of resource (e.g., "Player")
        identifier: Optional identifier for the missing resource
    """

    DEFAULT_SEVERITY = ErrorSeverity.INFO
    DEFAULT_RETRYABLE = False

    def __init__(
        self,
        resource_type: str,
        identifier: Optional[Any] = None,
        error_code: Optional[str] = None,
    ) -> None:
        self.resource_type = resource_type
        self.identifier = identifier

        if identifier is not None:
            message = f"{resource_type} not found: {identifier}"
        else:
            message = f"{resource_type} not found"

        super().__init__(
            message,
            details={"resource_type": resource_type, "identifier": identifier},
            error_code=error_code or f"{resource_type.upper()}_NOT_FOUND",
        )


class PlayerNotFoundError(NotFoundError):
    """Raised when a player id does not exist in the durable store."""

    def __init__(self, player_id: int) -> None:
        self.player_id = player_id
        super().__init__("Player", player_id, error_code="PlayerNotFound")


class PlayerNotYetVisibleError(RankSyncDomainException):
    """
    Raised when a player exists in the durable store but has not been
    synced into the ranking projection yet. Resolves after the next
    delta pass reaches the player.
    """

    DEFAULT_SEVERITY = ErrorSeverity.INFO
    DEFAULT_RETRYABLE = True

    def __init__(self, player_id: int) -> None:
        self.player_id = player_id
        super().__init__(
            f"Player {player_id} is not ranked yet",
            details={"player_id": player_id},
            error_code="PlayerNotYetVisible",
        )


class ValidationError(RankSyncDomainException):
    """
    Raised when request input fails validation.

    Args:
        field: Name of the field that failed validation
        message: Explanation of why validation failed
    """

    DEFAULT_SEVERITY = ErrorSeverity.INFO
    DEFAULT_RETRYABLE = False

    def __init__(self, field: str, message: str) -> None:
        self.field = field
        self.validation_message = message
        super().__init__(
            f"Validation error for {field}: {message}",
            details={"field": field, "validation_message": message},
            error_code=f"VALIDATION_{field.upper()}",
        )
