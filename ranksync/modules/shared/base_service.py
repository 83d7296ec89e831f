"""
Base Service Foundation

Purpose
-------
Provides the foundational class for the leaderboard services. Services
implement the ranking logic, manage their own store/cache collaborators
and raise domain exceptions.

Design Notes
------------
This base class provides:
- Structured logging with operation context
- Safe config access patterns
- Validation helpers that raise `ValidationError`

What this class does NOT do:
- Manage database transactions (that's DatabaseService's job)
- Wrap infrastructure services
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Optional

from ranksync.core.exceptions import ConfigurationError

from .exceptions import ValidationError

if TYPE_CHECKING:
    from logging import Logger

    from ranksync.core.config.manager import ConfigManager


class BaseService:
    """
    Base class for all domain services.

    Args:
        config_manager: Tunable configuration (ConfigManager or a compatible object)
        logger: Structured logger instance
    """

    def __init__(self, config_manager: type[ConfigManager], logger: Logger) -> None:
        self._config = config_manager
        self.log = logger

    def get_config(
        self, key: str, default: Optional[Any] = None, required: bool = False
    ) -> Any:
        """
        Safely retrieve configuration value.

        Raises:
            ConfigurationError: If required=True and key is missing
        """
        value = self._config.get(key, default)
        if required and value is None:
            raise ConfigurationError(
                key, f"Required configuration key '{key}' is missing"
            )
        return value

    def get_config_int(self, key: str, default: int) -> int:
        value = self.get_config(key, default)
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ConfigurationError(key, f"expected an integer, got {value!r}")
        return int(value)

    def log_operation(self, operation: str, **context: Any) -> None:
        """Log a service operation with structured context."""
        self.log.info(
            f"Service operation: {operation}",
            extra={"operation": operation, **context},
        )

    def log_error(self, operation: str, error: Exception, **context: Any) -> None:
        """Log a service error with full context."""
        self.log.error(
            f"Service error during {operation}: {error}",
            extra={
                "operation": operation,
                "error_type": type(error).__name__,
                "error_message": str(error),
                **context,
            },
        )

    def validate_positive_int(self, value: Any, name: str) -> int:
        """
        Validate that a value is a positive integer.

        Raises:
            ValidationError: If value is not positive
        """
        if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
            raise ValidationError(
                name, f"{name} must be a positive integer, got {value!r}"
            )
        return value
