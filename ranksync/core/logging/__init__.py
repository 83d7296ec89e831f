"""
ranksync Logging Infrastructure

Exports the structured logging subsystem and the sync-job log context.
"""

from ranksync.core.logging.logger import (
    LogContext,
    LoggingHealth,
    get_logger,
    get_logging_health,
    setup_logging,
    shutdown_logging,
)

__all__ = [
    "setup_logging",
    "shutdown_logging",
    "get_logger",
    "get_logging_health",
    "LogContext",
    "LoggingHealth",
]
