"""
Database subsystem for ranksync.

Provides the async SQLAlchemy engine, session management and the ORM base
for model definitions.
"""

from ranksync.core.database.base import Base, IdMixin
from ranksync.core.database.service import (
    DatabaseInitializationError,
    DatabaseNotInitializedError,
    DatabaseService,
)

__all__ = [
    "Base",
    "IdMixin",
    "DatabaseService",
    "DatabaseInitializationError",
    "DatabaseNotInitializedError",
]
