"""
Database Models Package

Schema-only SQLAlchemy models for the durable store. Importing this package
registers every table on `Base.metadata`.
"""

from ranksync.core.database.base import Base

from .player import Country, Player

__all__ = [
    "Base",
    "Country",
    "Player",
]
