"""
Declarative base and shared mixins for ranksync ORM models.

All models inherit from `Base` so a single `Base.metadata` describes the
schema (used by schema tooling and the integration test fixtures).
"""

from __future__ import annotations

from sqlalchemy import Integer, MetaData
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


class Base(DeclarativeBase):
    metadata = MetaData(naming_convention=NAMING_CONVENTION)


class IdMixin:
    """Serial integer primary key; ids are assigned in increasing order."""

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
