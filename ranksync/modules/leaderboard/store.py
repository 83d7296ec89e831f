"""
Player Store
============

Purpose
-------
Query layer over the durable store (PostgreSQL), the single source of truth
for players and their money.

Domain
------
- Ascending-by-id pages of `(id, money)` for the batch loader
- The current maximum id (rebuild watermark)
- Batched hydration of ids into display rows
- Per-country top-K with a window function
- Case-insensitive name search for autocomplete
- Additive money updates for reward payouts

Every read goes through `DatabaseService.get_session()`; the only write goes
through `DatabaseService.get_transaction()`.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

from sqlalchemy import func, select, update
from sqlalchemy.exc import DBAPIError

from ranksync.core.database.service import DatabaseService
from ranksync.core.exceptions import StoreReadError
from ranksync.core.logging.logger import get_logger
from ranksync.database.models import Country, Player

logger = get_logger(__name__)


@dataclass(frozen=True)
class PlayerRow:
    id: int
    name: str
    country: str
    money: int


@dataclass(frozen=True)
class GroupEntry:
    """One row of the per-country top-K."""

    country: str
    id: int
    name: str
    money: int
    rank: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "country": self.country,
            "id": self.id,
            "name": self.name,
            "money": self.money,
            "rank": self.rank,
        }


def escape_like(value: str, escape: str = "\\") -> str:
    """Escape LIKE wildcards so user input matches literally."""
    return (
        value.replace(escape, escape * 2)
        .replace("%", f"{escape}%")
        .replace("_", f"{escape}_")
    )


class PlayerStore:
    """Durable store client. `database` defaults to the `DatabaseService` singleton."""

    def __init__(self, database: Any = DatabaseService) -> None:
        self._db = database

    async def fetch_page(
        self,
        offset: int,
        limit: int,
        after_id: Optional[int] = None,
    ) -> List[Tuple[int, int]]:
        """
        One page of `(id, money)` ordered by ascending id.

        Raises:
            StoreReadError: the read failed at the driver level; retryable
                with a smaller page
        """
        stmt = select(Player.id, Player.money)
        if after_id is not None:
            stmt = stmt.where(Player.id > after_id)
        stmt = stmt.order_by(Player.id.asc()).offset(offset).limit(limit)

        try:
            async with self._db.get_session() as session:
                result = await session.execute(stmt)
                return [(row.id, row.money) for row in result]
        except (DBAPIError, OSError) as exc:
            raise StoreReadError(offset, limit, exc) from exc

    async def max_id(self) -> int:
        async with self._db.get_session() as session:
            result = await session.execute(select(func.coalesce(func.max(Player.id), 0)))
            return int(result.scalar_one())

    async def exists(self, player_id: int) -> bool:
        async with self._db.get_session() as session:
            result = await session.execute(select(Player.id).where(Player.id == player_id))
            return result.scalar_one_or_none() is not None

    async def hydrate(self, player_ids: Sequence[int]) -> Dict[int, PlayerRow]:
        """Display rows for every id that exists; missing ids are absent from the result."""
        if not player_ids:
            return {}

        stmt = (
            select(Player.id, Player.name, Country.name.label("country"), Player.money)
            .join(Country, Player.country_id == Country.id)
            .where(Player.id.in_(list(player_ids)))
        )
        async with self._db.get_session() as session:
            result = await session.execute(stmt)
            return {
                row.id: PlayerRow(id=row.id, name=row.name, country=row.country, money=row.money)
                for row in result
            }

    async def group_top(self, k: int) -> List[GroupEntry]:
        """
        Top `k` players of every country, ordered by country name and then
        in-country rank. Equal money is ordered by ascending id.
        """
        ranked = select(
            Player.id,
            Player.name,
            Player.money,
            Player.country_id,
            func.row_number()
            .over(
                partition_by=Player.country_id,
                order_by=(Player.money.desc(), Player.id.asc()),
            )
            .label("rank"),
        ).subquery()

        stmt = (
            select(
                Country.name.label("country"),
                ranked.c.id,
                ranked.c.name,
                ranked.c.money,
                ranked.c.rank,
            )
            .join(Country, Country.id == ranked.c.country_id)
            .where(ranked.c.rank <= k)
            .order_by(Country.name, Country.id, ranked.c.rank)
        )

        async with self._db.get_session() as session:
            result = await session.execute(stmt)
            return [
                GroupEntry(
                    country=row.country,
                    id=row.id,
                    name=row.name,
                    money=row.money,
                    rank=row.rank,
                )
                for row in result
            ]

    async def search_by_name(self, query: str, limit: int) -> List[Dict[str, Any]]:
        pattern = f"%{escape_like(query)}%"
        stmt = (
            select(Player.id, Player.name)
            .where(Player.name.ilike(pattern, escape="\\"))
            .order_by(Player.name, Player.id)
            .limit(limit)
        )
        async with self._db.get_session() as session:
            result = await session.execute(stmt)
            return [{"id": row.id, "name": row.name} for row in result]

    async def add_money(self, player_id: int, amount: int) -> bool:
        """Atomically add `amount` to a player's money. False if the player is gone."""
        stmt = (
            update(Player)
            .where(Player.id == player_id)
            .values(money=Player.money + amount)
        )
        async with self._db.get_transaction() as session:
            result = await session.execute(stmt)
            return result.rowcount > 0
