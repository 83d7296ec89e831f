"""
Rank Query Service
==================

Purpose
-------
Answer leaderboard reads from the ranking projection, hydrating ids from
the durable store.

Domain
------
- `get_window()`     top N plus a requested player's neighborhood
- `get_group_top()`  per-country top K, computed in the store
- `autocomplete()`   name search for the player picker

Window rule
-----------
The window is the top N (default 100). When a player ranked below the top N
is requested, positions `rank-3 .. rank+2` are appended (clamped at rank 1),
skipping anything already in the top N. Ranks are 1-based; equal money is
ordered by ascending player id.

Self-healing
------------
An empty projection, or one not marked ready (never built, or left partial
by a rebuild that failed part-way), triggers a synchronous full rebuild
before answering, unless the engine is already busy with another job. If
the projection is still not ready afterwards, `LeaderboardNotReadyError` is
raised. An empty projection that is marked ready (an empty store) answers
with an empty window.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from ranksync.core.config.manager import ConfigManager
from ranksync.core.logging.logger import get_logger
from ranksync.modules.shared.base_service import BaseService
from ranksync.modules.shared.exceptions import (
    LeaderboardNotReadyError,
    PlayerNotFoundError,
    PlayerNotYetVisibleError,
)

from .projection import RankingProjection
from .store import GroupEntry, PlayerStore

if TYPE_CHECKING:
    from .engine import LeaderboardEngine


@dataclass(frozen=True)
class RankedPlayer:
    id: int
    name: str
    country: str
    money: int
    rank: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "country": self.country,
            "money": self.money,
            "rank": self.rank,
        }


class RankQueryService(BaseService):
    def __init__(
        self,
        store: PlayerStore,
        projection: RankingProjection,
        engine: Optional[LeaderboardEngine] = None,
        config_manager: Any = ConfigManager,
        logger: Optional[Any] = None,
    ) -> None:
        super().__init__(config_manager, logger or get_logger(__name__))
        self._store = store
        self._projection = projection
        self._engine = engine

    # ========================================================================
    # WINDOW
    # ========================================================================

    async def get_window(self, player_id: Optional[int] = None) -> List[RankedPlayer]:
        """
        Raises:
            LeaderboardNotReadyError: projection not ready and could not be rebuilt
            PlayerNotYetVisibleError: player exists but is not ranked yet
            PlayerNotFoundError: player does not exist
        """
        top_n = self.get_config_int("leaderboard.window.top_n", 100)
        before = self.get_config_int("leaderboard.window.before", 3)
        after = self.get_config_int("leaderboard.window.after", 2)

        if await self._projection.size() == 0 or not await self._projection.is_ready():
            await self._heal()
            if await self._projection.size() == 0:
                return []

        top_ids = await self._projection.top_ids(top_n)
        ids = top_ids

        if player_id is not None:
            position = await self._projection.rank_of(player_id)
            if position is None:
                if await self._store.exists(player_id):
                    raise PlayerNotYetVisibleError(player_id)
                raise PlayerNotFoundError(player_id)

            if position >= top_n:
                seen = set(top_ids)
                around = await self._projection.ids_between(position - before, position + after)
                ids = top_ids + [pid for pid in around if pid not in seen]

        return await self._hydrate(ids)

    async def ensure_ready(self) -> None:
        """
        Heal a projection that is not marked ready before serving from it.

        Raises:
            LeaderboardNotReadyError: another job holds the engine, or the
                rebuild failed
        """
        if not await self._projection.is_ready():
            await self._heal()

    async def _heal(self) -> None:
        if self._engine is not None and not self._engine.is_busy:
            self.log.info(
                "Ranking projection empty or not ready; rebuilding before answering",
                extra={"size": await self._projection.size()},
            )
            try:
                await self._engine.full_rebuild()
            except Exception as exc:
                self.log.warning(
                    "Self-healing rebuild failed",
                    extra={"error": str(exc), "error_type": type(exc).__name__},
                    exc_info=True,
                )
                raise LeaderboardNotReadyError("Leaderboard rebuild failed") from exc

        if not await self._projection.is_ready():
            raise LeaderboardNotReadyError()

    async def _hydrate(self, ids: List[int]) -> List[RankedPlayer]:
        if not ids:
            return []

        rows = await self._store.hydrate(ids)
        positions = await self._projection.ranks_of(ids)

        window = [
            RankedPlayer(
                id=pid,
                name=rows[pid].name,
                country=rows[pid].country,
                money=rows[pid].money,
                rank=position + 1,
            )
            for pid, position in zip(ids, positions)
            if pid in rows and position is not None
        ]
        window.sort(key=lambda entry: entry.rank)
        return window

    # ========================================================================
    # GROUPS & SEARCH
    # ========================================================================

    async def get_group_top(self, k: Optional[int] = None) -> List[GroupEntry]:
        top_k = k if k is not None else self.get_config_int("leaderboard.group.top_k", 10)
        return await self._store.group_top(top_k)

    async def autocomplete(self, query: Optional[str]) -> List[Dict[str, Any]]:
        term = (query or "").strip()
        if not term:
            return []
        limit = self.get_config_int("leaderboard.autocomplete.limit", 10)
        return await self._store.search_by_name(term, limit)
