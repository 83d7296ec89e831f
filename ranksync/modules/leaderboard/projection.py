"""
Ranking Projection
==================

Purpose
-------
Client for the Redis sorted set that holds the live ranking, plus the three
sync markers that survive restarts (readiness flag, last-synced id and the
delta cursor).

Encoding
--------
Each player is stored with score `-money` and member `zero-padded id`.
Ascending sorted-set order (ZRANGE / ZRANK) is therefore highest money first,
and equal money falls back to Redis's lexicographic member order, which the
zero padding turns into ascending numeric id. Rank 0 is the richest player.

Scores are IEEE doubles, so money above 2**53 loses precision in ordering.

Failure classification
----------------------
A rejected bulk write (`MemoryError`, `OverflowError`, a socket timeout or a
Redis `OOM` reply) is raised as `CacheCapacityOverflowError` so the batch
loader can shrink its chunk size. Every other failure propagates unchanged.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, List, Optional, Sequence, Tuple

from redis.exceptions import ResponseError
from redis.exceptions import TimeoutError as RedisTimeoutError

from ranksync.core.config.manager import ConfigManager
from ranksync.core.exceptions import CacheCapacityOverflowError
from ranksync.core.logging.logger import get_logger
from ranksync.core.redis.service import RedisService

logger = get_logger(__name__)

MEMBER_WIDTH = 20


def encode_member(player_id: int) -> str:
    return str(player_id).zfill(MEMBER_WIDTH)


def decode_member(member: str) -> int:
    return int(member)


def encode_score(money: int) -> float:
    return float(-money)


def decode_score(score: float) -> int:
    return int(-score)


def _is_capacity_error(exc: BaseException) -> bool:
    if isinstance(exc, (MemoryError, OverflowError, RedisTimeoutError)):
        return True
    return isinstance(exc, ResponseError) and str(exc).startswith("OOM")


@dataclass(frozen=True)
class SyncState:
    """Persisted sync markers."""

    last_synced_id: int
    cursor: int
    ready: bool


class RankingProjection:
    """
    The derived ranking index. Written only by the batch loader and the
    engine; read by the query and reward services.

    `redis` defaults to the `RedisService` singleton; any object exposing the
    same classmethod surface can be passed instead.
    """

    def __init__(self, redis: Any = RedisService, config: Any = ConfigManager) -> None:
        self._redis = redis
        self.key = config.get("leaderboard.keys.ranking", "leaderboard")
        self.ready_key = config.get("leaderboard.keys.ready", "leaderboard:init_done")
        self.last_synced_key = config.get(
            "leaderboard.keys.last_synced_id", "leaderboard:last_known_id"
        )
        self.cursor_key = config.get("leaderboard.keys.cursor", "leaderboard:sync_offset")

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def upsert(self, entries: Sequence[Tuple[int, int]]) -> int:
        """
        Insert or update `(player_id, money)` pairs in one write.

        Idempotent: applying the same entries twice leaves the same state.

        Raises:
            CacheCapacityOverflowError: the write was too large for the cache
        """
        if not entries:
            return 0

        mapping = {encode_member(player_id): encode_score(money) for player_id, money in entries}
        try:
            await self._redis.zadd_many(self.key, mapping)
        except Exception as exc:
            if _is_capacity_error(exc):
                raise CacheCapacityOverflowError(len(mapping), exc) from exc
            raise
        return len(mapping)

    async def clear(self) -> None:
        await self._redis.delete(self.key)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def size(self) -> int:
        return await self._redis.zcard(self.key)

    async def top_ids(self, n: int) -> List[int]:
        if n <= 0:
            return []
        members = await self._redis.zrange(self.key, 0, n - 1)
        return [decode_member(m) for m in members]

    async def top_entries(self, n: int) -> List[Tuple[int, int]]:
        """Top `n` as `(player_id, money)` pairs, best first."""
        if n <= 0:
            return []
        rows = await self._redis.zrange_withscores(self.key, 0, n - 1)
        return [(decode_member(m), decode_score(s)) for m, s in rows]

    async def ids_between(self, start: int, end: int) -> List[int]:
        """Ids at 0-based positions `start..end` (inclusive)."""
        members = await self._redis.zrange(self.key, max(start, 0), end)
        return [decode_member(m) for m in members]

    async def rank_of(self, player_id: int) -> Optional[int]:
        """0-based position, or None if the player is not projected."""
        return await self._redis.zrank(self.key, encode_member(player_id))

    async def ranks_of(self, player_ids: Sequence[int]) -> List[Optional[int]]:
        return await self._redis.zrank_many(
            self.key, [encode_member(player_id) for player_id in player_ids]
        )

    # ------------------------------------------------------------------
    # Sync markers
    # ------------------------------------------------------------------

    async def get_sync_state(self) -> SyncState:
        last_synced = await self._redis.get(self.last_synced_key)
        cursor = await self._redis.get(self.cursor_key)
        ready = await self._redis.exists(self.ready_key)
        return SyncState(
            last_synced_id=int(last_synced) if last_synced else 0,
            cursor=int(cursor) if cursor else 0,
            ready=ready,
        )

    async def is_ready(self) -> bool:
        return await self._redis.exists(self.ready_key)

    async def set_ready(self, ready: bool) -> None:
        if ready:
            await self._redis.set(self.ready_key, "true")
        else:
            await self._redis.delete(self.ready_key)

    async def set_last_synced_id(self, player_id: int) -> None:
        await self._redis.set(self.last_synced_key, str(player_id))

    async def set_cursor(self, cursor: int) -> None:
        await self._redis.set(self.cursor_key, str(cursor))
