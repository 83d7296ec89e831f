"""
Pytest Configuration and Fixtures for ranksync Tests
====================================================

Purpose
-------
Shared fixtures for the unit suite: in-memory stand-ins for the durable
store and the Redis client, plus a freshly loaded ConfigManager per test.

Architecture Notes
------------------
- Unit tests run the real RankingProjection against `FakeRedis`, which
  implements the RedisService surface with Redis's sorted-set ordering
  (score, then member bytes).
- `FakePlayerStore` implements the PlayerStore surface in memory.
- Both fakes accept queued exceptions to inject failures.
- Integration fixtures (testcontainers) live in tests/integration/conftest.py.
"""

from __future__ import annotations

import os
from collections import defaultdict
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

import pytest

os.environ.setdefault("ENVIRONMENT", "testing")

from ranksync.core.config.manager import ConfigManager  # noqa: E402
from ranksync.core.exceptions import StoreReadError  # noqa: E402
from ranksync.modules.leaderboard.engine import LeaderboardEngine  # noqa: E402
from ranksync.modules.leaderboard.projection import RankingProjection  # noqa: E402
from ranksync.modules.leaderboard.query_service import RankQueryService  # noqa: E402
from ranksync.modules.leaderboard.store import GroupEntry, PlayerRow  # noqa: E402


# ============================================================================
# FAKES
# ============================================================================


class FakeRedis:
    """In-memory replacement for the RedisService classmethod surface."""

    def __init__(self) -> None:
        self.kv: Dict[str, str] = {}
        self.zsets: Dict[str, Dict[str, float]] = defaultdict(dict)
        self.zadd_failures: List[BaseException] = []
        self.zadd_sizes: List[int] = []
        self.healthy = True

    def _ordered(self, key: str) -> List[Tuple[str, float]]:
        return sorted(self.zsets.get(key, {}).items(), key=lambda item: (item[1], item[0]))

    @staticmethod
    def _slice(items: List[Any], start: int, end: int) -> List[Any]:
        if end < 0:
            end = len(items) + end
        return items[start : end + 1]

    async def zadd_many(self, key: str, mapping: Mapping[str, float]) -> int:
        if self.zadd_failures:
            raise self.zadd_failures.pop(0)
        self.zadd_sizes.append(len(mapping))
        zset = self.zsets[key]
        added = sum(1 for member in mapping if member not in zset)
        zset.update(mapping)
        return added

    async def zcard(self, key: str) -> int:
        return len(self.zsets.get(key, {}))

    async def zrank(self, key: str, member: str) -> Optional[int]:
        for position, (candidate, _) in enumerate(self._ordered(key)):
            if candidate == member:
                return position
        return None

    async def zrank_many(self, key: str, members: Sequence[str]) -> List[Optional[int]]:
        positions = {member: i for i, (member, _) in enumerate(self._ordered(key))}
        return [positions.get(member) for member in members]

    async def zrange(self, key: str, start: int, end: int) -> List[str]:
        return [member for member, _ in self._slice(self._ordered(key), start, end)]

    async def zrange_withscores(self, key: str, start: int, end: int) -> List[Tuple[str, float]]:
        return self._slice(self._ordered(key), start, end)

    async def get(self, key: str) -> Optional[str]:
        return self.kv.get(key)

    async def set(self, key: str, value: Any, ttl_seconds: Optional[int] = None) -> bool:
        self.kv[key] = str(value)
        return True

    async def delete(self, *keys: str) -> int:
        removed = 0
        for key in keys:
            if self.kv.pop(key, None) is not None:
                removed += 1
            if self.zsets.pop(key, None) is not None:
                removed += 1
        return removed

    async def exists(self, key: str) -> bool:
        return key in self.kv or bool(self.zsets.get(key))

    async def health_check(self) -> bool:
        return self.healthy


class FakePlayerStore:
    """In-memory replacement for PlayerStore."""

    def __init__(self) -> None:
        self.players: Dict[int, Dict[str, Any]] = {}
        self._next_id = 1
        # Popped once per page read; None lets that read through
        self.read_failures: List[Optional[BaseException]] = []
        self.payout_failures: Dict[int, BaseException] = {}
        self.page_requests: List[Tuple[int, int, Optional[int]]] = []

    def add_player(self, name: str, money: int, country: str = "Turkey") -> int:
        player_id = self._next_id
        self._next_id += 1
        self.players[player_id] = {"name": name, "money": money, "country": country}
        return player_id

    def seed(self, moneys: Sequence[int], country: str = "Turkey") -> List[int]:
        return [self.add_player(f"player-{i}", money, country) for i, money in enumerate(moneys)]

    def fail_reads_after(self, pages: int, times: int = 10) -> None:
        """Serve `pages` page reads, then fail the next `times` with a dropped connection."""
        self.read_failures = [None] * pages + [
            StoreReadError(0, 0, OSError("connection reset")) for _ in range(times)
        ]

    async def fetch_page(
        self, offset: int, limit: int, after_id: Optional[int] = None
    ) -> List[Tuple[int, int]]:
        self.page_requests.append((offset, limit, after_id))
        if self.read_failures:
            failure = self.read_failures.pop(0)
            if failure is not None:
                raise failure
        ids = sorted(pid for pid in self.players if after_id is None or pid > after_id)
        return [(pid, self.players[pid]["money"]) for pid in ids[offset : offset + limit]]

    async def max_id(self) -> int:
        return max(self.players, default=0)

    async def exists(self, player_id: int) -> bool:
        return player_id in self.players

    async def hydrate(self, player_ids: Sequence[int]) -> Dict[int, PlayerRow]:
        return {
            pid: PlayerRow(
                id=pid,
                name=self.players[pid]["name"],
                country=self.players[pid]["country"],
                money=self.players[pid]["money"],
            )
            for pid in player_ids
            if pid in self.players
        }

    async def group_top(self, k: int) -> List[GroupEntry]:
        by_country: Dict[str, List[int]] = defaultdict(list)
        for pid, row in self.players.items():
            by_country[row["country"]].append(pid)

        entries: List[GroupEntry] = []
        for country in sorted(by_country):
            ranked = sorted(by_country[country], key=lambda pid: (-self.players[pid]["money"], pid))
            for rank, pid in enumerate(ranked[:k], start=1):
                row = self.players[pid]
                entries.append(GroupEntry(country, pid, row["name"], row["money"], rank))
        return entries

    async def search_by_name(self, query: str, limit: int) -> List[Dict[str, Any]]:
        needle = query.lower()
        matches = sorted(
            (row["name"], pid) for pid, row in self.players.items() if needle in row["name"].lower()
        )
        return [{"id": pid, "name": name} for name, pid in matches[:limit]]

    async def add_money(self, player_id: int, amount: int) -> bool:
        if player_id in self.payout_failures:
            raise self.payout_failures[player_id]
        if player_id not in self.players:
            return False
        self.players[player_id]["money"] += amount
        return True


# ============================================================================
# CONFIG
# ============================================================================


@pytest.fixture(autouse=True)
def config_manager():
    """Load YAML defaults fresh for every test; overrides never leak."""
    ConfigManager.reset()
    ConfigManager.initialize()
    yield ConfigManager
    ConfigManager.reset()


# ============================================================================
# LEADERBOARD FIXTURES
# ============================================================================


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def store() -> FakePlayerStore:
    return FakePlayerStore()


@pytest.fixture
def projection(fake_redis, config_manager) -> RankingProjection:
    return RankingProjection(redis=fake_redis, config=config_manager)


@pytest.fixture
def small_batches(config_manager):
    """Shrink every batch size so a handful of rows spans several pages."""
    config_manager.set("leaderboard.batching.floor", 1)
    for mode, page, page_ceiling in (("rebuild", 4, 8), ("delta", 3, 3)):
        config_manager.set(f"leaderboard.batching.{mode}.page_size", page)
        config_manager.set(f"leaderboard.batching.{mode}.page_ceiling", page_ceiling)
        config_manager.set(f"leaderboard.batching.{mode}.chunk_size", 2)
        config_manager.set(f"leaderboard.batching.{mode}.chunk_ceiling", 4)
    return config_manager


@pytest.fixture
def engine(store, projection, small_batches) -> LeaderboardEngine:
    return LeaderboardEngine(store=store, projection=projection, config_manager=small_batches)


@pytest.fixture
def queries(store, projection, engine, config_manager) -> RankQueryService:
    return RankQueryService(store, projection, engine, config_manager)
