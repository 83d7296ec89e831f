"""
Leaderboard Engine
==================

Purpose
-------
Lifecycle owner of the ranking projection. Holds the single-flight lock and
exposes the three heavy entry points the scheduler (and the self-healing
read path) call.

Entry points
------------
- `full_rebuild()`      clear the projection and reload it from the store
- `delta_sync()`        append players created since the last rebuild
- `distribute_rewards()` pay the weekly rewards, then rebuild

Each entry point returns None without doing anything when another one is
already running. The lock is released on every exit path; failures
propagate to the caller after being logged.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Optional

from ranksync.core.config.manager import ConfigManager
from ranksync.core.logging.logger import LogContext, get_logger
from ranksync.modules.shared.base_service import BaseService

from .loader import AdaptiveBatchLoader
from .lock import SingleFlightLock
from .projection import RankingProjection, SyncState
from .rewards import DistributionReport, RewardDistributionEngine
from .store import PlayerStore


@dataclass(frozen=True)
class RebuildReport:
    applied: int
    pages: int
    last_synced_id: int
    duration_ms: float


@dataclass(frozen=True)
class DeltaReport:
    passes: int
    applied: int
    exhausted: bool
    cursor: int
    duration_ms: float


class LeaderboardEngine(BaseService):
    def __init__(
        self,
        store: Optional[PlayerStore] = None,
        projection: Optional[RankingProjection] = None,
        config_manager: Any = ConfigManager,
        lock: Optional[SingleFlightLock] = None,
        logger: Optional[Any] = None,
    ) -> None:
        super().__init__(config_manager, logger or get_logger(__name__))
        self.store = store or PlayerStore()
        self.projection = projection or RankingProjection(config=config_manager)
        self.lock = lock or SingleFlightLock()
        self.loader = AdaptiveBatchLoader(
            self.store,
            self.projection,
            floor=self.get_config_int("leaderboard.batching.floor", 1000),
        )
        self.rewards = RewardDistributionEngine(
            self.store, self.projection, config_manager, self.log
        )

    # ========================================================================
    # FULL REBUILD
    # ========================================================================

    async def full_rebuild(self) -> Optional[RebuildReport]:
        if not self.lock.try_acquire():
            self.log.info("Full rebuild skipped; another leaderboard job is running")
            return None
        try:
            async with LogContext(job="full_rebuild"):
                return await self._rebuild_locked()
        finally:
            self.lock.release()

    async def _rebuild_locked(self) -> RebuildReport:
        start = time.perf_counter()
        self.log_operation("full_rebuild")

        await self.projection.set_ready(False)
        await self.projection.clear()
        await self.projection.set_cursor(0)

        # Rows created after this read are picked up again by delta sync.
        watermark = await self.store.max_id()

        try:
            result = await self.loader.load_range(
                after_id=None,
                start_offset=0,
                page_size=self.get_config_int("leaderboard.batching.rebuild.page_size", 500_000),
                chunk_size=self.get_config_int("leaderboard.batching.rebuild.chunk_size", 50_000),
                page_ceiling=self.get_config_int(
                    "leaderboard.batching.rebuild.page_ceiling", 1_000_000
                ),
                chunk_ceiling=self.get_config_int(
                    "leaderboard.batching.rebuild.chunk_ceiling", 100_000
                ),
            )
        except Exception as exc:
            self.log_error("full_rebuild", exc)
            raise

        await self.projection.set_last_synced_id(watermark)
        await self.projection.set_cursor(0)
        await self.projection.set_ready(True)

        report = RebuildReport(
            applied=result.applied,
            pages=result.pages,
            last_synced_id=watermark,
            duration_ms=round((time.perf_counter() - start) * 1000, 2),
        )
        self.log.info(
            "Full rebuild complete",
            extra={
                "applied": report.applied,
                "pages": report.pages,
                "last_synced_id": watermark,
                "duration_ms": report.duration_ms,
            },
        )
        return report

    # ========================================================================
    # DELTA SYNC
    # ========================================================================

    async def delta_sync(self, max_passes: Optional[int] = None) -> Optional[DeltaReport]:
        if not self.lock.try_acquire():
            self.log.debug("Delta sync skipped; another leaderboard job is running")
            return None
        try:
            async with LogContext(job="delta_sync"):
                return await self._delta_locked(max_passes)
        finally:
            self.lock.release()

    async def _delta_locked(self, max_passes: Optional[int]) -> DeltaReport:
        start = time.perf_counter()
        limit = max_passes or self.get_config_int("leaderboard.delta.max_passes_per_trigger", 5)

        passes = 0
        applied = 0
        exhausted = False
        cursor = 0

        while passes < limit:
            state = await self.projection.get_sync_state()
            try:
                result = await self.loader.load_range(
                    after_id=state.last_synced_id,
                    start_offset=state.cursor,
                    page_size=self.get_config_int("leaderboard.batching.delta.page_size", 100_000),
                    chunk_size=self.get_config_int("leaderboard.batching.delta.chunk_size", 50_000),
                    page_ceiling=self.get_config_int(
                        "leaderboard.batching.delta.page_ceiling", 100_000
                    ),
                    chunk_ceiling=self.get_config_int(
                        "leaderboard.batching.delta.chunk_ceiling", 100_000
                    ),
                    max_pages=1,
                )
            except Exception as exc:
                self.log_error("delta_sync", exc, cursor=state.cursor, passes=passes)
                raise

            passes += 1
            applied += result.applied

            if result.exhausted:
                cursor = 0
                exhausted = True
                await self.projection.set_cursor(0)
                break

            cursor = result.next_offset
            await self.projection.set_cursor(cursor)

        report = DeltaReport(
            passes=passes,
            applied=applied,
            exhausted=exhausted,
            cursor=cursor,
            duration_ms=round((time.perf_counter() - start) * 1000, 2),
        )
        log = self.log.info if applied else self.log.debug
        log(
            "Delta sync finished",
            extra={
                "passes": passes,
                "applied": applied,
                "exhausted": exhausted,
                "cursor": cursor,
                "duration_ms": report.duration_ms,
            },
        )
        return report

    # ========================================================================
    # REWARDS
    # ========================================================================

    async def distribute_rewards(self) -> Optional[DistributionReport]:
        """
        Pay weekly rewards and rebuild the projection, both under the lock.

        Payouts are ranked from the projection, so a projection that is not
        ready (never built, or partial after a failed rebuild) is rebuilt
        first. If that rebuild fails nothing is paid.
        """
        if not self.lock.try_acquire():
            self.log.info("Reward distribution skipped; another leaderboard job is running")
            return None
        try:
            async with LogContext(job="distribute_rewards"):
                if not await self.projection.is_ready():
                    self.log.warning("Ranking projection not ready; rebuilding before payouts")
                    await self._rebuild_locked()
                report = await self.rewards.distribute()
                await self._rebuild_locked()
                return report
        finally:
            self.lock.release()

    # ========================================================================
    # STATE
    # ========================================================================

    async def sync_state(self) -> SyncState:
        return await self.projection.get_sync_state()

    @property
    def is_busy(self) -> bool:
        return self.lock.is_held
