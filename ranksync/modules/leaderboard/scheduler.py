"""
Sync Scheduler
==============

APScheduler jobs driving the leaderboard engine:

- `delta_sync`      every `leaderboard.delta.interval_seconds` (10 s)
- `weekly_rewards`  cron `leaderboard.schedule.weekly` (Sunday 00:00 UTC),
                    reward distribution followed by a rebuild
- `startup_rebuild` once, right after start, when
                    `leaderboard.rebuild_on_startup` is true

Jobs are guarded: a failure is logged with its traceback and the scheduler
keeps running. Overlap between jobs is prevented by the engine's
single-flight lock; overlap of one job with itself by `max_instances=1`.
"""

from __future__ import annotations

from typing import Any, Awaitable, Callable, List, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from ranksync.core.config.manager import ConfigManager
from ranksync.core.logging.logger import LogContext, get_logger

from .engine import LeaderboardEngine

logger = get_logger(__name__)

DELTA_JOB_ID = "delta_sync"
WEEKLY_JOB_ID = "weekly_rewards"
STARTUP_JOB_ID = "startup_rebuild"


class SyncScheduler:
    def __init__(
        self,
        engine: LeaderboardEngine,
        config_manager: Any = ConfigManager,
        scheduler: Optional[AsyncIOScheduler] = None,
    ) -> None:
        self._engine = engine
        self._config = config_manager
        self.timezone = config_manager.get("leaderboard.schedule.timezone", "UTC")
        self.scheduler = scheduler or AsyncIOScheduler(timezone=self.timezone)

    # ------------------------------------------------------------------
    # Jobs
    # ------------------------------------------------------------------

    async def _run_guarded(self, job: str, action: Callable[[], Awaitable[Any]]) -> Any:
        async with LogContext(job=job):
            try:
                return await action()
            except Exception as exc:
                logger.error(
                    "Scheduled leaderboard job failed",
                    extra={"job": job, "error": str(exc), "error_type": type(exc).__name__},
                    exc_info=True,
                )
                return None

    async def run_delta_sync(self) -> Any:
        return await self._run_guarded(DELTA_JOB_ID, self._engine.delta_sync)

    async def run_weekly_rewards(self) -> Any:
        return await self._run_guarded(WEEKLY_JOB_ID, self._engine.distribute_rewards)

    async def run_startup_rebuild(self) -> Any:
        return await self._run_guarded(STARTUP_JOB_ID, self._engine.full_rebuild)

    # ------------------------------------------------------------------
    # Registration & lifecycle
    # ------------------------------------------------------------------

    def register_jobs(self) -> List[str]:
        interval = self._config.get_int("leaderboard.delta.interval_seconds", 10)
        weekly = self._config.get("leaderboard.schedule.weekly", {}) or {}

        self.scheduler.add_job(
            self.run_delta_sync,
            trigger=IntervalTrigger(seconds=interval, timezone=self.timezone),
            id=DELTA_JOB_ID,
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        self.scheduler.add_job(
            self.run_weekly_rewards,
            trigger=CronTrigger(
                day_of_week=weekly.get("day_of_week", "sun"),
                hour=weekly.get("hour", 0),
                minute=weekly.get("minute", 0),
                timezone=self.timezone,
            ),
            id=WEEKLY_JOB_ID,
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )

        job_ids = [DELTA_JOB_ID, WEEKLY_JOB_ID]
        if self._config.get_bool("leaderboard.rebuild_on_startup", True):
            # No trigger: runs once as soon as the scheduler starts.
            self.scheduler.add_job(
                self.run_startup_rebuild,
                id=STARTUP_JOB_ID,
                max_instances=1,
                replace_existing=True,
            )
            job_ids.append(STARTUP_JOB_ID)

        logger.info(
            "Leaderboard jobs registered",
            extra={"jobs": job_ids, "delta_interval_seconds": interval, "timezone": self.timezone},
        )
        return job_ids

    def start(self) -> None:
        """Register jobs and start; must be called with the event loop running."""
        if self.scheduler.running:
            return
        self.register_jobs()
        self.scheduler.start()
        logger.info("SyncScheduler started")

    def shutdown(self, wait: bool = False) -> None:
        if not self.scheduler.running:
            return
        self.scheduler.shutdown(wait=wait)
        logger.info("SyncScheduler stopped")
