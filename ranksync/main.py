"""
ranksync - Application Entry Point
==================================

Bootstrap
---------
- Config validation
- ConfigManager initialization (YAML tunables)
- Database and Redis initialization
- Leaderboard engine, query service and API wiring
- Sync scheduler (delta, weekly rewards, startup rebuild)
- Graceful shutdown on SIGTERM / SIGINT

Run with `python -m ranksync.main`.
"""

from __future__ import annotations

import asyncio
import signal
import sys
from dataclasses import dataclass
from typing import Optional

from ranksync.core.config.config import Config
from ranksync.core.config.manager import ConfigManager
from ranksync.core.database.service import DatabaseService
from ranksync.core.logging.logger import get_logger, shutdown_logging
from ranksync.core.redis.service import RedisService
from ranksync.modules.leaderboard import (
    LeaderboardAPI,
    LeaderboardEngine,
    RankQueryService,
    SyncScheduler,
)

logger = get_logger(__name__)


@dataclass
class Application:
    engine: LeaderboardEngine
    queries: RankQueryService
    api: LeaderboardAPI
    scheduler: SyncScheduler


def build_application() -> Application:
    """Wire the leaderboard components over the initialized infrastructure."""
    engine = LeaderboardEngine()
    queries = RankQueryService(engine.store, engine.projection, engine)
    api = LeaderboardAPI(engine, queries)
    scheduler = SyncScheduler(engine)
    return Application(engine=engine, queries=queries, api=api, scheduler=scheduler)


# ============================================================================
# Application Bootstrap
# ============================================================================


async def _startup() -> Application:
    logger.info("========== RANKSYNC INITIALIZATION START ==========")

    try:
        Config.validate()
        logger.info("Configuration validated", extra=Config.get_config_summary())
    except Exception as exc:
        logger.critical(f"Configuration validation failed: {exc}")
        raise

    try:
        ConfigManager.initialize()
    except Exception as exc:
        logger.critical(f"Config manager initialization failed: {exc}", exc_info=True)
        raise

    try:
        await DatabaseService.initialize()
        await RedisService.initialize()
    except Exception as exc:
        logger.critical(f"Infrastructure initialization failed: {exc}", exc_info=True)
        raise

    app = build_application()
    app.scheduler.start()

    logger.info("========== RANKSYNC INITIALIZED SUCCESSFULLY ==========")
    return app


# ============================================================================
# Application Shutdown
# ============================================================================


async def _shutdown(app: Optional[Application]) -> None:
    logger.info("========== RANKSYNC SHUTDOWN START ==========")

    if app is not None:
        try:
            app.scheduler.shutdown(wait=False)
        except Exception as exc:
            logger.error(f"Scheduler shutdown error: {exc}", exc_info=True)

    try:
        await RedisService.shutdown()
    except Exception as exc:
        logger.error(f"Redis service shutdown error: {exc}", exc_info=True)

    try:
        await DatabaseService.shutdown()
    except Exception as exc:
        logger.error(f"Database service shutdown error: {exc}", exc_info=True)

    logger.info("========== SHUTDOWN COMPLETE ==========")


# ============================================================================
# Application Entrypoint
# ============================================================================


def _install_signal_handlers(stop: asyncio.Event) -> None:
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        try:
            loop.add_signal_handler(sig, stop.set)
        except NotImplementedError:
            logger.debug(f"{sig.name} handler not supported on this platform")


async def main() -> None:
    app: Optional[Application] = None
    stop = asyncio.Event()
    _install_signal_handlers(stop)

    try:
        app = await _startup()
        await stop.wait()
        logger.info("Shutdown signal received")
    finally:
        await _shutdown(app)


def run() -> None:
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Stopped via keyboard interrupt.")
    except Exception as exc:
        logger.critical(f"Startup failure: {exc}", exc_info=True)
        sys.exit(1)
    finally:
        shutdown_logging()


if __name__ == "__main__":
    run()
