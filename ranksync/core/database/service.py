"""
Async PostgreSQL access for ranksync.

One engine per process. `PlayerStore` reads pages, hydrates players, ranks
per-country top-K and searches names through `get_session()`. Reward
payouts are the only writes and go through `get_transaction()`, which
commits on success and rolls back and re-raises otherwise.

Every session runs `SET LOCAL statement_timeout` first, so a stuck rebuild
page fails with a driver error (which the loader turns into a smaller page)
instead of hanging the sync job.

    >>> async with DatabaseService.get_transaction() as session:
    ...     await session.execute(
    ...         update(Player).where(Player.id == 7).values(money=Player.money + 10)
    ...     )

With ENVIRONMENT=testing the engine uses a NullPool, so container tests
never share pooled connections across event loops.
"""

from __future__ import annotations

import asyncio
import time
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Dict, Optional

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from ranksync.core.config.config import Config
from ranksync.core.logging.logger import get_logger

logger = get_logger(__name__)


class DatabaseInitializationError(RuntimeError):
    """Raised when the store engine cannot be created."""


class DatabaseNotInitializedError(RuntimeError):
    """Raised when the store is used before `DatabaseService.initialize()`."""


def _engine_options() -> Dict[str, Any]:
    if Config.is_testing():
        return {"echo": Config.DATABASE_ECHO, "poolclass": NullPool}
    return {
        "echo": Config.DATABASE_ECHO,
        "pool_size": Config.DATABASE_POOL_SIZE,
        "max_overflow": Config.DATABASE_MAX_OVERFLOW,
        "pool_recycle": Config.DATABASE_POOL_RECYCLE,
        "pool_timeout": Config.DATABASE_POOL_TIMEOUT,
    }


class DatabaseService:
    """Process-wide store engine; every member is a classmethod."""

    _engine: Optional[AsyncEngine] = None
    _sessions: Optional[async_sessionmaker[AsyncSession]] = None
    _statement_timeout_ms: int = 0
    _init_lock: asyncio.Lock = asyncio.Lock()

    # ========================================================================
    # Lifecycle
    # ========================================================================

    @classmethod
    async def initialize(cls) -> None:
        """
        Create the engine and session factory (idempotent).

        Raises
        ------
        DatabaseInitializationError
            If DATABASE_URL is empty or the engine cannot be built from it.
        """
        async with cls._init_lock:
            if cls._engine is not None:
                return

            url = Config.DATABASE_URL
            if not url:
                raise DatabaseInitializationError("DATABASE_URL is not configured")

            options = _engine_options()
            try:
                cls._engine = create_async_engine(url, **options)
            except Exception as exc:
                logger.error(
                    "Store engine creation failed",
                    extra={"error": str(exc), "error_type": type(exc).__name__},
                    exc_info=True,
                )
                raise DatabaseInitializationError(f"Database initialization failed: {exc}") from exc

            cls._sessions = async_sessionmaker(bind=cls._engine, expire_on_commit=False)
            # SET LOCAL is PostgreSQL-only
            cls._statement_timeout_ms = (
                Config.DATABASE_STATEMENT_TIMEOUT_MS if url.startswith("postgresql") else 0
            )

            logger.info(
                "Store engine ready",
                extra={
                    "url_scheme": url.split("://", 1)[0],
                    "pool": "null" if "poolclass" in options else options["pool_size"],
                    "statement_timeout_ms": cls._statement_timeout_ms,
                },
            )

    @classmethod
    async def shutdown(cls) -> None:
        async with cls._init_lock:
            if cls._engine is None:
                return
            engine, cls._engine, cls._sessions = cls._engine, None, None
            await engine.dispose()
            logger.info("Store engine disposed")

    @classmethod
    async def health_check(cls) -> bool:
        """`SELECT 1` against the store. Never raises."""
        if cls._engine is None:
            return False

        try:
            async with cls._engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
        except (DBAPIError, OSError) as exc:
            logger.warning(
                "Store health check failed",
                extra={"error": str(exc), "error_type": type(exc).__name__},
            )
            return False
        return True

    # ========================================================================
    # Sessions
    # ========================================================================

    @classmethod
    def get_engine(cls) -> AsyncEngine:
        if cls._engine is None:
            raise DatabaseNotInitializedError("DatabaseService.initialize() has not run")
        return cls._engine

    @classmethod
    def _factory(cls) -> async_sessionmaker[AsyncSession]:
        if cls._sessions is None:
            raise DatabaseNotInitializedError("DatabaseService.initialize() has not run")
        return cls._sessions

    @classmethod
    async def _apply_statement_timeout(cls, session: AsyncSession) -> None:
        if cls._statement_timeout_ms > 0:
            await session.execute(text(f"SET LOCAL statement_timeout = {cls._statement_timeout_ms}"))

    @classmethod
    @asynccontextmanager
    async def get_session(cls) -> AsyncGenerator[AsyncSession, None]:
        """Read session; never commits. Closed (and its transaction discarded) on exit."""
        async with cls._factory()() as session:
            await cls._apply_statement_timeout(session)
            yield session

    @classmethod
    @asynccontextmanager
    async def get_transaction(cls) -> AsyncGenerator[AsyncSession, None]:
        """
        Atomic write session.

        Commits when the block exits cleanly. Any exception rolls the
        transaction back and is re-raised to the caller, which decides
        whether the failure is fatal (a payout is logged and skipped).
        """
        started = time.perf_counter()
        async with cls._factory()() as session:
            try:
                await cls._apply_statement_timeout(session)
                yield session
                await session.commit()
            except Exception as exc:
                await session.rollback()
                logger.warning(
                    "Store transaction rolled back",
                    extra={
                        "error": str(exc),
                        "error_type": type(exc).__name__,
                        "duration_ms": round((time.perf_counter() - started) * 1000.0, 2),
                    },
                )
                raise
