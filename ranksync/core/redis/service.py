"""
RedisService - async Redis infrastructure for ranksync.

Purpose
-------
Own the single redis-py asyncio client used by the ranking projection:
plain string keys for the persisted sync markers and one sorted set for
the ranking itself.

Responsibilities
----------------
- Idempotent initialization and graceful shutdown of the client pool
- PING-based health check for `LeaderboardAPI.health()`
- Observable KV operations (GET / SET / DEL / EXISTS)
- Observable sorted-set operations, with pipelining for bulk rank lookups

Non-Responsibilities
--------------------
- Key naming and score encoding (handled by RankingProjection)
- Classifying failures into batch-sizing errors (handled by RankingProjection)

Configuration
-------------
- REDIS_URL              : str (default "redis://localhost:6379/0")
- REDIS_SOCKET_TIMEOUT   : int seconds (default 5)
- REDIS_MAX_CONNECTIONS  : int (default 50)

Architecture Notes
------------------
- Uses the redis-py asyncio client with `decode_responses=True`, so members
  and values come back as `str`
- All operations log completion at DEBUG and failure at ERROR with
  structured context, then re-raise the original exception
"""

from __future__ import annotations

import asyncio
import time
from typing import Any, Awaitable, Callable, List, Mapping, Optional, Sequence, Tuple, TypeVar

from redis.asyncio.client import Redis as AsyncRedis  # type: ignore[misc]
from redis.exceptions import RedisError

from ranksync.core.config.config import Config
from ranksync.core.logging.logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


class RedisService:
    """
    Async Redis infrastructure service (classmethod singleton).

    Public API
    ----------
    - initialize() / shutdown() / health_check() / client()
    - get / set / delete / exists
    - zadd_many / zcard / zrank / zrank_many / zrange / zrange_withscores
    """

    _client: Optional[AsyncRedis] = None
    _init_lock: asyncio.Lock = asyncio.Lock()
    _is_healthy: bool = False

    # ═══════════════════════════════════════════════════════════════════════
    # LIFECYCLE MANAGEMENT
    # ═══════════════════════════════════════════════════════════════════════

    @classmethod
    async def initialize(cls) -> None:
        """
        Create the client and verify it with PING (idempotent).

        Raises
        ------
        RuntimeError
            If the connection cannot be established.
        """
        if cls._client is not None:
            logger.debug("RedisService already initialized, skipping")
            return

        async with cls._init_lock:
            if cls._client is not None:
                return

            url = Config.REDIS_URL
            url_scheme = url.split("://")[0] if "://" in url else "unknown"
            start_time = time.monotonic()
            client: Optional[AsyncRedis] = None

            try:
                client = AsyncRedis.from_url(
                    url,
                    socket_timeout=Config.REDIS_SOCKET_TIMEOUT,
                    encoding="utf-8",
                    decode_responses=True,
                    max_connections=Config.REDIS_MAX_CONNECTIONS,
                    retry_on_timeout=False,
                    health_check_interval=30,
                )
                await client.ping()  # type: ignore[misc]

                cls._client = client
                cls._is_healthy = True

                logger.info(
                    "RedisService initialized successfully",
                    extra={
                        "url_scheme": url_scheme,
                        "socket_timeout_seconds": Config.REDIS_SOCKET_TIMEOUT,
                        "max_connections": Config.REDIS_MAX_CONNECTIONS,
                        "initialization_time_ms": round(
                            (time.monotonic() - start_time) * 1000, 2
                        ),
                    },
                )

            except (RedisError, OSError) as exc:
                if client is not None:
                    await client.aclose()
                cls._client = None
                cls._is_healthy = False

                logger.critical(
                    "Failed to initialize RedisService",
                    extra={
                        "error": str(exc),
                        "error_type": type(exc).__name__,
                        "url_scheme": url_scheme,
                    },
                    exc_info=True,
                )
                raise RuntimeError(f"Failed to initialize RedisService: {exc}") from exc

    @classmethod
    async def shutdown(cls) -> None:
        """Close the client. Safe to call even if not initialized."""
        client = cls._client
        if client is None:
            logger.debug("RedisService not initialized, nothing to shutdown")
            return

        cls._client = None
        cls._is_healthy = False

        try:
            await client.aclose()
            logger.info("RedisService shutdown complete")
        except (RedisError, OSError) as exc:
            logger.error(
                "Error during RedisService shutdown",
                extra={"error": str(exc), "error_type": type(exc).__name__},
                exc_info=True,
            )

    # ═══════════════════════════════════════════════════════════════════════
    # HEALTH & STATUS
    # ═══════════════════════════════════════════════════════════════════════

    @classmethod
    async def health_check(cls) -> bool:
        """Verify connectivity via PING; never raises."""
        if cls._client is None:
            logger.warning("Health check failed: RedisService not initialized")
            cls._is_healthy = False
            return False

        try:
            start_time = time.monotonic()
            pong = await cls._client.ping()  # type: ignore[misc]
            cls._is_healthy = bool(pong)
            logger.debug(
                "Redis health check completed",
                extra={
                    "healthy": cls._is_healthy,
                    "latency_ms": round((time.monotonic() - start_time) * 1000, 2),
                },
            )
            return cls._is_healthy

        except (RedisError, OSError) as exc:
            cls._is_healthy = False
            logger.error(
                "Redis health check failed",
                extra={"error": str(exc), "error_type": type(exc).__name__},
                exc_info=True,
            )
            return False

    @classmethod
    def client(cls) -> AsyncRedis:
        """
        Return the singleton Redis client.

        Raises
        ------
        RuntimeError
            If RedisService has not been initialized.
        """
        if cls._client is None:
            raise RuntimeError(
                "RedisService not initialized. "
                "Call `await RedisService.initialize()` first."
            )
        return cls._client

    # ═══════════════════════════════════════════════════════════════════════
    # EXECUTION
    # ═══════════════════════════════════════════════════════════════════════

    @classmethod
    async def _execute(
        cls,
        command: str,
        key: str,
        operation: Callable[[], Awaitable[T]],
        **context: Any,
    ) -> T:
        start_time = time.monotonic()
        try:
            result = await operation()
        except Exception as exc:
            logger.error(
                f"Redis {command} operation failed",
                extra={
                    "key": key,
                    "latency_ms": round((time.monotonic() - start_time) * 1000, 2),
                    "error": str(exc),
                    "error_type": type(exc).__name__,
                    **context,
                },
                exc_info=True,
            )
            raise

        logger.debug(
            f"Redis {command} operation",
            extra={
                "key": key,
                "latency_ms": round((time.monotonic() - start_time) * 1000, 2),
                **context,
            },
        )
        return result

    # ═══════════════════════════════════════════════════════════════════════
    # KEY-VALUE OPERATIONS
    # ═══════════════════════════════════════════════════════════════════════

    @classmethod
    async def get(cls, key: str) -> Optional[str]:
        return await cls._execute("GET", key, lambda: cls.client().get(key))

    @classmethod
    async def set(cls, key: str, value: Any, ttl_seconds: Optional[int] = None) -> bool:
        """
        Set a string value. Without `ttl_seconds` the key never expires,
        which is what the persisted sync markers need.
        """
        result = await cls._execute(
            "SET",
            key,
            lambda: cls.client().set(key, value, ex=ttl_seconds),
            ttl_seconds=ttl_seconds,
        )
        return bool(result)

    @classmethod
    async def delete(cls, *keys: str) -> int:
        count = await cls._execute(
            "DELETE", ",".join(keys), lambda: cls.client().delete(*keys)
        )
        return int(count)

    @classmethod
    async def exists(cls, key: str) -> bool:
        count = await cls._execute("EXISTS", key, lambda: cls.client().exists(key))
        return int(count) > 0

    # ═══════════════════════════════════════════════════════════════════════
    # SORTED-SET OPERATIONS
    # ═══════════════════════════════════════════════════════════════════════

    @classmethod
    async def zadd_many(cls, key: str, mapping: Mapping[str, float]) -> int:
        """
        Upsert many members in a single ZADD.

        Returns the number of newly added members (updates are not counted).
        """
        if not mapping:
            return 0
        added = await cls._execute(
            "ZADD",
            key,
            lambda: cls.client().zadd(key, dict(mapping)),
            members=len(mapping),
        )
        return int(added)

    @classmethod
    async def zcard(cls, key: str) -> int:
        count = await cls._execute("ZCARD", key, lambda: cls.client().zcard(key))
        return int(count)

    @classmethod
    async def zrank(cls, key: str, member: str) -> Optional[int]:
        """0-based ascending rank of `member`, or None if absent."""
        return await cls._execute("ZRANK", key, lambda: cls.client().zrank(key, member))

    @classmethod
    async def zrank_many(cls, key: str, members: Sequence[str]) -> List[Optional[int]]:
        """Pipelined ZRANK for every member, in input order."""
        if not members:
            return []

        async def _run() -> List[Optional[int]]:
            async with cls.client().pipeline(transaction=False) as pipe:
                for member in members:
                    pipe.zrank(key, member)
                return await pipe.execute()

        return await cls._execute("ZRANK*", key, _run, members=len(members))

    @classmethod
    async def zrange(cls, key: str, start: int, end: int) -> List[str]:
        """Members between ascending ranks `start` and `end` (inclusive)."""
        return await cls._execute(
            "ZRANGE", key, lambda: cls.client().zrange(key, start, end)
        )

    @classmethod
    async def zrange_withscores(
        cls, key: str, start: int, end: int
    ) -> List[Tuple[str, float]]:
        result = await cls._execute(
            "ZRANGE",
            key,
            lambda: cls.client().zrange(key, start, end, withscores=True),
        )
        return [(member, float(score)) for member, score in result]

