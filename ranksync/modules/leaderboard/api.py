"""
Leaderboard API
===============

Framework-agnostic request surface. Each handler returns an `APIResponse`
(status code plus a JSON-serialisable body) so any HTTP router can mount it.

Routes it backs
---------------
- `GET /leaderboard?playerId=&group=`  -> `get_leaderboard()`
- `GET /players/autocomplete?q=`       -> `autocomplete()`
- `GET /`                              -> `health()`

Error mapping
-------------
- 400 `ValidationError`
- 404 `PlayerNotFoundError`
- 409 `PlayerNotYetVisibleError`
- 503 `LeaderboardNotReadyError` (returned up front when the projection is
  not ready and cannot be rebuilt right now)
- 500 anything else, logged with the traceback
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Awaitable, Callable, Dict, Optional, Union

from ranksync.core.config.manager import ConfigManager
from ranksync.core.database.service import DatabaseService
from ranksync.core.logging.logger import LogContext, get_logger, get_logging_health
from ranksync.core.redis.service import RedisService
from ranksync.modules.shared.base_service import BaseService
from ranksync.modules.shared.exceptions import (
    LeaderboardNotReadyError,
    PlayerNotFoundError,
    PlayerNotYetVisibleError,
    RankSyncDomainException,
    ValidationError,
)

from .engine import LeaderboardEngine
from .query_service import RankQueryService

STATUS_BY_ERROR = (
    (ValidationError, 400),
    (PlayerNotFoundError, 404),
    (PlayerNotYetVisibleError, 409),
    (LeaderboardNotReadyError, 503),
)


@dataclass(frozen=True)
class APIResponse:
    status: int
    body: Any = field(default=None)

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


class LeaderboardAPI(BaseService):
    def __init__(
        self,
        engine: LeaderboardEngine,
        queries: RankQueryService,
        config_manager: Any = ConfigManager,
        database: Any = DatabaseService,
        redis: Any = RedisService,
        logger: Optional[Any] = None,
    ) -> None:
        super().__init__(config_manager, logger or get_logger(__name__))
        self._engine = engine
        self._queries = queries
        self._database = database
        self._redis = redis

    # ========================================================================
    # HANDLERS
    # ========================================================================

    async def get_leaderboard(
        self,
        player_id: Union[int, str, None] = None,
        group: Union[bool, str, None] = False,
    ) -> APIResponse:
        async def _handle() -> APIResponse:
            await self._queries.ensure_ready()

            if self._parse_flag(group):
                entries = await self._queries.get_group_top()
                return APIResponse(200, [entry.to_dict() for entry in entries])

            parsed_id = self._parse_player_id(player_id)
            window = await self._queries.get_window(parsed_id)
            return APIResponse(200, [entry.to_dict() for entry in window])

        async with LogContext(operation="get_leaderboard"):
            return await self._dispatch("get_leaderboard", _handle)

    async def autocomplete(self, q: Optional[str]) -> APIResponse:
        async def _handle() -> APIResponse:
            await self._queries.ensure_ready()
            return APIResponse(200, await self._queries.autocomplete(q))

        async with LogContext(operation="autocomplete"):
            return await self._dispatch("autocomplete", _handle)

    async def health(self) -> APIResponse:
        database_ok = await self._database.health_check()
        redis_ok = await self._redis.health_check()

        body: Dict[str, Any] = {
            "status": "ok" if database_ok and redis_ok else "degraded",
            "database": database_ok,
            "redis": redis_ok,
            "busy": self._engine.is_busy,
            "logging": asdict(get_logging_health()),
            "config": self._config.get_metrics(),
        }
        if redis_ok:
            state = await self._engine.sync_state()
            body.update(
                ready=state.ready,
                last_synced_id=state.last_synced_id,
                sync_cursor=state.cursor,
            )
        return APIResponse(200 if database_ok and redis_ok else 503, body)

    # ========================================================================
    # HELPERS
    # ========================================================================

    async def _dispatch(
        self, operation: str, handler: Callable[[], Awaitable[APIResponse]]
    ) -> APIResponse:
        try:
            return await handler()
        except RankSyncDomainException as exc:
            status = next(
                (code for error_type, code in STATUS_BY_ERROR if isinstance(exc, error_type)),
                500,
            )
            self.log.info(
                "Request rejected",
                extra={"operation": operation, "status": status, "error_code": exc.error_code},
            )
            return APIResponse(status, self._error_body(exc))
        except Exception as exc:
            self.log.error(
                "Unhandled error while serving request",
                extra={
                    "operation": operation,
                    "error": str(exc),
                    "error_type": type(exc).__name__,
                },
                exc_info=True,
            )
            return APIResponse(
                500, {"error": "InternalServerError", "message": "Internal server error"}
            )

    @staticmethod
    def _error_body(exc: RankSyncDomainException) -> Dict[str, Any]:
        return {
            "error": exc.error_code,
            "message": exc.message,
            "retryable": exc.is_retryable,
        }

    def _parse_player_id(self, raw: Union[int, str, None]) -> Optional[int]:
        if raw is None or raw == "":
            return None
        if isinstance(raw, str):
            text = raw.strip()
            if not (text.isascii() and text.isdigit()):
                raise ValidationError("playerId", f"playerId must be a positive integer, got {raw!r}")
            raw = int(text)
        return self.validate_positive_int(raw, "playerId")

    @staticmethod
    def _parse_flag(raw: Union[bool, str, None]) -> bool:
        if isinstance(raw, str):
            return raw.strip().lower() in {"1", "true", "yes", "on"}
        return bool(raw)
