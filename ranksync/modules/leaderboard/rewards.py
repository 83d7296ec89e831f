"""
Reward Distribution Engine
==========================

Purpose
-------
Weekly payout to the top of the ranking.

Rules
-----
- `pool = pool_fraction × sum(money of the top N)` (2% by default)
- ranks 1, 2 and 3 receive 20%, 15% and 10% of the pool
- ranks 4..N share the remainder equally: `(pool − 0.45·pool) / max(0, N − 3)`
- every payout is rounded half-up to a whole unit

Each payout is an independent additive update in its own transaction, run
concurrently up to `leaderboard.rewards.update_concurrency`. A failed update
is logged and reported; the others still apply. The caller (the engine) is
responsible for holding the single-flight lock and rebuilding afterwards.
"""

from __future__ import annotations

import asyncio
import math
import time
from dataclasses import dataclass
from typing import Any, List, Optional, Sequence, Tuple

from ranksync.core.config.manager import ConfigManager
from ranksync.core.logging.logger import get_logger
from ranksync.modules.shared.base_service import BaseService

from .projection import RankingProjection
from .store import PlayerStore

DEFAULT_TIERS: Tuple[float, ...] = (0.20, 0.15, 0.10)


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def compute_payouts(
    moneys: Sequence[int],
    pool_fraction: float = 0.02,
    tiers: Sequence[float] = DEFAULT_TIERS,
) -> Tuple[float, List[int]]:
    """
    Pool and per-rank payouts for `moneys` ordered best first.

    >>> compute_payouts([500, 300, 200])
    (20.0, [4, 3, 2])
    """
    pool = pool_fraction * sum(moneys)
    count = len(moneys)
    tiered = len(tiers)

    rest_share = 0.0
    if count > tiered:
        rest_share = (pool - pool * sum(tiers)) / max(0, count - tiered)

    payouts = [
        round_half_up(pool * tiers[rank] if rank < tiered else rest_share)
        for rank in range(count)
    ]
    return pool, payouts


@dataclass(frozen=True)
class DistributionReport:
    pool: float
    recipients: int
    total_paid: int
    payouts: Tuple[Tuple[int, int], ...]
    failed: Tuple[int, ...] = ()
    duration_ms: float = 0.0

    @property
    def ok(self) -> bool:
        return not self.failed


class RewardDistributionEngine(BaseService):
    def __init__(
        self,
        store: PlayerStore,
        projection: RankingProjection,
        config_manager: Any = ConfigManager,
        logger: Optional[Any] = None,
    ) -> None:
        super().__init__(config_manager, logger or get_logger(__name__))
        self._store = store
        self._projection = projection

    async def distribute(self) -> DistributionReport:
        top_n = self.get_config_int("leaderboard.rewards.top_n", 100)
        pool_fraction = float(self.get_config("leaderboard.rewards.pool_fraction", 0.02))
        tiers = tuple(self.get_config("leaderboard.rewards.tiers", list(DEFAULT_TIERS)))
        concurrency = max(1, self.get_config_int("leaderboard.rewards.update_concurrency", 16))

        start = time.perf_counter()
        entries = await self._projection.top_entries(top_n)
        if not entries:
            self.log.info("No ranked players; skipping reward distribution")
            return DistributionReport(pool=0.0, recipients=0, total_paid=0, payouts=())

        pool, amounts = compute_payouts([money for _, money in entries], pool_fraction, tiers)
        payouts = tuple(
            (player_id, amount)
            for (player_id, _), amount in zip(entries, amounts)
            if amount > 0
        )

        self.log_operation(
            "distribute_rewards",
            pool=pool,
            recipients=len(payouts),
            concurrency=concurrency,
        )

        semaphore = asyncio.Semaphore(concurrency)

        async def _apply(player_id: int, amount: int) -> bool:
            async with semaphore:
                return await self._store.add_money(player_id, amount)

        results = await asyncio.gather(
            *(_apply(player_id, amount) for player_id, amount in payouts),
            return_exceptions=True,
        )

        failed: List[int] = []
        paid = 0
        for (player_id, amount), outcome in zip(payouts, results):
            if isinstance(outcome, BaseException):
                failed.append(player_id)
                self.log_error("reward_payout", outcome, player_id=player_id, amount=amount)
            elif not outcome:
                failed.append(player_id)
                self.log.warning(
                    "Reward recipient no longer exists",
                    extra={"player_id": player_id, "amount": amount},
                )
            else:
                paid += amount

        report = DistributionReport(
            pool=pool,
            recipients=len(payouts),
            total_paid=paid,
            payouts=payouts,
            failed=tuple(failed),
            duration_ms=round((time.perf_counter() - start) * 1000, 2),
        )
        self.log.info(
            "Reward distribution finished",
            extra={
                "pool": pool,
                "recipients": report.recipients,
                "total_paid": paid,
                "failed": len(failed),
                "duration_ms": report.duration_ms,
            },
        )
        return report
