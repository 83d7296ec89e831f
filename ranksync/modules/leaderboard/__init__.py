"""
Leaderboard module: ranking projection, sync engine, queries and rewards.
"""

from .api import APIResponse, LeaderboardAPI
from .batching import AdaptiveBatchSize
from .engine import DeltaReport, LeaderboardEngine, RebuildReport
from .loader import AdaptiveBatchLoader, LoadResult
from .lock import SingleFlightLock
from .projection import RankingProjection, SyncState
from .query_service import RankedPlayer, RankQueryService
from .rewards import DistributionReport, RewardDistributionEngine, compute_payouts
from .scheduler import SyncScheduler
from .store import GroupEntry, PlayerRow, PlayerStore

__all__ = [
    "APIResponse",
    "LeaderboardAPI",
    "AdaptiveBatchSize",
    "AdaptiveBatchLoader",
    "LoadResult",
    "SingleFlightLock",
    "RankingProjection",
    "SyncState",
    "PlayerStore",
    "PlayerRow",
    "GroupEntry",
    "RankQueryService",
    "RankedPlayer",
    "RewardDistributionEngine",
    "DistributionReport",
    "compute_payouts",
    "LeaderboardEngine",
    "RebuildReport",
    "DeltaReport",
    "SyncScheduler",
]
