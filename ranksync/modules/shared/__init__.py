"""Shared building blocks for ranksync domain modules."""

from .base_service import BaseService
from .exceptions import (
    LeaderboardNotReadyError,
    NotFoundError,
    PlayerNotFoundError,
    PlayerNotYetVisibleError,
    RankSyncDomainException,
    ValidationError,
)

__all__ = [
    "BaseService",
    "RankSyncDomainException",
    "LeaderboardNotReadyError",
    "NotFoundError",
    "PlayerNotFoundError",
    "PlayerNotYetVisibleError",
    "ValidationError",
]
