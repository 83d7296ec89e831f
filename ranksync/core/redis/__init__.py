"""
Redis subsystem for ranksync.

Exports the singleton async Redis service used by the ranking projection.
"""

from ranksync.core.redis.service import RedisService

__all__ = ["RedisService"]
