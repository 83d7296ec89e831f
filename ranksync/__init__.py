"""ranksync: live leaderboard engine over PostgreSQL and a Redis ranking projection."""

__version__ = "0.1.0"
