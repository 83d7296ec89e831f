"""
Integration fixtures: real PostgreSQL and Redis via testcontainers.

Containers are started once per session and only when
`RANKSYNC_INTEGRATION=1` is set; otherwise every test that needs them
is skipped. Each test gets a freshly created schema, an empty Redis
database and initialized DatabaseService / RedisService singletons.
"""

import os

import pytest
from testcontainers.postgres import PostgresContainer
from testcontainers.redis import RedisContainer

from ranksync.core.config.config import Config
from ranksync.core.database.service import DatabaseService
from ranksync.core.redis.service import RedisService
from ranksync.database.models import Base, Country, Player


def _integration_enabled() -> bool:
    return os.getenv("RANKSYNC_INTEGRATION") == "1"


@pytest.fixture(scope="session")
def postgres_url():
    if not _integration_enabled():
        pytest.skip("set RANKSYNC_INTEGRATION=1 to run container-backed tests")
    with PostgresContainer("postgres:17-alpine", driver="asyncpg") as postgres:
        yield postgres.get_connection_url()


@pytest.fixture(scope="session")
def redis_url():
    if not _integration_enabled():
        pytest.skip("set RANKSYNC_INTEGRATION=1 to run container-backed tests")
    with RedisContainer("redis:7-alpine") as redis:
        host = redis.get_container_host_ip()
        port = redis.get_exposed_port(6379)
        yield f"redis://{host}:{port}/0"


@pytest.fixture
async def database(postgres_url, monkeypatch):
    """Initialized DatabaseService over a freshly created schema."""
    monkeypatch.setattr(Config, "DATABASE_URL", postgres_url)
    monkeypatch.setattr(Config, "ENVIRONMENT", "testing")

    await DatabaseService.initialize()
    engine = DatabaseService.get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    yield DatabaseService

    await DatabaseService.shutdown()


@pytest.fixture
async def redis(redis_url, monkeypatch):
    """Initialized RedisService over an empty database."""
    monkeypatch.setattr(Config, "REDIS_URL", redis_url)

    await RedisService.initialize()
    await RedisService.client().flushdb()

    yield RedisService

    await RedisService.shutdown()


@pytest.fixture
async def seed_players(database):
    """Insert `(name, country, money)` rows; returns the new ids in insert order."""

    async def _seed(rows):
        async with database.get_transaction() as session:
            countries = {}
            players = []
            for name, country, money in rows:
                if country not in countries:
                    countries[country] = Country(name=country)
                    session.add(countries[country])
                player = Player(name=name, country=countries[country], money=money)
                session.add(player)
                players.append(player)
            await session.flush()
            return [player.id for player in players]

    return _seed
