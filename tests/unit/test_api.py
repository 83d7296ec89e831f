"""
Unit tests for LeaderboardAPI.

Tests request parsing, the readiness gate and its self-healing rebuild,
error-to-status mapping and the health endpoint.
"""

import pytest

from ranksync.core.exceptions import BatchCollapseError
from ranksync.modules.leaderboard.api import LeaderboardAPI


@pytest.fixture
def database(mocker):
    database = mocker.Mock()
    database.health_check = mocker.AsyncMock(return_value=True)
    return database


@pytest.fixture
def api(engine, queries, config_manager, database, fake_redis):
    return LeaderboardAPI(engine, queries, config_manager, database=database, redis=fake_redis)


@pytest.fixture
async def ready(engine, store):
    store.add_player("alice", 300, "Brazil")
    store.add_player("bob", 200, "Turkey")
    store.add_player("carol", 100, "Turkey")
    await engine.full_rebuild()


@pytest.mark.asyncio
class TestGetLeaderboard:
    async def test_not_ready_while_busy_returns_503(self, api, engine):
        engine.lock.try_acquire()

        response = await api.get_leaderboard()

        assert response.status == 503
        assert response.body["error"] == "IndexingInProgress"
        assert response.body["retryable"] is True

    async def test_unbuilt_projection_is_rebuilt_on_request(self, api, store):
        store.seed([10, 20])

        response = await api.get_leaderboard()

        assert response.status == 200
        assert [row["money"] for row in response.body] == [20, 10]

    async def test_recovers_after_failed_rebuild(self, api, ready, engine, store, projection):
        store.seed([90, 80, 70])
        store.fail_reads_after(pages=1)
        with pytest.raises(BatchCollapseError):
            await engine.full_rebuild()
        assert await projection.size() == 4
        assert await projection.is_ready() is False

        store.read_failures.clear()
        response = await api.get_leaderboard()

        assert response.status == 200
        assert [row["money"] for row in response.body] == [300, 200, 100, 90, 80, 70]
        assert await projection.is_ready() is True

    async def test_failed_healing_rebuild_returns_503(self, api, store):
        store.seed([10])
        store.read_failures.append(RuntimeError("database unavailable"))

        response = await api.get_leaderboard()

        assert response.status == 503
        assert response.body["error"] == "IndexingInProgress"

    async def test_window_body(self, api, ready):
        response = await api.get_leaderboard()

        assert response.ok
        assert response.body[0] == {
            "id": 1,
            "name": "alice",
            "country": "Brazil",
            "money": 300,
            "rank": 1,
        }
        assert [row["rank"] for row in response.body] == [1, 2, 3]

    async def test_player_id_string_is_parsed(self, api, ready):
        response = await api.get_leaderboard(player_id=" 2 ")

        assert response.status == 200

    async def test_group_flag(self, api, ready):
        response = await api.get_leaderboard(group="true")

        assert response.status == 200
        assert [(row["country"], row["rank"]) for row in response.body] == [
            ("Brazil", 1),
            ("Turkey", 1),
            ("Turkey", 2),
        ]

    @pytest.mark.parametrize("raw", ["abc", "0", "-5", "1.5", "١٢", 0, -3, True])
    async def test_invalid_player_id_returns_400(self, api, ready, raw):
        response = await api.get_leaderboard(player_id=raw)

        assert response.status == 400
        assert response.body["error"] == "VALIDATION_PLAYERID"

    async def test_unknown_player_returns_404(self, api, ready):
        response = await api.get_leaderboard(player_id="999")

        assert response.status == 404
        assert response.body["error"] == "PlayerNotFound"

    async def test_unsynced_player_returns_409(self, api, ready, store):
        late = store.add_player("dave", 50)

        response = await api.get_leaderboard(player_id=late)

        assert response.status == 409
        assert response.body["error"] == "PlayerNotYetVisible"

    async def test_unexpected_error_returns_500(self, api, ready, queries, mocker):
        mocker.patch.object(queries, "get_window", side_effect=RuntimeError("boom"))

        response = await api.get_leaderboard()

        assert response.status == 500
        assert response.body["error"] == "InternalServerError"
        assert "boom" not in response.body["message"]


@pytest.mark.asyncio
class TestAutocomplete:
    async def test_not_ready_while_busy_returns_503(self, api, engine):
        engine.lock.try_acquire()

        response = await api.autocomplete("al")

        assert response.status == 503

    async def test_returns_matches(self, api, ready):
        response = await api.autocomplete("ca")

        assert response.status == 200
        assert response.body == [{"id": 3, "name": "carol"}]

    async def test_blank_query_returns_empty(self, api, ready):
        response = await api.autocomplete("")

        assert response.status == 200
        assert response.body == []


@pytest.mark.asyncio
class TestHealth:
    async def test_healthy(self, api, ready):
        response = await api.health()

        assert response.status == 200
        assert response.body["status"] == "ok"
        assert response.body["ready"] is True
        assert response.body["last_synced_id"] == 3
        assert response.body["busy"] is False
        assert response.body["logging"]["initialized"] is True
        assert response.body["config"]["gets"] > 0

    async def test_database_down_is_degraded(self, api, database):
        database.health_check.return_value = False

        response = await api.health()

        assert response.status == 503
        assert response.body["status"] == "degraded"
        assert response.body["database"] is False

    async def test_redis_down_omits_sync_state(self, api, fake_redis):
        fake_redis.healthy = False

        response = await api.health()

        assert response.status == 503
        assert "ready" not in response.body
