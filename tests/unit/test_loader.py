"""
Unit tests for AdaptiveBatchLoader.

Tests paging, sub-chunking, and the shrink/grow reactions to store read
failures and cache capacity overflows.
"""

import pytest

from ranksync.core.exceptions import BatchCollapseError, StoreReadError
from ranksync.modules.leaderboard.loader import AdaptiveBatchLoader


@pytest.fixture
def loader(store, projection):
    return AdaptiveBatchLoader(store, projection, floor=1)


@pytest.mark.asyncio
class TestPaging:
    """Pages are read in ascending id order until an empty page."""

    async def test_loads_everything_and_exhausts(self, loader, store, projection):
        store.seed([100, 50, 75, 25, 10])

        result = await loader.load_range(page_size=2, chunk_size=1)

        assert result.applied == 5
        assert result.exhausted is True
        assert result.next_offset == 5
        assert await projection.top_ids(10) == [1, 3, 2, 4, 5]

    async def test_page_size_grows_to_ceiling(self, loader, store):
        store.seed([1] * 20)

        await loader.load_range(page_size=2, chunk_size=2, page_ceiling=8)

        assert [limit for _, limit, _ in store.page_requests] == [2, 4, 8, 8, 8]

    async def test_max_pages_stops_early(self, loader, store):
        store.seed([1] * 10)

        result = await loader.load_range(page_size=3, chunk_size=3, max_pages=2)

        assert result.pages == 2
        assert result.applied == 6
        assert result.next_offset == 6
        assert result.exhausted is False

    async def test_after_id_and_offset_select_tail(self, loader, store, projection):
        store.seed([10, 20, 30, 40, 50])

        result = await loader.load_range(after_id=3, start_offset=1, page_size=5, chunk_size=5)

        assert result.applied == 1
        assert await projection.top_ids(10) == [5]
        assert store.page_requests[0] == (1, 5, 3)

    async def test_empty_store_is_exhausted_immediately(self, loader):
        result = await loader.load_range(page_size=5, chunk_size=5)

        assert result.applied == 0
        assert result.pages == 0
        assert result.exhausted is True


@pytest.mark.asyncio
class TestAdaptation:
    """Failures halve the matching batch size and the work is retried."""

    async def test_single_overflow_halves_chunk_once(self, loader, store, fake_redis):
        store.seed(list(range(10)))
        fake_redis.zadd_failures.append(MemoryError())

        result = await loader.load_range(page_size=10, chunk_size=4)

        assert result.applied == 10
        assert result.chunk_shrinks == 1
        assert fake_redis.zadd_sizes == [2, 2, 2, 2, 2]
        assert await fake_redis.zcard("leaderboard") == 10

    async def test_read_failure_halves_page_and_retries_offset(self, loader, store, projection):
        store.seed(list(range(8)))
        store.read_failures.append(StoreReadError(0, 8, OSError("connection reset")))

        result = await loader.load_range(page_size=8, chunk_size=8)

        assert result.applied == 8
        assert result.page_shrinks == 1
        assert store.page_requests[:2] == [(0, 8, None), (0, 4, None)]
        assert await projection.size() == 8

    async def test_page_collapse_below_floor_aborts(self, store, projection):
        loader = AdaptiveBatchLoader(store, projection, floor=4)
        store.seed([1, 2, 3])
        store.read_failures.append(StoreReadError(0, 5, OSError("timeout")))

        with pytest.raises(BatchCollapseError) as exc_info:
            await loader.load_range(page_size=5, chunk_size=5)

        assert exc_info.value.dimension == "page"

    async def test_chunk_collapse_below_floor_aborts(self, store, projection, fake_redis):
        loader = AdaptiveBatchLoader(store, projection, floor=2)
        store.seed([1, 2, 3])
        fake_redis.zadd_failures.extend([MemoryError(), MemoryError()])

        with pytest.raises(BatchCollapseError) as exc_info:
            await loader.load_range(page_size=4, chunk_size=4)

        assert exc_info.value.dimension == "chunk"
