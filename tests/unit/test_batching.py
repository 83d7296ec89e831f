"""
Unit tests for AdaptiveBatchSize and SingleFlightLock.
"""

import pytest

from ranksync.core.exceptions import BatchCollapseError, ErrorSeverity
from ranksync.modules.leaderboard.batching import AdaptiveBatchSize
from ranksync.modules.leaderboard.lock import SingleFlightLock


class TestAdaptiveBatchSize:
    """Halving on failure, doubling on success, bounded on both sides."""

    def test_grow_doubles_up_to_ceiling(self):
        size = AdaptiveBatchSize("page", initial=500, floor=100, ceiling=1500)

        assert size.grow() == 1000
        assert size.grow() == 1500
        assert size.grow() == 1500

    def test_shrink_halves_and_counts(self):
        size = AdaptiveBatchSize("chunk", initial=800, floor=100, ceiling=800)

        assert size.shrink() == 400
        assert size.shrink() == 200
        assert size.shrink_count == 2

    def test_shrink_to_exact_floor_is_allowed(self):
        size = AdaptiveBatchSize("chunk", initial=200, floor=100, ceiling=200)

        assert size.shrink() == 100

    def test_shrink_below_floor_raises_collapse(self):
        size = AdaptiveBatchSize("page", initial=1500, floor=1000, ceiling=2000)

        with pytest.raises(BatchCollapseError) as exc_info:
            size.shrink()

        assert exc_info.value.dimension == "page"
        assert exc_info.value.attempted == 750
        assert exc_info.value.floor == 1000
        assert exc_info.value.severity == ErrorSeverity.CRITICAL
        assert size.current == 1500

    @pytest.mark.parametrize(
        "initial,floor,ceiling",
        [(10, 0, 10), (5, 10, 20), (30, 10, 20)],
    )
    def test_invalid_bounds_rejected(self, initial, floor, ceiling):
        with pytest.raises(ValueError):
            AdaptiveBatchSize("page", initial=initial, floor=floor, ceiling=ceiling)


@pytest.mark.asyncio
class TestSingleFlightLock:
    """Non-blocking mutual exclusion for heavy jobs."""

    async def test_second_acquire_fails_while_held(self):
        lock = SingleFlightLock()

        assert lock.try_acquire() is True
        assert lock.try_acquire() is False
        assert lock.is_held

        lock.release()
        assert lock.try_acquire() is True

    async def test_hold_reports_busy_without_releasing_owner(self):
        lock = SingleFlightLock()

        async with lock.hold() as outer:
            async with lock.hold() as inner:
                assert outer is True
                assert inner is False
            # The busy block must not release the owner's lock
            assert lock.is_held

        assert not lock.is_held

    async def test_hold_releases_on_error(self):
        lock = SingleFlightLock()

        with pytest.raises(RuntimeError):
            async with lock.hold():
                raise RuntimeError("boom")

        assert not lock.is_held
