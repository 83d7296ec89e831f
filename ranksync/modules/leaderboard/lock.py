"""Single-flight lock for the heavy leaderboard jobs."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator


class SingleFlightLock:
    """
    In-process, non-blocking mutual exclusion.

    At most one of rebuild, delta sync and reward distribution runs at a
    time. A caller that finds the lock held skips its run; nobody waits.
    Acquisition never awaits, so it is atomic on a single event loop.
    """

    def __init__(self) -> None:
        self._held = False

    @property
    def is_held(self) -> bool:
        return self._held

    def try_acquire(self) -> bool:
        if self._held:
            return False
        self._held = True
        return True

    def release(self) -> None:
        self._held = False

    @asynccontextmanager
    async def hold(self) -> AsyncIterator[bool]:
        """
        Yield True if the lock was acquired, False if it was busy.
        Releases on exit only when this block acquired it.
        """
        acquired = self.try_acquire()
        try:
            yield acquired
        finally:
            if acquired:
                self.release()
