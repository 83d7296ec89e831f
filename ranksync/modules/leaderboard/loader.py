"""
Adaptive Batch Loader
=====================

Purpose
-------
Copy `(id, money)` rows from the durable store into the ranking projection
in ascending-id pages, splitting each page into sub-chunks for the cache.

Adaptation
----------
- `StoreReadError` on a page read halves the page size and retries the
  same offset.
- `CacheCapacityOverflowError` on a chunk write halves the chunk size and
  retries the same sub-chunk.
- After every completed page both sizes grow towards their ceilings.
- Halving below the floor raises `BatchCollapseError`, which aborts the pass.

The loader yields to the event loop after every chunk and every page so
queries keep being served during multi-million-row passes.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Optional

from ranksync.core.exceptions import CacheCapacityOverflowError, StoreReadError
from ranksync.core.logging.logger import get_logger

from .batching import AdaptiveBatchSize
from .projection import RankingProjection
from .store import PlayerStore

logger = get_logger(__name__)


@dataclass(frozen=True)
class LoadResult:
    """Outcome of one `load_range` call."""

    applied: int
    next_offset: int
    exhausted: bool
    pages: int
    page_shrinks: int = 0
    chunk_shrinks: int = 0


class AdaptiveBatchLoader:
    def __init__(
        self,
        store: PlayerStore,
        projection: RankingProjection,
        floor: int = 1000,
    ) -> None:
        self._store = store
        self._projection = projection
        self.floor = floor

    async def load_range(
        self,
        after_id: Optional[int] = None,
        start_offset: int = 0,
        page_size: int = 500_000,
        chunk_size: int = 50_000,
        page_ceiling: Optional[int] = None,
        chunk_ceiling: Optional[int] = None,
        max_pages: Optional[int] = None,
    ) -> LoadResult:
        """
        Load pages starting at `start_offset` of the id-ordered rows with
        `id > after_id` (all rows when `after_id` is None).

        Stops when a page comes back empty (`exhausted=True`) or after
        `max_pages` non-empty pages.

        Raises:
            BatchCollapseError: a batch size fell below the floor
        """
        page = AdaptiveBatchSize(
            "page", page_size, self.floor, page_ceiling or page_size
        )
        chunk = AdaptiveBatchSize(
            "chunk", chunk_size, self.floor, chunk_ceiling or chunk_size
        )

        offset = start_offset
        applied = 0
        pages = 0
        exhausted = False
        start = time.perf_counter()

        while max_pages is None or pages < max_pages:
            try:
                rows = await self._store.fetch_page(offset, page.current, after_id=after_id)
            except StoreReadError as exc:
                logger.warning(
                    "Page read failed; halving page size",
                    extra={
                        "offset": offset,
                        "page_size": page.current,
                        "error": str(exc.original_error),
                    },
                )
                page.shrink()
                continue

            if not rows:
                exhausted = True
                break

            i = 0
            while i < len(rows):
                sub = rows[i : i + chunk.current]
                try:
                    await self._projection.upsert(sub)
                except CacheCapacityOverflowError as exc:
                    logger.warning(
                        "Cache write overflowed; halving chunk size",
                        extra={
                            "offset": offset + i,
                            "chunk_size": chunk.current,
                            "error": str(exc.original_error),
                        },
                    )
                    chunk.shrink()
                    continue

                i += len(sub)
                applied += len(sub)
                await asyncio.sleep(0)

            offset += len(rows)
            pages += 1

            page.grow()
            chunk.grow()

            logger.debug(
                "Page applied",
                extra={
                    "page": pages,
                    "rows": len(rows),
                    "next_offset": offset,
                    "page_size": page.current,
                    "chunk_size": chunk.current,
                },
            )
            await asyncio.sleep(0)

        result = LoadResult(
            applied=applied,
            next_offset=offset,
            exhausted=exhausted,
            pages=pages,
            page_shrinks=page.shrink_count,
            chunk_shrinks=chunk.shrink_count,
        )

        logger.info(
            "Range load finished",
            extra={
                "after_id": after_id,
                "start_offset": start_offset,
                "applied": applied,
                "pages": pages,
                "exhausted": exhausted,
                "page_shrinks": page.shrink_count,
                "chunk_shrinks": chunk.shrink_count,
                "duration_ms": round((time.perf_counter() - start) * 1000, 2),
            },
        )
        return result
