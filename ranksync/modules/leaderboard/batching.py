"""Adaptive batch sizing shared by the rebuild and delta loaders."""

from __future__ import annotations

from ranksync.core.exceptions import BatchCollapseError


class AdaptiveBatchSize:
    """
    A batch size that halves on failure and grows after success.

    Args:
        dimension: Label used in logs and errors ("page" or "chunk")
        initial: Starting size
        floor: Smallest allowed size; shrinking below it raises `BatchCollapseError`
        ceiling: Largest size growth may reach
        growth: Multiplier applied by `grow()`
        shrink: Divisor applied by `shrink()`
    """

    def __init__(
        self,
        dimension: str,
        initial: int,
        floor: int,
        ceiling: int,
        growth: int = 2,
        shrink: int = 2,
    ) -> None:
        if floor <= 0 or initial < floor or ceiling < initial:
            raise ValueError(
                f"{dimension} sizes must satisfy 0 < floor <= initial <= ceiling "
                f"(got floor={floor}, initial={initial}, ceiling={ceiling})"
            )
        if growth < 1 or shrink < 2:
            raise ValueError("growth must be >= 1 and shrink must be >= 2")

        self.dimension = dimension
        self.floor = floor
        self.ceiling = ceiling
        self.growth = growth
        self.shrink_factor = shrink
        self.current = initial
        self.shrink_count = 0

    def grow(self) -> int:
        self.current = min(self.current * self.growth, self.ceiling)
        return self.current

    def shrink(self) -> int:
        """
        Halve the size.

        Raises:
            BatchCollapseError: the halved size would fall below the floor
        """
        attempted = self.current // self.shrink_factor
        if attempted < self.floor:
            raise BatchCollapseError(self.dimension, attempted, self.floor)
        self.current = attempted
        self.shrink_count += 1
        return self.current

    def __repr__(self) -> str:
        return (
            f"AdaptiveBatchSize({self.dimension!r}, current={self.current}, "
            f"floor={self.floor}, ceiling={self.ceiling})"
        )
