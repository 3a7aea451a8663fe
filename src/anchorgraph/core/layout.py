"""Deterministic non-overlapping positions for projected graph nodes."""

from __future__ import annotations

import random
from dataclasses import dataclass

from .model import Position


@dataclass(frozen=True)
class LayoutBounds:
    min_coord: int = 10
    max_x: int = 700
    max_y: int = 600


@dataclass(frozen=True)
class GridStep:
    # Adjacent cells never overlap at these spacings
    x_multiple: int = 50
    y_multiple: int = 30


def _snapped_values(lo: int, hi: int, multiple: int) -> set[int]:
    return {(v // multiple) * multiple for v in range(lo, hi)}


def capacity(bounds: LayoutBounds, grid: GridStep) -> int:
    """Largest pool size that still gets a distinct x and y per position."""
    xs = _snapped_values(bounds.min_coord, bounds.max_x, grid.x_multiple)
    ys = _snapped_values(bounds.min_coord, bounds.max_y, grid.y_multiple)
    return min(len(xs), len(ys))


def _unique_samples(rng: random.Random, n: int, lo: int, hi: int, multiple: int) -> list[int]:
    seen: set[int] = set()
    out: list[int] = []
    while len(out) < n:
        value = (rng.randrange(lo, hi) // multiple) * multiple
        if value not in seen:
            seen.add(value)
            out.append(value)
    return out


def generate_positions(
    n: int,
    bounds: LayoutBounds | None = None,
    grid: GridStep | None = None,
    seed: int | None = None,
) -> list[Position]:
    """
    Build a pool of ``n`` positions, in generation order.

    x is sampled from ``[min_coord, max_x)`` and y from ``[min_coord, max_y)``,
    each snapped down to its grid multiple and resampled until ``n`` distinct
    values exist per axis. The same seed always yields the same pool.

    Raises:
        ValueError: ``n`` exceeds the distinct snapped values of an axis
    """
    bounds = bounds or LayoutBounds()
    grid = grid or GridStep()
    if n < 0:
        raise ValueError(f"pool size must be non-negative, got {n}")
    limit = capacity(bounds, grid)
    if n > limit:
        raise ValueError(f"pool size {n} exceeds layout capacity {limit}")

    rng = random.Random(seed)
    xs = _unique_samples(rng, n, bounds.min_coord, bounds.max_x, grid.x_multiple)
    ys = _unique_samples(rng, n, bounds.min_coord, bounds.max_y, grid.y_multiple)
    return [Position(x, y) for x, y in zip(xs, ys)]


class PositionCursor:
    """
    Hands out pool positions in order.

    Once the pool is used up, further positions fill rows below the layout
    area, one grid cell apart, so they never collide with the pool or each
    other.
    """

    def __init__(self, pool: list[Position], bounds: LayoutBounds | None = None, grid: GridStep | None = None):
        self.pool = pool
        self.bounds = bounds or LayoutBounds()
        self.grid = grid or GridStep()
        self.index = 0

    def next(self) -> Position:
        i = self.index
        self.index += 1
        if i < len(self.pool):
            return self.pool[i]

        overflow = i - len(self.pool)
        first_x = (self.bounds.min_coord // self.grid.x_multiple) * self.grid.x_multiple
        columns = max(1, (self.bounds.max_x - first_x) // self.grid.x_multiple)
        row, column = divmod(overflow, columns)
        return Position(
            x=first_x + column * self.grid.x_multiple,
            y=self.bounds.max_y + (row + 1) * self.grid.y_multiple,
        )
