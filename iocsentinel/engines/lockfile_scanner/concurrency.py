"""Bounded worker pool for async jobs, results kept in input order."""

from __future__ import annotations

import asyncio
from collections import deque
from collections.abc import Awaitable, Callable, Sequence
from typing import TypeVar

T = TypeVar("T")
R = TypeVar("R")


async def run_with_concurrency(
    items: Sequence[T],
    limit: int,
    fn: Callable[[T], Awaitable[R]],
) -> list[R]:
    """Await ``fn(item)`` for every item with at most *limit* calls in flight.

    ``min(limit, len(items))`` workers share one queue; each takes the next
    item as soon as its previous call finishes. ``results[i]`` is always the
    result for ``items[i]``. An exception raised by *fn* propagates.
    """
    if limit < 1:
        raise ValueError(f"concurrency limit must be >= 1, got {limit}")
    if not items:
        return []

    queue: deque[tuple[int, T]] = deque(enumerate(items))
    results: list[R | None] = [None] * len(items)

    async def _worker() -> None:
        while queue:
            index, item = queue.popleft()
            results[index] = await fn(item)

    await asyncio.gather(*(_worker() for _ in range(min(limit, len(items)))))
    return results  # type: ignore[return-value]
