"""Tests for the bounded worker pool."""

from __future__ import annotations

import asyncio

import pytest

from iocsentinel.engines.lockfile_scanner.concurrency import run_with_concurrency


class TestRunWithConcurrency:
    @pytest.mark.anyio
    async def test_results_in_input_order(self):
        async def job(n: int) -> int:
            # later items finish first
            await asyncio.sleep(0.001 * (10 - n))
            return n * n

        assert await run_with_concurrency(list(range(10)), 3, job) == [n * n for n in range(10)]

    @pytest.mark.anyio
    async def test_limit_respected(self):
        in_flight = 0
        peak = 0

        async def job(_: int) -> None:
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.001)
            in_flight -= 1

        await run_with_concurrency(list(range(20)), 4, job)
        assert peak == 4

    @pytest.mark.anyio
    async def test_limit_larger_than_items(self):
        async def job(n: int) -> int:
            return n + 1

        assert await run_with_concurrency([1, 2], 10, job) == [2, 3]

    @pytest.mark.anyio
    async def test_empty(self):
        async def job(n: int) -> int:
            raise AssertionError("never called")

        assert await run_with_concurrency([], 5, job) == []

    @pytest.mark.anyio
    async def test_invalid_limit(self):
        async def job(n: int) -> int:
            return n

        with pytest.raises(ValueError):
            await run_with_concurrency([1], 0, job)

    @pytest.mark.anyio
    async def test_exception_propagates(self):
        async def job(n: int) -> int:
            if n == 2:
                raise RuntimeError("boom")
            return n

        with pytest.raises(RuntimeError, match="boom"):
            await run_with_concurrency([1, 2, 3], 2, job)
