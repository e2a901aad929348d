"""Unit tests for the batched fan-out helpers."""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import pytest

from src.utils.concurrency import chunked, gather_in_batches


class TestGatherInBatches:
    @pytest.mark.asyncio
    async def test_results_keep_input_order(self) -> None:
        async def double(x: int) -> int:
            return x * 2

        results = await gather_in_batches([1, 2, 3, 4, 5], double, batch_size=2, delay=0)
        assert results == [2, 4, 6, 8, 10]

    @pytest.mark.asyncio
    async def test_exceptions_returned_in_place(self) -> None:
        async def maybe_fail(x: int) -> int:
            if x == 2:
                raise ValueError("bad item")
            return x

        results = await gather_in_batches([1, 2, 3], maybe_fail, batch_size=3, delay=0)
        assert results[0] == 1
        assert isinstance(results[1], ValueError)
        assert results[2] == 3

    @pytest.mark.asyncio
    async def test_sleeps_between_batches_only(self) -> None:
        async def identity(x: int) -> int:
            return x

        with patch("src.utils.concurrency.asyncio.sleep", new_callable=AsyncMock) as sleep:
            await gather_in_batches([1, 2, 3, 4, 5], identity, batch_size=2, delay=0.5)

        assert sleep.await_count == 2
        sleep.assert_awaited_with(0.5)


class TestChunked:
    def test_slices(self) -> None:
        assert chunked([1, 2, 3, 4, 5], 2) == [[1, 2], [3, 4], [5]]

    def test_size_below_one_treated_as_one(self) -> None:
        assert chunked([1, 2], 0) == [[1], [2]]
