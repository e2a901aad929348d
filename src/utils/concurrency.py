"""Batched fan-out helpers for rate-limited collaborator calls.

Entity extraction and embedding both talk to metered external APIs.  The
discipline used for both is deliberately simple: run a fixed-size batch
concurrently, wait a fixed delay, run the next batch.  Results are always
returned in input order regardless of completion order, so callers can
zip them back onto the items they came from.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Sequence, TypeVar

import structlog

from src.utils.logging import get_logger

_T = TypeVar("_T")
_R = TypeVar("_R")

_logger: structlog.BoundLogger = get_logger(__name__)


async def gather_in_batches(
    items: Sequence[_T],
    fn: Callable[[_T], Awaitable[_R]],
    batch_size: int = 5,
    delay: float = 1.0,
    return_exceptions: bool = True,
) -> list[_R | BaseException]:
    """Apply *fn* to every item in concurrent batches with an inter-batch pause.

    Parameters
    ----------
    items:
        Inputs to process.
    fn:
        Async callable invoked once per item.
    batch_size:
        Number of calls in flight at once.  Values below 1 are treated as 1.
    delay:
        Seconds to sleep between batches (never after the last batch).
    return_exceptions:
        If ``True``, exceptions are returned in the results list rather
        than being raised.  Mirrors ``asyncio.gather`` semantics.

    Returns
    -------
    list[_R | BaseException]
        Results positionally aligned with *items*.
    """
    size = max(1, batch_size)
    results: list[_R | BaseException] = []

    for start in range(0, len(items), size):
        batch = items[start : start + size]
        batch_results = await asyncio.gather(
            *(fn(item) for item in batch),
            return_exceptions=return_exceptions,
        )
        results.extend(batch_results)

        _logger.debug(
            "batch_completed",
            batch_start=start,
            batch_size=len(batch),
            total=len(items),
        )

        if delay > 0 and start + size < len(items):
            await asyncio.sleep(delay)

    return results


def chunked(items: Sequence[_T], size: int) -> list[Sequence[_T]]:
    """Split *items* into consecutive slices of at most *size* elements."""
    size = max(1, size)
    return [items[i : i + size] for i in range(0, len(items), size)]
