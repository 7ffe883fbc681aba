"""Bounded fan-out for source adapters that fetch many items at once."""

from __future__ import annotations

import asyncio
from typing import Awaitable, TypeVar

_T = TypeVar("_T")


async def throttled_gather(
    coros: list[Awaitable[_T]],
    limit: int,
) -> list[_T | BaseException]:
    """Await *coros* with at most *limit* running at any moment.

    Failures are returned in place of results, so one bad page never
    cancels its siblings.  The result list is in input order.
    """
    gate = asyncio.Semaphore(max(1, limit))

    async def _gated(coro: Awaitable[_T]) -> _T:
        async with gate:
            return await coro

    return await asyncio.gather(*(_gated(c) for c in coros), return_exceptions=True)
