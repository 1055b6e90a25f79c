"""Bounded-concurrency gather.

:func:`throttled_gather` is a drop-in replacement for ``asyncio.gather``
that wraps each awaitable in a semaphore acquire/release.  Indexing uses it
so a request naming many files never parses more than a handful at once
(PDF and EPUB extraction hold the whole document in memory).
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable
from typing import TypeVar

_T = TypeVar("_T")

DEFAULT_CONCURRENCY = 4


async def throttled_gather(
    coros: list[Awaitable[_T]],
    limit: int = DEFAULT_CONCURRENCY,
    return_exceptions: bool = False,
) -> list[_T]:
    """Run awaitables concurrently, at most *limit* at a time.

    Parameters
    ----------
    coros:
        Awaitable objects to execute.
    limit:
        Maximum number running simultaneously.
    return_exceptions:
        Mirrors ``asyncio.gather``: when ``False`` the first exception
        propagates.

    Returns
    -------
    list
        Results in the same order as the input awaitables.
    """
    semaphore = asyncio.Semaphore(max(1, limit))

    async def _wrapped(coro: Awaitable[_T]) -> _T:
        async with semaphore:
            return await coro

    return await asyncio.gather(
        *(_wrapped(c) for c in coros), return_exceptions=return_exceptions
    )
