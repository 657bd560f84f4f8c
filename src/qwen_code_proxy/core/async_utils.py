"""Async helpers shared by the store backends and the health checker."""

import asyncio
from collections.abc import Awaitable, Callable
from functools import partial
from typing import Any, TypeVar


T = TypeVar("T")


async def run_in_executor(func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
    """Call blocking ``func`` on the loop's default thread pool and await its result."""
    bound = partial(func, *args, **kwargs)
    return await asyncio.get_running_loop().run_in_executor(None, bound)


async def gather_with_concurrency(limit: int, *awaitables: Awaitable[T]) -> list[T]:
    """Await everything in ``awaitables`` with no more than ``limit`` in flight.

    Results come back in input order.
    """
    gate = asyncio.Semaphore(limit)

    async def _gated(awaitable: Awaitable[T]) -> T:
        async with gate:
            return await awaitable

    return list(await asyncio.gather(*map(_gated, awaitables)))
