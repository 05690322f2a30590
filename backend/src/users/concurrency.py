"""Concurrent execution of backing-store calls."""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Iterable, List, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")

# Per-user DynamoDB queries a repository keeps in flight at once
MAX_CONCURRENT_QUERIES = 16


async def gather_or_cancel(*awaitables: Awaitable[Any]) -> List[Any]:
    """
    Await all awaitables concurrently and return their results in order.

    When one of them fails, the others are cancelled and awaited before the
    first failure is raised, so no sibling is left running in the background.
    """
    tasks = [asyncio.ensure_future(aw) for aw in awaitables]
    try:
        return await asyncio.gather(*tasks)
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise


async def run_bounded(
    func: Callable[[T], R],
    items: Iterable[T],
    limit: int = MAX_CONCURRENT_QUERIES,
) -> List[R]:
    """
    Run the blocking ``func`` once per item in the default executor.

    At most ``limit`` calls run at the same time. Results keep the order of
    ``items``.
    """
    loop = asyncio.get_event_loop()
    semaphore = asyncio.Semaphore(limit)

    async def run(item: T) -> R:
        async with semaphore:
            return await loop.run_in_executor(None, func, item)

    return await gather_or_cancel(*(run(item) for item in items))
