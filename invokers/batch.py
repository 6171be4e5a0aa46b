"""Concurrent fan-out over a list of inputs, results returned in input order."""

import asyncio
import logging
from typing import Awaitable, Callable, List, Sequence, Tuple, TypeVar

T = TypeVar("T")
R = TypeVar("R")

logger = logging.getLogger(__name__)


async def _tagged(index: int, fn: Callable[[T], Awaitable[R]], item: T) -> Tuple[int, R]:
    return index, await fn(item)


async def run_batch(fn: Callable[[T], Awaitable[R]], items: Sequence[T]) -> List[R]:
    """
    Submit every item at once and gather the results.

    Fan-out is unbounded. Policy is all-or-nothing: the first failure cancels
    the items still in flight and is raised to the caller.
    """
    if not items:
        return []

    tasks = [asyncio.ensure_future(_tagged(i, fn, item)) for i, item in enumerate(items)]
    results: List[Tuple[int, R]] = []
    try:
        for fut in asyncio.as_completed(tasks):
            results.append(await fut)
    except BaseException:
        pending = [t for t in tasks if not t.done()]
        for t in pending:
            t.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        # mark sibling failures as retrieved
        for t in tasks:
            if t.done() and not t.cancelled():
                t.exception()
        logger.debug("[batch] aborted after %d/%d items", len(results), len(tasks))
        raise

    results.sort(key=lambda pair: pair[0])
    return [r for _, r in results]
