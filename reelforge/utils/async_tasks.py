"""Helpers for fan-out work inside a pipeline run"""

import asyncio
from typing import Any, Awaitable, List, Sequence


async def gather_or_cancel(coros: Sequence[Awaitable[Any]]) -> List[Any]:
    """Await all coroutines and return their results in input order.

    On the first failure every still-running sibling is cancelled and awaited
    before the error propagates, so none of them writes after cleanup.
    """
    tasks = [asyncio.ensure_future(coro) for coro in coros]
    if not tasks:
        return []

    try:
        done, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)
    except asyncio.CancelledError:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise

    failed = [task for task in done if not task.cancelled() and task.exception() is not None]
    if failed:
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
        # Earliest-submitted failure keeps the reported error stable
        first = min(failed, key=tasks.index)
        raise first.exception()
    return [task.result() for task in tasks]
