from __future__ import annotations

import asyncio
from typing import Any, Coroutine, Iterable


async def run_all_or_fail(coros: Iterable[Coroutine[Any, Any, None]]) -> None:
    """Run coroutines as tasks and wait for all of them.

    The first task to raise aborts the wait and its exception propagates.
    On any exit (error, or cancellation of the caller) every unfinished task
    is cancelled and awaited, so nothing outlives the call.
    """
    tasks = [asyncio.create_task(coro) for coro in coros]
    try:
        for next_done in asyncio.as_completed(tasks):
            await next_done
    finally:
        for task in tasks:
            if not task.done():
                task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
