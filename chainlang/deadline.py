from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Iterable

from .errors import ChainTimeoutError


async def with_timeout(awaitable: Awaitable[Any], timeout: float, what: str) -> Any:
    """Await ``awaitable`` for at most ``timeout`` seconds.

    On expiry the work is cancelled and awaited until it has actually stopped,
    then :class:`ChainTimeoutError` is raised. A ``TimeoutError`` raised by the
    work itself propagates unchanged.
    """
    task = asyncio.ensure_future(awaitable)
    try:
        done, _ = await asyncio.wait({task}, timeout=timeout)
    except asyncio.CancelledError:
        task.cancel()
        raise
    if not done:
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)
        raise ChainTimeoutError(timeout, what)
    return task.result()


def cancel_tasks(tasks: Iterable["asyncio.Future"]) -> int:
    """Cancel every unfinished task; return how many were cancelled."""
    cancelled = 0
    for task in tasks:
        if not task.done():
            task.cancel()
            cancelled += 1
    return cancelled
