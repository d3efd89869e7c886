"""Run a flow coroutine to completion from synchronous code."""

import asyncio
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Coroutine, TypeVar

T = TypeVar("T")


def _loop_running() -> bool:
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return False
    return True


def run_coroutine_sync(coro: Coroutine[Any, Any, T]) -> T:
    """Run ``coro`` on a fresh event loop and return its result.

    A thread can't run two loops, so when the caller already sits inside one
    (Jupyter, an async web framework) the coroutine gets its own loop on a
    short-lived worker thread and the caller blocks until it finishes.
    """
    if not _loop_running():
        return asyncio.run(coro)

    with ThreadPoolExecutor(max_workers=1, thread_name_prefix="nodeflow-sync") as pool:
        return pool.submit(asyncio.run, coro).result()
