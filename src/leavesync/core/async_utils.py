"""Async helpers for running blocking store calls off the event loop."""

import asyncio
from typing import Any, Callable, TypeVar

T = TypeVar("T")


async def run_sync(func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
    """Run a synchronous function in a thread pool without blocking the event loop.

    Store implementations are plain blocking code (``requests``, file I/O);
    the sync client wraps every call with this helper.

    Example:
        document = await run_sync(store.fetch_latest, "leavesync-data.json")
    """
    return await asyncio.to_thread(func, *args, **kwargs)
