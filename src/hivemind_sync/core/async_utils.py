"""Async utilities for offloading blocking file I/O from the event loop."""

import asyncio
from typing import Any, Callable, TypeVar

T = TypeVar("T")


async def run_sync(
    func: Callable[..., T], *args: Any, **kwargs: Any
) -> T:
    """Run a synchronous function in a thread pool without blocking the event loop.

    Every filesystem call made by the vault, the content store and the
    settings store goes through here, which is what makes them the
    suspension points of the sync core.

    Args:
        func: Synchronous function to call
        *args: Positional arguments for func
        **kwargs: Keyword arguments for func

    Returns:
        Result of func(*args, **kwargs)

    Example:
        content, _ = await run_sync(read_file_with_encoding, path)
    """
    return await asyncio.to_thread(func, *args, **kwargs)
