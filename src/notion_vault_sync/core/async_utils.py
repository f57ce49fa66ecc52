"""Async utilities for bridging blocking sync runs to async hosts."""

import asyncio
import logging
from typing import Any, Callable, TypeVar

T = TypeVar("T")
logger = logging.getLogger(__name__)


async def run_sync(
    func: Callable[..., T], *args: Any, **kwargs: Any
) -> T:
    """Run a synchronous function in a thread pool without blocking the event loop.

    Used by the MCP tool handlers and the auto-sync scheduler: a whole sync
    run executes in one worker thread, so it remains strictly sequential
    while the event loop keeps serving other requests.

    Args:
        func: Synchronous function to call
        *args: Positional arguments for func
        **kwargs: Keyword arguments for func

    Returns:
        Result of func(*args, **kwargs)

    Example:
        # In MCP tool handler:
        report = await run_sync(engine.run, sync_config)
    """
    return await asyncio.to_thread(func, *args, **kwargs)
