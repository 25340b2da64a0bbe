# revcore/utils/async_helpers.py
"""
Async utilities for calling host-supplied code safely.
"""

import asyncio
import inspect
import logging
from typing import Any, Awaitable, Optional

logger = logging.getLogger(__name__)


async def maybe_await(value: Any) -> Any:
    """
    Resolve a value that may or may not be awaitable.

    Capabilities are allowed to be plain functions or coroutine functions;
    callers use this so both look the same.
    """
    if inspect.isawaitable(value):
        return await value
    return value


async def await_with_timeout(
    awaitable: Awaitable[Any],
    timeout: Optional[float],
    name: Optional[str] = None,
) -> Any:
    """
    Await with an optional ceiling.

    Unlike a fire-and-forget helper this one propagates: asyncio.TimeoutError
    on timeout, and whatever the awaitable raised otherwise. A timeout of
    None or <= 0 waits forever.

    Args:
        awaitable: The coroutine/future to wait for
        timeout: Timeout in seconds
        name: Optional name for logging
    """
    if not timeout or timeout <= 0:
        return await awaitable
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout)
    except asyncio.TimeoutError:
        logger.warning(f"[AsyncTask:{name or 'unknown'}] Timed out after {timeout}s")
        raise
