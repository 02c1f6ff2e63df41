"""Invocation of external stage collaborators."""

import asyncio
import inspect
from collections.abc import Callable
from typing import Any

from ..errors import StageTimeoutError


async def call_collaborator(
    fn: Callable[..., Any],
    *args: Any,
    stage: str,
    operation: str,
    timeout: float | None = None,
) -> Any:
    """Call a generate/validate/repair/check function under a timeout.

    Async callables run on the event loop. Plain callables run in a worker
    thread via asyncio.to_thread, so a blocking call neither stalls other
    runs nor escapes the timeout. Awaitable results are awaited.

    A timed-out plain callable keeps running in its thread until it returns;
    its result is discarded.

    Args:
        fn: Collaborator callable
        *args: Positional arguments for fn
        stage: Stage name, for error reporting
        operation: Operation name (generate, validate, repair, check)
        timeout: Seconds before the call is abandoned (None = no limit)

    Returns:
        Whatever fn returned (awaited if needed)

    Raises:
        StageTimeoutError: If the call did not finish within timeout
    """

    async def _call() -> Any:
        if _is_async(fn):
            result = fn(*args)
        else:
            result = await asyncio.to_thread(fn, *args)
        if inspect.isawaitable(result):
            result = await result
        return result

    if timeout is None:
        return await _call()
    try:
        return await asyncio.wait_for(_call(), timeout=timeout)
    except TimeoutError:
        raise StageTimeoutError(stage, operation, timeout) from None


def _is_async(fn: Callable[..., Any]) -> bool:
    if inspect.iscoroutinefunction(fn):
        return True
    call = getattr(fn, "__call__", None)
    return call is not None and inspect.iscoroutinefunction(call)
