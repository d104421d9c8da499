"""Deadline enforcement for awaited operations.

The guarded coroutine runs as a task that is cancelled when the deadline
passes, so an in-flight HTTP request is aborted rather than left running.
"""

import asyncio
from typing import Awaitable, Callable, TypeVar

from drivegate.exceptions import DeadlineExceeded

T = TypeVar("T")


async def with_deadline(
    operation: Awaitable[T],
    seconds: float | None,
    on_timeout: Callable[[], Exception] | None = None,
) -> T:
    """Await ``operation`` for at most ``seconds``.

    Raises the exception built by ``on_timeout`` (``DeadlineExceeded`` by
    default) once the deadline passes. ``None`` or a non-positive value
    disables the deadline.
    """
    if seconds is None or seconds <= 0:
        return await operation
    try:
        return await asyncio.wait_for(operation, timeout=seconds)
    except asyncio.TimeoutError:
        if on_timeout is not None:
            raise on_timeout() from None
        raise DeadlineExceeded(f"Operation timed out after {seconds:g}s") from None
