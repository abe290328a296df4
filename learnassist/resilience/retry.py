"""Retry a request coroutine with exponential backoff on connectivity failures."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


def is_retryable(error: BaseException) -> bool:
    """Only connectivity/network failures are worth retrying."""
    return bool(
        getattr(error, "is_connectivity_issue", False)
        or getattr(error, "is_network_error", False)
    )


async def retry_request(
    fn: Callable[[], Awaitable[T]],
    max_retries: int = 3,
    initial_delay: float = 1.0,
) -> T:
    """Await ``fn()`` up to ``max_retries`` times.

    Waits ``initial_delay * 2**(attempt - 1)`` seconds between attempts.
    Errors that are not connectivity issues are raised immediately; after the
    last attempt the last error is raised.
    """
    if max_retries < 1:
        raise ValueError("max_retries must be >= 1")

    for attempt in range(1, max_retries):
        try:
            return await fn()
        except Exception as exc:
            if not is_retryable(exc):
                raise
            delay = initial_delay * 2 ** (attempt - 1)
            logger.info("Retry %d/%d in %.1fs: %s", attempt, max_retries, delay, exc)
            await asyncio.sleep(delay)

    return await fn()
