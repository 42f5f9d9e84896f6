"""Async retry helper for transient failures."""

import asyncio
from typing import Awaitable, Callable, Optional, TypeVar

from .error_reporting import is_transient
from .logging_config import logger

T = TypeVar("T")


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    max_retries: int = 3,
    delay: float = 1.0,
    retry_on: Optional[Callable[[BaseException], bool]] = None,
) -> T:
    """
    Run an async operation, retrying on failure with linear backoff.

    The wait before attempt ``n + 1`` is ``delay * n`` seconds. After
    the last attempt the most recent error is re-raised.

    Args:
        operation: Zero-argument callable returning an awaitable
        max_retries: Total number of attempts (at least 1)
        delay: Base delay in seconds
        retry_on: Predicate deciding whether an error is worth retrying.
                  Errors it rejects are raised immediately. Defaults to
                  retrying every error.

    Returns:
        The operation's result
    """
    if max_retries < 1:
        raise ValueError("max_retries must be at least 1")

    last_error: Optional[BaseException] = None
    for attempt in range(1, max_retries + 1):
        try:
            return await operation()
        except Exception as e:
            last_error = e
            if retry_on is not None and not retry_on(e):
                raise
            logger.debug(f"Retry attempt {attempt}/{max_retries} failed: {e}")
            if attempt < max_retries:
                await asyncio.sleep(delay * attempt)

    assert last_error is not None
    raise last_error


async def with_transient_retry(operation: Callable[[], Awaitable[T]], max_retries: int = 3, delay: float = 1.0) -> T:
    """Retry only network errors, rate limits and server errors."""
    return await with_retry(operation, max_retries=max_retries, delay=delay, retry_on=is_transient)
