# Hey future me - this is THE FIX for "database is locked" errors!
#
# SQLite can only have ONE writer at a time (even with WAL mode). A scan batch
# and an enrichment save can collide, and one of them gets "database is locked".
# Those locks are TEMPORARY - waiting and retrying almost always works.
#
# If the lock outlives all retries we raise TransientIOError, which the
# enrichment worker understands as "retry the whole batch later".
#
# USAGE:
#   @with_db_retry(max_attempts=3)
#   async def insert_batch(self, tracks):
#       ...
"""Database retry utilities for handling SQLite lock errors."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from functools import wraps
from typing import ParamSpec, TypeVar

from sqlalchemy.exc import OperationalError

from tunecatalog.domain.exceptions import TransientIOError

logger = logging.getLogger(__name__)

P = ParamSpec("P")
T = TypeVar("T")


def is_lock_error(exception: BaseException) -> bool:
    """Check if an exception is a retryable SQLite lock error.

    Args:
        exception: The exception to check

    Returns:
        True for OperationalError "database is locked" / "busy"
    """
    if not isinstance(exception, OperationalError):
        return False

    error_msg = str(exception).lower()
    return "locked" in error_msg or "busy" in error_msg


def retry_delays(
    max_attempts: int, initial_delay: float, max_delay: float, backoff_factor: float
) -> list[float]:
    """Waits between attempts: 0.5 -> 1.0 -> 2.0 ... capped at max_delay.

    One entry less than max_attempts (no wait after the last attempt).
    """
    delays: list[float] = []
    delay = initial_delay
    for _ in range(max(0, max_attempts - 1)):
        delays.append(delay)
        delay = min(delay * backoff_factor, max_delay)
    return delays


def with_db_retry(
    max_attempts: int = 3,
    initial_delay: float = 0.5,
    max_delay: float = 5.0,
    backoff_factor: float = 2.0,
) -> Callable[[Callable[P, Awaitable[T]]], Callable[P, Awaitable[T]]]:
    """Decorator for retrying database operations on lock errors.

    The decorated coroutine must open its OWN transaction (session_scope), so
    each retry starts from a clean slate.

    Args:
        max_attempts: Maximum attempts including the first one (default: 3)
        initial_delay: Initial delay in seconds (default: 0.5)
        max_delay: Maximum delay cap in seconds (default: 5.0)
        backoff_factor: Multiply delay by this each retry (default: 2.0)

    Returns:
        Decorated function with automatic retry logic.

    Raises:
        TransientIOError: If the database is still locked after all attempts.
        Other OperationalErrors are raised immediately.
    """
    delays = retry_delays(max_attempts, initial_delay, max_delay, backoff_factor)

    def decorator(func: Callable[P, Awaitable[T]]) -> Callable[P, Awaitable[T]]:
        @wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            for attempt in range(max_attempts):
                try:
                    return await func(*args, **kwargs)
                except OperationalError as e:
                    if not is_lock_error(e):
                        raise

                    if attempt >= len(delays):
                        logger.error(
                            "Database locked after %d attempts, giving up: %s",
                            max_attempts,
                            func.__qualname__,
                        )
                        raise TransientIOError(
                            f"Database locked during {func.__name__}"
                        ) from e

                    logger.warning(
                        "Database locked (attempt %d/%d), retrying in %.1fs: %s",
                        attempt + 1,
                        max_attempts,
                        delays[attempt],
                        func.__qualname__,
                    )
                    await asyncio.sleep(delays[attempt])

            raise TransientIOError(f"Database retry loop ended for {func.__name__}")

        return wrapper

    return decorator


__all__ = ["is_lock_error", "retry_delays", "with_db_retry"]
