"""
Minimum-interval throttle for external API calls.

Hey future me - this is THE global throttle for the external metadata source!
Genius bans clients that hammer /search, so we guarantee at most ONE request per
min_interval, no matter how many coroutines call resolve() at the same time.

ALGORITHM: single lock + last-request timestamp
- Enter: take the lock, wait until min_interval has passed since the last request
- Do the request while STILL holding the lock
- Exit: record the timestamp (after the request) and release the lock

Holding the lock across the request is deliberate: two callers can never have
requests in flight at once, so "closer together than min_interval" can't happen.

USAGE:
    throttle = get_genius_throttle()

    async with throttle:
        response = await client.get(url)

The clock and sleep are injectable so tests can drive a fake clock.
"""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

Clock = Callable[[], float]
Sleep = Callable[[float], Awaitable[None]]


@dataclass
class MinIntervalThrottle:
    """Global minimum-interval throttle.

    Attributes:
        min_interval: Minimum seconds between two requests
        name: Limiter name for logging
        clock: Monotonic clock (seconds)
        sleep: Async sleep function
    """

    min_interval: float = 2.5
    name: str = "default"
    clock: Clock = field(default=time.monotonic)
    sleep: Sleep = field(default=asyncio.sleep)

    # Internal state (not in __init__ signature)
    _last_request: float | None = field(default=None, init=False)
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock, init=False)
    _total_wait: float = field(default=0.0, init=False)
    _requests: int = field(default=0, init=False)

    @classmethod
    def for_genius(cls, min_interval: float = 2.5) -> "MinIntervalThrottle":
        """Create the throttle for the Genius API.

        Genius doesn't document a hard limit; 2.5s between searches has been
        safe in practice and is the configured default.
        """
        return cls(min_interval=min_interval, name="genius")

    def time_until_ready(self) -> float:
        """Seconds until the next request is allowed (0 if allowed now)."""
        if self._last_request is None:
            return 0.0
        elapsed = self.clock() - self._last_request
        return max(0.0, self.min_interval - elapsed)

    async def acquire(self) -> None:
        """Take the lock and wait out the remaining interval.

        Callers MUST pair this with release(); prefer ``async with``.
        """
        await self._lock.acquire()
        try:
            wait_time = self.time_until_ready()
            if wait_time > 0:
                logger.debug(
                    f"Throttle[{self.name}]: waiting {wait_time:.2f}s before next request"
                )
                self._total_wait += wait_time
                await self.sleep(wait_time)
        except BaseException:
            # Cancelled while waiting - nothing was sent, don't record a request
            self._lock.release()
            raise

    def release(self) -> None:
        """Record the request timestamp and release the lock."""
        self._last_request = self.clock()
        self._requests += 1
        self._lock.release()

    async def __aenter__(self) -> "MinIntervalThrottle":
        """Enter async context - wait for our slot."""
        await self.acquire()
        return self

    async def __aexit__(
        self, exc_type: type | None, exc_val: BaseException | None, exc_tb: object
    ) -> None:
        """Exit async context - the request was issued, record it."""
        self.release()

    @property
    def stats(self) -> dict[str, float]:
        """Counters for status endpoints and debugging."""
        return {
            "requests": self._requests,
            "total_wait_seconds": round(self._total_wait, 3),
            "min_interval_seconds": self.min_interval,
        }


# Module-level throttle (singleton pattern)
# Hey future me - one throttle per external source, shared by every resolver.
_genius_throttle: MinIntervalThrottle | None = None


def get_genius_throttle(min_interval: float = 2.5) -> MinIntervalThrottle:
    """Get singleton Genius throttle.

    ``min_interval`` only applies on first creation.
    """
    global _genius_throttle
    if _genius_throttle is None:
        _genius_throttle = MinIntervalThrottle.for_genius(min_interval)
    return _genius_throttle


__all__ = [
    "MinIntervalThrottle",
    "get_genius_throttle",
]
