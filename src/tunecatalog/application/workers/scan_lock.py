"""Process-wide try-lock that keeps library scans from overlapping."""

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from tunecatalog.domain.exceptions import ScanInProgressError

logger = logging.getLogger(__name__)


# Hey future me - this is a TRY-lock, not a queue. A second scan request never waits
# for the first one: it gets ScanInProgressError right away (HTTP 409). One instance
# is created at startup and injected, so tests get their own fresh lock.
class ScanLock:
    """Non-blocking mutual exclusion for scans."""

    def __init__(self) -> None:
        self._held = False

    @property
    def is_held(self) -> bool:
        return self._held

    def try_acquire(self) -> bool:
        """Take the lock if free. Returns False instead of waiting."""
        # No await between check and set, so this is atomic on the event loop
        if self._held:
            return False
        self._held = True
        return True

    def release(self) -> None:
        self._held = False

    @asynccontextmanager
    async def hold(self) -> AsyncIterator[None]:
        """Hold the lock for the body; raises ScanInProgressError when busy.

        Released in ``finally``, so cancellation and timeouts free it too.
        """
        if not self.try_acquire():
            raise ScanInProgressError()
        try:
            yield
        finally:
            self.release()
            # Give anyone who polled is_held during the scan a chance to see it free
            await asyncio.sleep(0)


__all__ = ["ScanLock"]
