"""Process-wide rate limiter.

One permit per ``interval`` seconds, shared by every session. The first
permit is issued immediately. Callers queue on a lock, so only the waiting
task blocks and permits are never issued closer than ``interval`` apart.
"""

import asyncio
import time
from typing import Awaitable, Callable, Optional


DEFAULT_INTERVAL = 5.0


class RateLimiter:
    """Fixed-interval permit source.

    Usage:
        limiter = RateLimiter(interval=5.0)
        await limiter.wait()  # before every navigation / load-more action

    Cancelling the waiting task raises ``asyncio.CancelledError`` out of
    ``wait()`` and does not consume a permit.
    """

    def __init__(
        self,
        interval: float = DEFAULT_INTERVAL,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if interval < 0:
            raise ValueError("interval must be >= 0")
        self.interval = interval
        self._clock = clock
        self._sleep = sleep
        self._lock = asyncio.Lock()
        self._next_at: Optional[float] = None
        self.permits_issued = 0
        self.last_issued_at: Optional[float] = None

    async def wait(self) -> None:
        """Block until a permit is available."""
        async with self._lock:
            if self._next_at is not None:
                delay = self._next_at - self._clock()
                if delay > 0:
                    await self._sleep(delay)
            issued_at = self._clock()
            self._next_at = issued_at + self.interval
            self.last_issued_at = issued_at
            self.permits_issued += 1
