"""Token bucket pacing for ledger API calls."""

import asyncio
import logging
import time
from typing import Awaitable, Callable, Optional

logger = logging.getLogger(__name__)


class TokenBucket:
    """Async token bucket shared by every ledger request of a run.

    Tokens refill continuously at ``rate`` per second up to ``capacity``.
    ``acquire()`` waits until a token is available and takes it. With the
    defaults (one token per second, capacity one) successive calls are
    spaced one second apart.
    """

    def __init__(
        self,
        rate: float = 1.0,
        capacity: int = 1,
        clock: Optional[Callable[[], float]] = None,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ):
        """Initialize the bucket.

        Args:
            rate: Tokens added per second. Must be positive.
            capacity: Maximum number of tokens held (burst size).
            clock: Monotonic clock, injectable for tests.
            sleep: Async sleep, injectable for tests.

        Raises:
            ValueError: If rate or capacity is not positive.
        """
        if rate <= 0:
            raise ValueError("rate must be positive")
        if capacity < 1:
            raise ValueError("capacity must be at least 1")

        self.rate = rate
        self.capacity = capacity
        self._clock = clock or time.monotonic
        self._sleep = sleep or asyncio.sleep
        self._tokens = float(capacity)
        self._updated_at = self._clock()
        self._lock = asyncio.Lock()

    def _refill(self) -> None:
        now = self._clock()
        elapsed = max(0.0, now - self._updated_at)
        self._tokens = min(float(self.capacity), self._tokens + elapsed * self.rate)
        self._updated_at = now

    @property
    def available(self) -> float:
        self._refill()
        return self._tokens

    async def acquire(self) -> float:
        """Wait for and take one token.

        Returns:
            Seconds spent waiting.
        """
        waited = 0.0
        async with self._lock:
            self._refill()
            while self._tokens < 1.0:
                delay = (1.0 - self._tokens) / self.rate
                logger.debug(f"Rate limit reached, waiting {delay:.3f}s")
                await self._sleep(delay)
                waited += delay
                self._refill()
            self._tokens -= 1.0
        return waited
