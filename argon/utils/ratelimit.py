import asyncio
import time
from typing import Awaitable, Callable


class TokenBucket:
    """Async token bucket.

    Holds at most ``capacity`` tokens and refills at ``rate`` tokens per
    second. ``acquire`` waits until enough tokens are available. A bucket
    with capacity 1 and rate ``1 / interval`` spaces calls ``interval``
    seconds apart while letting the first one through immediately.

    ``clock`` and ``sleep`` are injectable so the throttle can be driven by
    a fake clock in tests.
    """

    def __init__(
        self,
        rate: float,
        capacity: float = 1,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if rate <= 0:
            raise ValueError("Rate must be greater than 0")
        if capacity < 1:
            raise ValueError("Capacity must be at least 1")

        self.rate = rate
        self.capacity = capacity
        self.clock = clock
        self.sleep = sleep

        self.tokens = capacity
        self.updated_at = clock()
        self._lock = asyncio.Lock()

    @classmethod
    def every(cls, interval: float, **kwargs) -> "TokenBucket":
        """One call per ``interval`` seconds."""
        return cls(rate=1 / interval, capacity=1, **kwargs)

    def _refill(self) -> None:
        now = self.clock()
        elapsed = max(0.0, now - self.updated_at)
        self.tokens = min(self.capacity, self.tokens + elapsed * self.rate)
        self.updated_at = now

    async def acquire(self, tokens: float = 1) -> float:
        """Takes ``tokens`` from the bucket, returning the seconds spent waiting."""
        if tokens > self.capacity:
            raise ValueError("Cannot acquire more tokens than the bucket holds")

        waited = 0.0
        async with self._lock:
            self._refill()
            while self.tokens < tokens:
                delay = (tokens - self.tokens) / self.rate
                await self.sleep(delay)
                waited += delay
                self._refill()
            self.tokens -= tokens
        return waited
