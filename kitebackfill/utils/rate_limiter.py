"""
Rate Limiter for API requests

Admits at most ``limit`` calls in any ``interval`` second window. One
instance is shared by every request of a run, retries included.
"""

import asyncio
import time
from collections import deque
from typing import Callable, Deque
from dataclasses import dataclass


@dataclass
class RateLimitStats:
    """Statistics for rate limiter"""
    total_requests: int = 0
    requests_allowed: int = 0
    requests_throttled: int = 0
    total_wait_time: float = 0.0
    average_wait_time: float = 0.0


class RateLimiter:
    """
    Sliding window rate limiter for async operations

    Callers are admitted in arrival order: the lock is held while a caller
    waits for window capacity, and asyncio.Lock wakes its waiters FIFO, so
    later callers cannot overtake an earlier one that is being throttled.
    """

    def __init__(
        self,
        limit: int = 2,
        interval: float = 1.0,
        clock: Callable[[], float] = time.monotonic
    ):
        """
        Initialize rate limiter

        Args:
            limit: Calls admitted per window
            interval: Window length in seconds
            clock: Monotonic time source
        """
        if limit < 1:
            raise ValueError(f"limit must be >= 1, got {limit}")
        if interval <= 0:
            raise ValueError(f"interval must be > 0, got {interval}")

        self.limit = limit
        self.interval = interval
        self._clock = clock

        # Admission times of the calls still inside the window
        self._admitted: Deque[float] = deque()

        # Synchronization
        self._lock = asyncio.Lock()

        # Statistics
        self.stats = RateLimitStats()

    @classmethod
    def from_settings(cls, settings) -> 'RateLimiter':
        return cls(limit=settings.rate_limit_calls, interval=settings.rate_limit_interval)

    async def __aenter__(self):
        """Async context manager entry"""
        await self.acquire()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit"""
        pass

    async def acquire(self) -> float:
        """
        Wait for a slot in the current window

        Returns:
            Time waited in seconds
        """
        async with self._lock:
            self.stats.total_requests += 1
            waited = 0.0

            while True:
                now = self._clock()
                self._evict(now)

                if len(self._admitted) < self.limit:
                    self._admitted.append(now)
                    break

                wait_time = self._admitted[0] + self.interval - now
                await asyncio.sleep(wait_time)
                waited += wait_time

            if waited > 0:
                self.stats.requests_throttled += 1
                self.stats.total_wait_time += waited
                self.stats.average_wait_time = (
                    self.stats.total_wait_time / self.stats.requests_throttled
                )
            else:
                self.stats.requests_allowed += 1

            return waited

    def _evict(self, now: float):
        while self._admitted and now - self._admitted[0] >= self.interval:
            self._admitted.popleft()

    def get_available_slots(self) -> int:
        """Slots free in the current window"""
        self._evict(self._clock())
        return self.limit - len(self._admitted)
