"""
Retry Handler with attempt-count backoff

Provides bounded retry logic for handling transient failures in API calls.
"""

import asyncio
import random
import time
from typing import Any, Awaitable, Callable, Optional, Type, Tuple
from dataclasses import dataclass
from enum import Enum

from loguru import logger

from kitebackfill.exceptions import RetryBudgetExhausted, TransientFetchError, RemoteDataError


class RetryStrategy(Enum):
    """Retry strategy types"""
    EXPONENTIAL_BACKOFF = "exponential_backoff"
    LINEAR_BACKOFF = "linear_backoff"
    FIXED_DELAY = "fixed_delay"


@dataclass
class RetryStats:
    """Statistics for retry operations"""
    total_attempts: int = 0
    successful_attempts: int = 0
    failed_attempts: int = 0
    total_retry_time: float = 0.0
    max_retries_reached: int = 0


class RetryHandler:
    """
    Runs a coroutine function up to ``max_attempts`` times

    Only ``retryable_exceptions`` are retried; anything else propagates
    unchanged on the attempt that raised it. When every attempt fails the
    handler raises RetryBudgetExhausted chained to the last error.
    """

    def __init__(
        self,
        max_attempts: int = 3,
        base_delay: float = 1.0,
        max_delay: float = 30.0,
        backoff_factor: float = 2.0,
        jitter: bool = True,
        strategy: RetryStrategy = RetryStrategy.LINEAR_BACKOFF,
        retryable_exceptions: Optional[Tuple[Type[BaseException], ...]] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep
    ):
        """
        Initialize retry handler

        Args:
            max_attempts: Total attempts, the first one included
            base_delay: Base delay between attempts in seconds
            max_delay: Maximum delay between attempts in seconds
            backoff_factor: Multiplier for exponential backoff
            jitter: Add random jitter to delays
            strategy: Retry strategy to use
            retryable_exceptions: Exceptions that should trigger another attempt
            sleep: Awaitable used to wait between attempts
        """
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {max_attempts}")

        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.backoff_factor = backoff_factor
        self.jitter = jitter
        self.strategy = strategy
        self.retryable_exceptions = retryable_exceptions or (TransientFetchError, RemoteDataError)
        self._sleep = sleep

        # Statistics
        self.stats = RetryStats()

    @classmethod
    def from_settings(cls, settings, **kwargs) -> 'RetryHandler':
        return cls(
            max_attempts=settings.max_retries,
            base_delay=settings.retry_base_delay,
            max_delay=settings.retry_max_delay,
            **kwargs
        )

    async def execute(
        self,
        func: Callable[..., Awaitable[Any]],
        *args,
        description: str = "",
        **kwargs
    ) -> Any:
        """
        Execute coroutine function with retry logic

        Args:
            func: Coroutine function to execute
            *args: Positional arguments for function
            description: Label used in log messages
            **kwargs: Keyword arguments for function

        Returns:
            Result of the first successful attempt

        Raises:
            RetryBudgetExhausted: if every attempt raised a retryable error
        """
        last_exception = None
        start_time = time.monotonic()

        for attempt in range(1, self.max_attempts + 1):
            self.stats.total_attempts += 1

            try:
                result = await func(*args, **kwargs)
            except self.retryable_exceptions as e:
                last_exception = e
                self.stats.failed_attempts += 1

                if attempt >= self.max_attempts:
                    self.stats.max_retries_reached += 1
                    break

                delay = self.calculate_delay(attempt)
                logger.warning(
                    f"Attempt {attempt}/{self.max_attempts} failed{' for ' + description if description else ''}: "
                    f"{type(e).__name__}: {e}. Retrying in {delay:.1f}s"
                )
                await self._sleep(delay)
                continue

            self.stats.successful_attempts += 1
            self.stats.total_retry_time += time.monotonic() - start_time
            return result

        # All attempts failed
        self.stats.total_retry_time += time.monotonic() - start_time
        raise RetryBudgetExhausted(self.max_attempts, last_exception) from last_exception

    def calculate_delay(self, attempt: int) -> float:
        """Delay before the attempt following ``attempt`` (1-based)"""
        if self.strategy == RetryStrategy.EXPONENTIAL_BACKOFF:
            delay = self.base_delay * (self.backoff_factor ** (attempt - 1))
        elif self.strategy == RetryStrategy.LINEAR_BACKOFF:
            delay = self.base_delay * attempt
        else:
            delay = self.base_delay

        # Apply maximum delay limit
        delay = min(delay, self.max_delay)

        # Add jitter if enabled
        if self.jitter:
            jitter_amount = delay * 0.1  # 10% jitter
            delay += random.uniform(-jitter_amount, jitter_amount)
            delay = max(0, delay)  # Ensure non-negative

        return delay
