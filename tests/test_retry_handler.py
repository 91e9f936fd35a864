"""Tests for the bounded retry loop."""

import pytest

from kitebackfill.exceptions import RemoteDataError, RetryBudgetExhausted, TransientFetchError
from kitebackfill.utils.retry_handler import RetryHandler, RetryStrategy

from conftest import no_sleep


class TestRetryHandler:
    """Attempt counting and error surfacing."""

    @pytest.fixture
    def handler(self):
        return RetryHandler(max_attempts=3, base_delay=0.0, jitter=False, sleep=no_sleep)

    @pytest.mark.asyncio
    async def test_immediate_success_no_retry(self, handler):
        call_count = 0

        async def success():
            nonlocal call_count
            call_count += 1
            return "ok"

        assert await handler.execute(success) == "ok"
        assert call_count == 1
        assert handler.stats.failed_attempts == 0

    @pytest.mark.asyncio
    async def test_fails_twice_then_succeeds(self, handler):
        call_count = 0

        async def flaky():
            nonlocal call_count
            call_count += 1
            if call_count < 3:
                raise TransientFetchError(f"attempt {call_count}")
            return "ok"

        assert await handler.execute(flaky) == "ok"
        assert call_count == 3
        assert handler.stats.total_attempts == 3

    @pytest.mark.asyncio
    async def test_error_payload_is_retried(self, handler):
        call_count = 0

        async def no_data():
            nonlocal call_count
            call_count += 1
            raise RemoteDataError("Invalid `from` date")

        with pytest.raises(RetryBudgetExhausted) as exc_info:
            await handler.execute(no_data)

        assert call_count == 3
        assert exc_info.value.attempts == 3
        assert isinstance(exc_info.value.last_error, RemoteDataError)
        assert exc_info.value.__cause__ is exc_info.value.last_error
        assert handler.stats.max_retries_reached == 1

    @pytest.mark.asyncio
    async def test_non_retryable_error_propagates_immediately(self, handler):
        call_count = 0

        async def broken():
            nonlocal call_count
            call_count += 1
            raise KeyError("bug")

        with pytest.raises(KeyError):
            await handler.execute(broken)

        assert call_count == 1

    @pytest.mark.asyncio
    async def test_waits_between_attempts_only(self):
        delays = []

        async def record(delay):
            delays.append(delay)

        handler = RetryHandler(max_attempts=3, base_delay=0.5, jitter=False, sleep=record)

        async def always_fail():
            raise TransientFetchError("down")

        with pytest.raises(RetryBudgetExhausted):
            await handler.execute(always_fail)

        assert delays == [0.5, 1.0]

    def test_delay_strategies(self):
        linear = RetryHandler(base_delay=1.0, max_delay=2.5, jitter=False)
        exponential = RetryHandler(
            base_delay=1.0, max_delay=60.0, jitter=False, strategy=RetryStrategy.EXPONENTIAL_BACKOFF
        )
        fixed = RetryHandler(base_delay=1.5, jitter=False, strategy=RetryStrategy.FIXED_DELAY)

        assert [linear.calculate_delay(a) for a in (1, 2, 3)] == [1.0, 2.0, 2.5]
        assert [exponential.calculate_delay(a) for a in (1, 2, 3)] == [1.0, 2.0, 4.0]
        assert fixed.calculate_delay(5) == 1.5

    def test_at_least_one_attempt(self):
        with pytest.raises(ValueError):
            RetryHandler(max_attempts=0)
