"""Tests for the rate-limited chunk client."""

from datetime import date

import pytest

from kitebackfill.exceptions import RetryBudgetExhausted
from kitebackfill.fetchers.rate_limited_client import RateLimitedClient
from kitebackfill.models.data_models import Chunk, DateRange
from kitebackfill.utils.rate_limiter import RateLimiter
from kitebackfill.utils.retry_handler import RetryHandler

from conftest import FakeTransport, minute_candles, no_sleep


def _client(transport, max_attempts=3):
    limiter = RateLimiter(limit=100, interval=0.01)
    retry = RetryHandler(max_attempts=max_attempts, base_delay=0.0, jitter=False, sleep=no_sleep)
    return RateLimitedClient(transport, limiter, retry), limiter


@pytest.mark.asyncio
async def test_fails_twice_then_succeeds_with_three_acquisitions(nifty_future):
    day = date(2024, 1, 2)
    transport = FakeTransport(candles=minute_candles(day), failures={nifty_future.instrument_token: 2})
    client, limiter = _client(transport)

    batch = await client.fetch(Chunk(nifty_future, DateRange(day, day)))

    assert len(batch) == 3
    assert len(transport.calls) == 3
    assert limiter.stats.total_requests == 3
    assert client.stats['attempts'] == 3
    assert client.stats['chunks_fetched'] == 1


@pytest.mark.asyncio
async def test_exhausted_budget_is_surfaced(nifty_future):
    day = date(2024, 1, 2)
    transport = FakeTransport(failures={nifty_future.instrument_token: 3})
    client, limiter = _client(transport)

    with pytest.raises(RetryBudgetExhausted):
        await client.fetch(Chunk(nifty_future, DateRange(day, day)))

    assert limiter.stats.total_requests == 3
    assert client.stats['chunks_failed'] == 1


@pytest.mark.asyncio
async def test_empty_result_is_success(nifty_future):
    day = date(2024, 1, 6)
    client, limiter = _client(FakeTransport())

    batch = await client.fetch(Chunk(nifty_future, DateRange(day, day)))

    assert batch.candles == []
    assert limiter.stats.total_requests == 1


@pytest.mark.asyncio
async def test_limiter_is_shared_across_instruments(nifty_future, banknifty_future):
    day = date(2024, 1, 2)
    transport = FakeTransport(failures={banknifty_future.instrument_token: 1})
    client, limiter = _client(transport)

    await client.fetch(Chunk(nifty_future, DateRange(day, day)))
    await client.fetch(Chunk(banknifty_future, DateRange(day, day)))

    assert limiter.stats.total_requests == 3
