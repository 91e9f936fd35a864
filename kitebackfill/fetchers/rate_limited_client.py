"""
Rate-limited, retrying chunk fetcher

Every attempt, first or retry, takes a slot from the shared RateLimiter
before it reaches the transport, so retries are paced like fresh requests.
"""

from typing import List, Protocol

from loguru import logger

from kitebackfill.models.data_models import Chunk, CandleBatch, DateRange, HistoricalCandle, Instrument
from kitebackfill.utils.logging_config import log_chunk_fetch
from kitebackfill.utils.rate_limiter import RateLimiter
from kitebackfill.utils.retry_handler import RetryHandler


class CandleTransport(Protocol):
    """Anything able to make one historical request"""

    async def fetch_candles(self, instrument: Instrument, date_range: DateRange) -> List[HistoricalCandle]:
        ...


class RateLimitedClient:
    """Fetches chunks through a shared rate limiter with bounded retries"""

    def __init__(self, transport: CandleTransport, rate_limiter: RateLimiter, retry_handler: RetryHandler):
        self.transport = transport
        self.rate_limiter = rate_limiter
        self.retry_handler = retry_handler

        # Statistics
        self.stats = {
            'chunks_fetched': 0,
            'chunks_failed': 0,
            'attempts': 0
        }

    async def fetch(self, chunk: Chunk) -> CandleBatch:
        """
        Fetch one chunk

        An empty candle list is a valid result and is returned as an empty batch.

        Raises:
            RetryBudgetExhausted: if every attempt failed with a fetch error
        """
        attempts = 0

        async def attempt() -> List[HistoricalCandle]:
            nonlocal attempts
            attempts += 1
            self.stats['attempts'] += 1
            await self.rate_limiter.acquire()
            return await self.transport.fetch_candles(chunk.instrument, chunk.date_range)

        label = f"{chunk.instrument.label} {chunk.date_range}"
        try:
            candles = await self.retry_handler.execute(attempt, description=label)
        except Exception:
            self.stats['chunks_failed'] += 1
            logger.error(f"Giving up on {label} after {attempts} attempt(s)")
            raise

        self.stats['chunks_fetched'] += 1
        log_chunk_fetch(chunk.instrument.tradingsymbol, str(chunk.date_range), len(candles), attempts)

        return CandleBatch(chunk=chunk, candles=candles)
