"""
Kite Historical Data Transport

Issues single historical-candle requests against the Kite Connect API and
maps every failure onto the fetch error hierarchy. Chunking, rate limiting
and retries live in RateLimitedClient; this class makes exactly one HTTP
call per ``fetch_candles``.
"""

import asyncio
import aiohttp
import pandas as pd
from typing import List, Dict, Any, Optional

from loguru import logger

from kitebackfill.exceptions import TransientFetchError, RemoteDataError
from kitebackfill.models.data_models import Instrument, DateRange, HistoricalCandle

CANDLE_FIELDS = ["timestamp", "open", "high", "low", "close", "volume", "oi"]


def parse_candles(payload: Dict[str, Any]) -> List[HistoricalCandle]:
    """
    Parse a Kite historical response into HistoricalCandle objects

    Kite format: ``{"status": "success", "data": {"candles": [[ts, o, h, l, c, v, oi], ...]}}``

    Raises:
        RemoteDataError: if the payload has no ``data`` section or any row is malformed
    """
    data = payload.get('data') if isinstance(payload, dict) else None
    if not isinstance(data, dict):
        message = payload.get('message') if isinstance(payload, dict) else None
        raise RemoteDataError(message or "Response carried no data")

    candles = []
    for row in data.get('candles') or []:
        try:
            if len(row) < 6:
                raise ValueError(f"expected at least 6 fields, got {len(row)}")

            candles.append(HistoricalCandle(
                timestamp=pd.Timestamp(row[0]).to_pydatetime(),
                open=float(row[1]),
                high=float(row[2]),
                low=float(row[3]),
                close=float(row[4]),
                volume=int(row[5]),
                oi=int(row[6]) if len(row) > 6 and row[6] is not None else 0
            ))
        except (ValueError, TypeError, IndexError) as e:
            raise RemoteDataError(f"Malformed candle row {row!r}: {e}") from e

    return candles


class KiteHistoricalTransport:
    """Thin aiohttp wrapper around ``GET /instruments/historical``"""

    def __init__(
        self,
        auth_token: str,
        base_url: str = "https://api.kite.trade",
        interval: str = "minute",
        include_oi: bool = True,
        timeout: float = 60.0,
        session: Optional[aiohttp.ClientSession] = None
    ):
        self.auth_token = auth_token
        self.base_url = base_url.rstrip('/')
        self.interval = interval
        self.include_oi = include_oi
        self.timeout = timeout

        # Session management
        self.session = session
        self._owns_session = session is None

        # Statistics
        self.stats = {
            'total_requests': 0,
            'successful_requests': 0,
            'failed_requests': 0,
            'total_candles_fetched': 0
        }

    @classmethod
    def from_settings(cls, settings, session: Optional[aiohttp.ClientSession] = None) -> 'KiteHistoricalTransport':
        return cls(
            auth_token=settings.kite_auth_token,
            base_url=settings.kite_base_url,
            interval=settings.candle_interval,
            include_oi=settings.include_oi,
            timeout=settings.request_timeout,
            session=session
        )

    async def __aenter__(self):
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.cleanup()

    async def initialize(self):
        """Initialize HTTP session with proper configuration"""
        if self.session is not None:
            return

        headers = {
            'X-Kite-Version': '3',
            'Authorization': self.auth_token
        }

        connector = aiohttp.TCPConnector(
            limit=20,
            ttl_dns_cache=300,
            keepalive_timeout=30
        )

        self.session = aiohttp.ClientSession(
            headers=headers,
            connector=connector,
            timeout=aiohttp.ClientTimeout(total=self.timeout)
        )
        self._owns_session = True

        logger.info("Kite historical transport initialized")

    async def cleanup(self):
        if self.session is not None and self._owns_session:
            await self.session.close()
        self.session = None

    def build_request(self, instrument: Instrument, date_range: DateRange):
        """URL and query parameters for one chunk"""
        url = f"{self.base_url}/instruments/historical/{instrument.instrument_token}/{self.interval}"
        params = {
            'from': f"{date_range.start.isoformat()} 00:00:00",
            'to': f"{date_range.end.isoformat()} 23:59:59"
        }
        if self.include_oi:
            params['oi'] = '1'
        return url, params

    async def fetch_candles(self, instrument: Instrument, date_range: DateRange) -> List[HistoricalCandle]:
        """
        Fetch one chunk of candles

        Raises:
            TransientFetchError: network failure, timeout, HTTP 429 or 5xx
            RemoteDataError: error payload or non-retryable HTTP status
        """
        if self.session is None:
            await self.initialize()

        url, params = self.build_request(instrument, date_range)
        self.stats['total_requests'] += 1
        logger.debug(f"Fetching {url} {params}")

        try:
            payload = await self._get_json(url, params)
            candles = parse_candles(payload)
        except (TransientFetchError, RemoteDataError):
            self.stats['failed_requests'] += 1
            raise

        self.stats['successful_requests'] += 1
        self.stats['total_candles_fetched'] += len(candles)
        return candles

    async def _get_json(self, url: str, params: Dict[str, str]) -> Dict[str, Any]:
        """Make API request with comprehensive error handling"""
        try:
            async with self.session.get(url, params=params) as response:
                if response.status == 429:
                    retry_after = response.headers.get('Retry-After', '1')
                    raise TransientFetchError(f"Rate limit exceeded. Retry after {retry_after} seconds", 429)

                if response.status >= 500:
                    error_text = await response.text()
                    raise TransientFetchError(f"HTTP {response.status}: {error_text[:200]}", response.status)

                try:
                    payload = await response.json(content_type=None)
                except ValueError as e:
                    raise RemoteDataError(f"HTTP {response.status}: invalid JSON: {e}", response.status) from e

                if response.status != 200 or not isinstance(payload, dict) or payload.get('status') == 'error':
                    message = payload.get('message') if isinstance(payload, dict) else None
                    raise RemoteDataError(f"API Error: {message or f'HTTP {response.status}'}", response.status)

                return payload

        except aiohttp.ClientError as e:
            raise TransientFetchError(f"Network error: {e}") from e
        except asyncio.TimeoutError as e:
            raise TransientFetchError("Request timeout") from e

    def get_statistics(self) -> Dict[str, Any]:
        """Get transport statistics"""
        stats = self.stats.copy()
        total = stats['total_requests']
        stats['success_rate'] = (stats['successful_requests'] / total * 100) if total else 0.0
        return stats
