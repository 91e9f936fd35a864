"""Shared fixtures for the kitebackfill test suite."""

from datetime import date, datetime, timedelta, timezone
from typing import Dict, List, Optional

import pytest

from kitebackfill.config.settings import BackfillSettings
from kitebackfill.exceptions import TransientFetchError
from kitebackfill.models.data_models import DateRange, HistoricalCandle, Instrument

IST = timezone(timedelta(hours=5, minutes=30))


def minute_candles(day: date, count: int = 3, start_price: float = 100.0) -> List[HistoricalCandle]:
    """``count`` one-minute candles from 09:15 IST on ``day``."""
    first = datetime(day.year, day.month, day.day, 9, 15, tzinfo=IST)
    return [
        HistoricalCandle(
            timestamp=first + timedelta(minutes=i),
            open=start_price + i,
            high=start_price + i + 1,
            low=start_price + i - 1,
            close=start_price + i + 0.5,
            volume=1000 + i,
            oi=50000 + i,
        )
        for i in range(count)
    ]


class FakeTransport:
    """Serves candles from memory and records every request."""

    def __init__(
        self,
        candles: Optional[List[HistoricalCandle]] = None,
        failures: Optional[Dict[int, int]] = None,
        error_factory=lambda: TransientFetchError("connection reset"),
    ):
        self.candles = candles or []
        # instrument_token -> number of calls that fail before succeeding
        self.failures = dict(failures or {})
        self.error_factory = error_factory
        self.calls = []

    async def fetch_candles(self, instrument: Instrument, date_range: DateRange) -> List[HistoricalCandle]:
        self.calls.append((instrument, date_range))

        remaining = self.failures.get(instrument.instrument_token, 0)
        if remaining:
            self.failures[instrument.instrument_token] = remaining - 1
            raise self.error_factory()

        return [
            candle for candle in self.candles
            if date_range.start <= candle.timestamp.astimezone(IST).date() <= date_range.end
        ]


async def no_sleep(_delay):
    return None


@pytest.fixture
def nifty_future():
    return Instrument(
        instrument_token=256265,
        name="NIFTY",
        tradingsymbol="NIFTY24JANFUT",
        expiry="2024-01-25",
        exchange="NFO",
    )


@pytest.fixture
def banknifty_future():
    return Instrument(
        instrument_token=260105,
        name="BANKNIFTY",
        tradingsymbol="BANKNIFTY24JANFUT",
        expiry="2024-01-25",
        exchange="NFO",
    )


@pytest.fixture
def settings(tmp_path):
    return BackfillSettings(
        kite_auth_token="token key:secret",
        data_dir=str(tmp_path / "data"),
        max_days=3,
        max_retries=3,
        rate_limit_calls=100,
        rate_limit_interval=0.01,
        retry_base_delay=0.0,
        retry_max_delay=0.0,
        log_file_path=str(tmp_path / "logs" / "kitebackfill.log"),
    )
