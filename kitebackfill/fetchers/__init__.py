"""Data fetchers for the Kite historical backfill"""

from .kite_transport import KiteHistoricalTransport, parse_candles, CANDLE_FIELDS
from .rate_limited_client import RateLimitedClient, CandleTransport
from .instrument_source import InstrumentSource, parse_instruments_csv, filter_instruments

__all__ = [
    'KiteHistoricalTransport',
    'parse_candles',
    'CANDLE_FIELDS',
    'RateLimitedClient',
    'CandleTransport',
    'InstrumentSource',
    'parse_instruments_csv',
    'filter_instruments'
]
