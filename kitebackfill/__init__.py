"""Incremental, rate-limited backfill of Kite historical candles into per-day files"""

from kitebackfill.config.settings import BackfillSettings, load_settings
from kitebackfill.exceptions import (
    BackfillError,
    ConfigError,
    FetchError,
    TransientFetchError,
    RemoteDataError,
    RetryBudgetExhausted,
    StorageError,
)
from kitebackfill.models.data_models import Instrument, DateRange, RunReport
from kitebackfill.scheduler.backfill_scheduler import BackfillScheduler, run_backfill

__version__ = "0.1.0"

__all__ = [
    'BackfillSettings',
    'load_settings',
    'BackfillError',
    'ConfigError',
    'FetchError',
    'TransientFetchError',
    'RemoteDataError',
    'RetryBudgetExhausted',
    'StorageError',
    'Instrument',
    'DateRange',
    'RunReport',
    'BackfillScheduler',
    'run_backfill',
]
