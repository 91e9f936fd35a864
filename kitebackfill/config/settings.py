"""
Backfill Configuration Settings

Settings are read from the environment (and an optional .env file) and can be
overridden by keyword arguments, which is how the CLI applies its flags.
"""

import os
from datetime import date
from typing import List, Optional

import pytz
from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings

from kitebackfill.exceptions import ConfigError
from kitebackfill.models.data_models import DateRange, EmptyDayPolicy

# Kite serves at most 60 days of minute candles per historical request
PROVIDER_MAX_CHUNK_DAYS = 60

CANDLE_INTERVALS = (
    'minute', '3minute', '5minute', '10minute', '15minute',
    '30minute', '60minute', 'day',
)


class BackfillSettings(BaseSettings):
    """Configuration settings for the backfill run"""

    # Kite Connect
    kite_auth_token: str = Field(default_factory=lambda: os.getenv('KITE_AUTH', ''))
    kite_base_url: str = Field(default_factory=lambda: os.getenv('KITE_BASE_URL', 'https://api.kite.trade'))
    request_timeout: float = Field(default_factory=lambda: float(os.getenv('BACKFILL_REQUEST_TIMEOUT', '60')))

    # Instrument universe
    instrument_exchange: str = Field(default_factory=lambda: os.getenv('BACKFILL_INSTRUMENT_EXCHANGE', 'NFO'))
    instrument_names: List[str] = Field(
        default_factory=lambda: os.getenv('BACKFILL_INSTRUMENT_NAMES', 'NIFTY,BANKNIFTY,FINNIFTY').split(',')
    )

    # Data configuration
    candle_interval: str = Field(default_factory=lambda: os.getenv('BACKFILL_CANDLE_INTERVAL', 'minute'))
    include_oi: bool = Field(default_factory=lambda: os.getenv('BACKFILL_INCLUDE_OI', 'true').lower() == 'true')
    data_dir: str = Field(default_factory=lambda: os.getenv('BACKFILL_DATA_DIR', 'data'))
    reporting_timezone: str = Field(default_factory=lambda: os.getenv('BACKFILL_TIMEZONE', 'Asia/Kolkata'))
    empty_day_policy: EmptyDayPolicy = Field(
        default_factory=lambda: EmptyDayPolicy(os.getenv('BACKFILL_EMPTY_DAY_POLICY', 'mark').lower())
    )

    # Range and chunking
    # max_days is how far back from today to look; 1 means "today only"
    max_days: int = Field(default_factory=lambda: int(os.getenv('BACKFILL_MAX_DAYS', '1')))
    chunk_days: int = Field(default_factory=lambda: int(os.getenv('BACKFILL_CHUNK_DAYS', str(PROVIDER_MAX_CHUNK_DAYS))))
    max_chunks_per_instrument: int = Field(default_factory=lambda: int(os.getenv('BACKFILL_MAX_CHUNKS', '10')))

    # Processing configuration - Kite allows 3 historical requests/second,
    # we stay at 2 to keep clear of the limit
    rate_limit_calls: int = Field(default_factory=lambda: int(os.getenv('BACKFILL_RATE_LIMIT_CALLS', '2')))
    rate_limit_interval: float = Field(default_factory=lambda: float(os.getenv('BACKFILL_RATE_LIMIT_INTERVAL', '1.0')))
    # Total attempts per chunk, the first one included
    max_retries: int = Field(default_factory=lambda: int(os.getenv('BACKFILL_MAX_RETRIES', '3')))
    retry_base_delay: float = Field(default_factory=lambda: float(os.getenv('BACKFILL_RETRY_BASE_DELAY', '1.0')))
    retry_max_delay: float = Field(default_factory=lambda: float(os.getenv('BACKFILL_RETRY_MAX_DELAY', '30.0')))
    # 0 = no cap, the rate limiter alone paces the run
    max_concurrent_instruments: int = Field(
        default_factory=lambda: int(os.getenv('BACKFILL_MAX_CONCURRENT_INSTRUMENTS', '0'))
    )

    # Logging Configuration
    log_level: str = Field(default_factory=lambda: os.getenv('BACKFILL_LOG_LEVEL', os.getenv('LOG_LEVEL', 'INFO')))
    log_file_path: str = Field(default_factory=lambda: os.getenv('BACKFILL_LOG_FILE_PATH', 'logs/kitebackfill.log'))
    log_rotation: str = Field(default_factory=lambda: os.getenv('BACKFILL_LOG_ROTATION', '100 MB'))
    log_retention: str = Field(default_factory=lambda: os.getenv('BACKFILL_LOG_RETENTION', '30 days'))

    @field_validator('instrument_names', mode='before')
    @classmethod
    def parse_instrument_names(cls, v):
        """Parse instrument names from string or list"""
        if isinstance(v, str):
            v = v.split(',')
        return [name.strip().upper() for name in v if name and name.strip()]

    @field_validator('empty_day_policy', mode='before')
    @classmethod
    def parse_empty_day_policy(cls, v):
        if isinstance(v, str):
            return v.strip().lower()
        return v

    @field_validator('log_retention', mode='before')
    @classmethod
    def parse_log_retention(cls, v):
        """Bare numbers are taken as days"""
        if isinstance(v, str) and v.strip().isdigit():
            return f"{v.strip()} days"
        return v

    @property
    def max_backfill_days(self) -> int:
        """Longest range a single run may request for one instrument"""
        return self.chunk_days * self.max_chunks_per_instrument

    def requested_range(self, today: Optional[date] = None) -> DateRange:
        """
        The last ``max_days`` calendar days, today included

        Raises:
            ConfigError: if ``max_days`` is below 1
        """
        try:
            return DateRange.ending_on(today or date.today(), self.max_days)
        except ValueError as e:
            raise ConfigError(f"Invalid max_days: {e}") from e

    def validate_for_run(self, requested_range: Optional[DateRange] = None):
        """
        Check the parameters a run depends on

        Raises:
            ConfigError: on the first invalid parameter
        """
        if self.max_retries < 1:
            raise ConfigError(f"max_retries must be >= 1, got {self.max_retries}")
        if self.rate_limit_calls < 1:
            raise ConfigError(f"rate_limit_calls must be >= 1, got {self.rate_limit_calls}")
        if self.rate_limit_interval <= 0:
            raise ConfigError(f"rate_limit_interval must be > 0, got {self.rate_limit_interval}")
        if not 1 <= self.chunk_days <= PROVIDER_MAX_CHUNK_DAYS:
            raise ConfigError(
                f"chunk_days must be between 1 and {PROVIDER_MAX_CHUNK_DAYS}, got {self.chunk_days}"
            )
        if self.max_chunks_per_instrument < 1:
            raise ConfigError(
                f"max_chunks_per_instrument must be >= 1, got {self.max_chunks_per_instrument}"
            )
        if self.max_days < 1:
            raise ConfigError(f"max_days must be >= 1, got {self.max_days}")
        if self.max_days > self.max_backfill_days:
            raise ConfigError(
                f"We can't fetch more than {self.max_backfill_days} days "
                f"({self.max_chunks_per_instrument} chunks of {self.chunk_days}), got {self.max_days}"
            )
        if requested_range is not None and requested_range.days > self.max_backfill_days:
            raise ConfigError(
                f"Requested range {requested_range} spans {requested_range.days} days, "
                f"more than the {self.max_backfill_days} day limit"
            )
        if self.candle_interval not in CANDLE_INTERVALS:
            raise ConfigError(
                f"Unknown candle interval '{self.candle_interval}', expected one of {', '.join(CANDLE_INTERVALS)}"
            )
        if self.retry_base_delay < 0 or self.retry_max_delay < 0:
            raise ConfigError("Retry delays must not be negative")
        if self.max_concurrent_instruments < 0:
            raise ConfigError(
                f"max_concurrent_instruments must be >= 0, got {self.max_concurrent_instruments}"
            )
        try:
            pytz.timezone(self.reporting_timezone)
        except pytz.UnknownTimeZoneError as e:
            raise ConfigError(f"Unknown timezone '{self.reporting_timezone}'") from e

    model_config = {
        'env_file': '.env',
        'env_file_encoding': 'utf-8',
        'case_sensitive': False,
        'validate_default': True,
        'extra': 'ignore'
    }


def load_settings(**overrides) -> BackfillSettings:
    """
    Build settings from the environment plus explicit overrides

    Overrides whose value is None are ignored so argparse defaults
    do not mask environment values.

    Raises:
        ConfigError: if a value cannot be parsed
    """
    overrides = {key: value for key, value in overrides.items() if value is not None}
    try:
        return BackfillSettings(**overrides)
    except (ValidationError, ValueError) as e:
        raise ConfigError(f"Invalid configuration: {e}") from e
