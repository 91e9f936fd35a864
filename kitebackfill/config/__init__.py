"""Configuration management for the Kite historical backfill"""

from .settings import BackfillSettings, load_settings, PROVIDER_MAX_CHUNK_DAYS, CANDLE_INTERVALS

__all__ = ['BackfillSettings', 'load_settings', 'PROVIDER_MAX_CHUNK_DAYS', 'CANDLE_INTERVALS']
