"""Utility modules for the Kite historical backfill"""

from .logging_config import setup_logging
from .rate_limiter import RateLimiter, RateLimitStats
from .retry_handler import RetryHandler, RetryStrategy, RetryStats

__all__ = [
    'RateLimiter',
    'RateLimitStats',
    'RetryHandler',
    'RetryStrategy',
    'RetryStats',
    'setup_logging'
]
