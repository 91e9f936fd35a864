"""
Exception hierarchy for the Kite historical backfill

ConfigError aborts a run before any request is made. Fetch errors are
scoped to one chunk and StorageError to one day; both end up in the run
report rather than propagating to the caller.
"""

from typing import Optional


class BackfillError(Exception):
    """Base class for all backfill errors"""
    pass


class ConfigError(BackfillError):
    """Invalid run parameters"""
    pass


class FetchError(BackfillError):
    """Base class for errors raised while fetching a chunk"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class TransientFetchError(FetchError):
    """Network failure, timeout, throttling or server error"""
    pass


class RemoteDataError(FetchError):
    """Well-formed response that carries an error message instead of candles"""
    pass


class RetryBudgetExhausted(FetchError):
    """Every attempt for a chunk failed"""

    def __init__(self, attempts: int, last_error: Optional[BaseException] = None):
        message = f"Gave up after {attempts} attempt(s)"
        if last_error is not None:
            message += f": {type(last_error).__name__}: {last_error}"
        super().__init__(message, getattr(last_error, 'status_code', None))
        self.attempts = attempts
        self.last_error = last_error


class StorageError(BackfillError, OSError):
    """Local data file or completion marker could not be written"""
    pass
