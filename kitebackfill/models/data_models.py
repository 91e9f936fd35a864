"""
Data models for the Kite historical backfill

This module contains shared data models to avoid circular imports.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Optional, List, Tuple, Iterator
from enum import Enum


@dataclass(frozen=True)
class Instrument:
    """One tradable scrip from the instrument dump"""
    instrument_token: int
    name: str
    tradingsymbol: str
    expiry: Optional[str] = None
    exchange: str = ""
    instrument_type: Optional[str] = None
    segment: Optional[str] = None
    strike: Optional[float] = None
    tick_size: Optional[float] = None
    lot_size: Optional[int] = None

    @property
    def label(self) -> str:
        return f"{self.tradingsymbol} ({self.instrument_token})"


@dataclass(frozen=True)
class DateRange:
    """Inclusive range of calendar days"""
    start: date
    end: date

    def __post_init__(self):
        if self.start > self.end:
            raise ValueError(f"DateRange start {self.start} is after end {self.end}")

    @classmethod
    def ending_on(cls, end: date, days: int) -> 'DateRange':
        """Range of ``days`` calendar days finishing on ``end``"""
        if days < 1:
            raise ValueError(f"days must be >= 1, got {days}")
        return cls(end - timedelta(days=days - 1), end)

    @property
    def days(self) -> int:
        return (self.end - self.start).days + 1

    def __iter__(self) -> Iterator[date]:
        current = self.start
        while current <= self.end:
            yield current
            current += timedelta(days=1)

    def __contains__(self, day: date) -> bool:
        return self.start <= day <= self.end

    def __str__(self) -> str:
        return f"{self.start.isoformat()}..{self.end.isoformat()}"


@dataclass(frozen=True)
class Chunk:
    """A single remote request: one instrument over one bounded date range"""
    instrument: Instrument
    date_range: DateRange


@dataclass
class HistoricalCandle:
    """Historical OHLCV data point"""
    timestamp: datetime
    open: float
    high: float
    low: float
    close: float
    volume: int
    oi: int = 0  # Open Interest (0 for equity)


@dataclass
class CandleBatch:
    """Candles returned for one chunk, in provider order"""
    chunk: Chunk
    candles: List[HistoricalCandle] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.candles)


@dataclass
class DayRecord:
    """Candles of one instrument on one calendar day"""
    instrument: Instrument
    day: date
    candles: List[HistoricalCandle] = field(default_factory=list)


class InstrumentState(str, Enum):
    """Per-instrument progress through a run"""
    PENDING = "pending"
    SKIPPED = "skipped"
    PLANNING = "planning"
    FETCHING = "fetching"
    PER_CHUNK_WRITE = "per_chunk_write"
    DONE = "done"
    FAILED = "failed"


class EmptyDayPolicy(str, Enum):
    """What to do with a requested day a fetched chunk returned no rows for"""
    MARK = "mark"
    SKIP = "skip"


class FailureReason(str, Enum):
    """Enumeration of possible failure reasons"""
    RETRY_EXHAUSTED = "retry_exhausted"
    STORAGE_ERROR = "storage_error"
    UNKNOWN_ERROR = "unknown_error"


@dataclass
class InstrumentResult:
    """Outcome of processing one instrument"""
    instrument: Instrument
    state: InstrumentState = InstrumentState.PENDING
    chunks_requested: int = 0
    days_written: int = 0
    candles_written: int = 0
    failed_days: List[date] = field(default_factory=list)
    # Written but left unmarked because the session had not closed
    partial_days: List[date] = field(default_factory=list)
    failure_reason: Optional[FailureReason] = None
    error_message: str = ""

    @property
    def ok(self) -> bool:
        return self.failure_reason is None


@dataclass
class RunReport:
    """Aggregate of all instrument results for one run"""
    succeeded: List[InstrumentResult] = field(default_factory=list)
    failed: List[Tuple[Instrument, str]] = field(default_factory=list)
    results: List[InstrumentResult] = field(default_factory=list)
    started_at: datetime = field(default_factory=datetime.now)
    finished_at: Optional[datetime] = None
    fetch_attempts: int = 0
    throttle_wait_seconds: float = 0.0

    def add(self, result: InstrumentResult):
        self.results.append(result)
        if result.ok:
            self.succeeded.append(result)
        else:
            reason = result.failure_reason.value if result.failure_reason else "unknown"
            self.failed.append((result.instrument, f"{reason}: {result.error_message}"))

    @property
    def ok(self) -> bool:
        return not self.failed

    @property
    def chunks_requested(self) -> int:
        return sum(r.chunks_requested for r in self.results)

    @property
    def days_written(self) -> int:
        return sum(r.days_written for r in self.results)

    @property
    def skipped(self) -> int:
        return sum(1 for r in self.results if r.state == InstrumentState.SKIPPED)

    @property
    def partial_days(self) -> int:
        return sum(len(r.partial_days) for r in self.results)
