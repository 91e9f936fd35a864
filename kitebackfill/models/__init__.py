"""Models for the Kite historical backfill"""

from .data_models import (
    Instrument,
    DateRange,
    Chunk,
    HistoricalCandle,
    CandleBatch,
    DayRecord,
    InstrumentState,
    EmptyDayPolicy,
    FailureReason,
    InstrumentResult,
    RunReport,
)

__all__ = [
    'Instrument',
    'DateRange',
    'Chunk',
    'HistoricalCandle',
    'CandleBatch',
    'DayRecord',
    'InstrumentState',
    'EmptyDayPolicy',
    'FailureReason',
    'InstrumentResult',
    'RunReport',
]
