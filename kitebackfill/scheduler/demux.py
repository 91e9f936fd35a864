"""
Day demultiplexer

Groups one chunk's candles by the calendar day they fall on in the
provider's reporting timezone. Row order inside a day is kept as received.
"""

from datetime import date, datetime, tzinfo
from typing import Dict, List, Optional, Union
import pytz

from kitebackfill.models.data_models import CandleBatch, HistoricalCandle

DEFAULT_TIMEZONE = "Asia/Kolkata"


def local_day(timestamp: datetime, tz: Optional[tzinfo]) -> date:
    """Calendar day of ``timestamp``; naive timestamps are already local"""
    if tz is not None and timestamp.tzinfo is not None:
        timestamp = timestamp.astimezone(tz)
    return timestamp.date()


def split_by_day(
    batch: CandleBatch,
    timezone: Union[str, tzinfo, None] = DEFAULT_TIMEZONE
) -> Dict[date, List[HistoricalCandle]]:
    """
    Map each calendar day present in ``batch`` to its candles

    Days without candles are absent from the result. Keys appear in the
    order their first candle appears in the batch.
    """
    tz = pytz.timezone(timezone) if isinstance(timezone, str) else timezone
    groups: Dict[date, List[HistoricalCandle]] = {}

    for candle in batch.candles:
        groups.setdefault(local_day(candle.timestamp, tz), []).append(candle)

    return groups


def reporting_today(timezone: Union[str, tzinfo] = DEFAULT_TIMEZONE) -> date:
    """Current calendar day in the reporting timezone"""
    tz = pytz.timezone(timezone) if isinstance(timezone, str) else timezone
    return datetime.now(tz).date()
