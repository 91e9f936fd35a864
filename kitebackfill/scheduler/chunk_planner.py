"""Split a date range into provider-sized requests, latest first"""

from datetime import timedelta
from typing import List

from kitebackfill.models.data_models import DateRange


def plan_chunks(total_range: DateRange, max_chunk_days: int) -> List[DateRange]:
    """
    Partition ``total_range`` into contiguous sub-ranges of at most
    ``max_chunk_days`` days, ordered from the most recent to the oldest

    130 days with a 60 day limit gives chunks of 60, 60 and 10 days.
    """
    if max_chunk_days < 1:
        raise ValueError(f"max_chunk_days must be >= 1, got {max_chunk_days}")

    chunks = []
    end = total_range.end
    remaining = total_range.days

    while remaining > 0:
        size = min(remaining, max_chunk_days)
        start = end - timedelta(days=size - 1)
        chunks.append(DateRange(start, end))
        remaining -= size
        end = start - timedelta(days=1)

    return chunks
