"""Incremental fetch scheduling"""

from .chunk_planner import plan_chunks
from .demux import split_by_day, reporting_today
from .backfill_scheduler import BackfillScheduler, run_backfill

__all__ = ['plan_chunks', 'split_by_day', 'reporting_today', 'BackfillScheduler', 'run_backfill']
