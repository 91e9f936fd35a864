"""
Incremental Backfill Scheduler - Main Orchestrator

For every instrument: find the requested days without a completion marker,
plan chunk requests over the outstanding span (latest first), fetch each
chunk through the shared rate-limited client, split it into days and commit
the days concurrently. Instruments run independently; the result of a run is
a RunReport listing which instruments finished and why the others did not.
"""

import asyncio
import time
from datetime import date, datetime
from typing import Callable, Iterable, List, Optional

from loguru import logger

from kitebackfill.config.settings import BackfillSettings
from kitebackfill.exceptions import FetchError, StorageError
from kitebackfill.fetchers.kite_transport import KiteHistoricalTransport
from kitebackfill.fetchers.rate_limited_client import CandleTransport, RateLimitedClient
from kitebackfill.models.data_models import (
    CandleBatch,
    Chunk,
    DateRange,
    DayRecord,
    EmptyDayPolicy,
    FailureReason,
    Instrument,
    InstrumentResult,
    InstrumentState,
    RunReport,
)
from kitebackfill.scheduler.chunk_planner import plan_chunks
from kitebackfill.scheduler.demux import reporting_today, split_by_day
from kitebackfill.storage.completion_store import CompletionStore, FileCompletionStore
from kitebackfill.storage.day_writer import DayWriter
from kitebackfill.utils.logging_config import log_instrument_processing, log_run_summary
from kitebackfill.utils.rate_limiter import RateLimiter
from kitebackfill.utils.retry_handler import RetryHandler


class BackfillScheduler:
    """Drives fetch, split and commit for a collection of instruments"""

    def __init__(
        self,
        settings: BackfillSettings,
        client: RateLimitedClient,
        completion_store: CompletionStore,
        writer: DayWriter,
        today: Optional[Callable[[], date]] = None
    ):
        self.settings = settings
        self.client = client
        self.completion_store = completion_store
        self.writer = writer
        # Days from this one on are still trading and are never marked
        self.today = today or (lambda: reporting_today(settings.reporting_timezone))

    @classmethod
    def from_settings(
        cls,
        settings: BackfillSettings,
        transport: CandleTransport,
        rate_limiter: Optional[RateLimiter] = None,
        retry_handler: Optional[RetryHandler] = None,
        completion_store: Optional[CompletionStore] = None,
        today: Optional[Callable[[], date]] = None
    ) -> 'BackfillScheduler':
        """Wire the default components around ``transport``"""
        store = completion_store or FileCompletionStore(settings.data_dir)
        client = RateLimitedClient(
            transport,
            rate_limiter or RateLimiter.from_settings(settings),
            retry_handler or RetryHandler.from_settings(settings)
        )
        return cls(settings, client, store, DayWriter(settings.data_dir, store), today=today)

    def outstanding_days(self, instrument: Instrument, requested_range: DateRange) -> List[date]:
        """Requested days without a completion marker, oldest first"""
        return [
            day for day in requested_range
            if not self.completion_store.exists(instrument, day)
        ]

    async def run(self, instruments: Iterable[Instrument], requested_range: DateRange) -> RunReport:
        """
        Backfill ``requested_range`` for every instrument

        Raises:
            ConfigError: before any request, if the settings are unusable
        """
        self.settings.validate_for_run(requested_range)

        instruments = list(instruments)
        report = RunReport()
        attempts_before = self.client.stats['attempts']
        wait_before = self.client.rate_limiter.stats.total_wait_time

        logger.info(
            f"🚀 Backfilling {len(instruments):,} instruments for {requested_range} "
            f"({requested_range.days} day(s))"
        )

        limit = self.settings.max_concurrent_instruments
        semaphore = asyncio.Semaphore(limit) if limit > 0 else None

        tasks = [
            self._process_instrument_with_semaphore(semaphore, instrument, requested_range)
            for instrument in instruments
        ]
        for result in await asyncio.gather(*tasks):
            report.add(result)

        report.finished_at = datetime.now()
        report.fetch_attempts = self.client.stats['attempts'] - attempts_before
        report.throttle_wait_seconds = self.client.rate_limiter.stats.total_wait_time - wait_before
        log_run_summary(report)

        return report

    async def _process_instrument_with_semaphore(
        self,
        semaphore: Optional[asyncio.Semaphore],
        instrument: Instrument,
        requested_range: DateRange
    ) -> InstrumentResult:
        if semaphore is None:
            return await self._process_instrument_logged(instrument, requested_range)

        async with semaphore:
            return await self._process_instrument_logged(instrument, requested_range)

    async def _process_instrument_logged(self, instrument: Instrument, requested_range: DateRange) -> InstrumentResult:
        start_time = time.monotonic()

        try:
            result = await self.process_instrument(instrument, requested_range)
        except Exception as e:
            logger.exception(f"Unexpected error while processing {instrument.label}: {e}")
            result = InstrumentResult(
                instrument=instrument,
                state=InstrumentState.FAILED,
                failure_reason=FailureReason.UNKNOWN_ERROR,
                error_message=f"{type(e).__name__}: {e}"
            )

        processing_time = time.monotonic() - start_time
        log_instrument_processing(
            symbol=instrument.tradingsymbol,
            state=result.state.value,
            chunks_requested=result.chunks_requested,
            days_written=result.days_written,
            processing_time=processing_time,
            status="success" if result.ok else "error",
            error=result.error_message
        )
        return result

    async def process_instrument(self, instrument: Instrument, requested_range: DateRange) -> InstrumentResult:
        """Run one instrument through its states and return the outcome"""
        result = InstrumentResult(instrument=instrument)

        outstanding = self.outstanding_days(instrument, requested_range)
        if not outstanding:
            result.state = InstrumentState.SKIPPED
            logger.debug(f"{instrument.label}: all {requested_range.days} day(s) already complete")
            return result

        result.state = InstrumentState.PLANNING
        outstanding_set = set(outstanding)
        span = DateRange(outstanding[0], outstanding[-1])
        chunk_ranges = plan_chunks(span, self.settings.chunk_days)

        logger.debug(
            f"{instrument.label}: {len(outstanding)} outstanding day(s) in {span}, "
            f"{len(chunk_ranges)} chunk(s) planned"
        )

        for chunk_range in chunk_ranges:
            days = [day for day in chunk_range if day in outstanding_set]
            if not days:
                continue

            result.state = InstrumentState.FETCHING
            result.chunks_requested += 1

            try:
                batch = await self.client.fetch(Chunk(instrument, chunk_range))
            except FetchError as e:
                # Remaining chunks of this instrument wait for the next run
                result.state = InstrumentState.FAILED
                result.failure_reason = FailureReason.RETRY_EXHAUSTED
                result.error_message = f"{chunk_range}: {e}"
                return result

            result.state = InstrumentState.PER_CHUNK_WRITE
            await self._commit_chunk(batch, days, result)

        if result.failed_days:
            result.state = InstrumentState.FAILED
            result.failure_reason = FailureReason.STORAGE_ERROR
            result.error_message = (
                f"{len(result.failed_days)} day(s) could not be written: "
                f"{', '.join(day.isoformat() for day in sorted(result.failed_days))}"
            )
        else:
            result.state = InstrumentState.DONE

        return result

    def build_day_records(self, batch: CandleBatch, days: List[date]) -> List[DayRecord]:
        """DayRecords to commit for the outstanding ``days`` of one chunk"""
        groups = split_by_day(batch, self.settings.reporting_timezone)
        instrument = batch.chunk.instrument
        records = []

        for day in days:
            candles = groups.get(day)
            if candles is None:
                if self.settings.empty_day_policy == EmptyDayPolicy.SKIP:
                    continue
                candles = []
            records.append(DayRecord(instrument=instrument, day=day, candles=candles))

        wanted = set(days)
        stray = [day for day in groups if day not in wanted]
        if stray:
            logger.debug(
                f"{instrument.label}: ignoring candles for {len(stray)} day(s) "
                f"outside the outstanding set of {batch.chunk.date_range}"
            )

        return records

    async def _commit_chunk(self, batch: CandleBatch, days: List[date], result: InstrumentResult):
        records = self.build_day_records(batch, days)
        current_day = self.today()
        outcomes = await asyncio.gather(
            *(
                self.writer.write(record) if record.day >= current_day else self.writer.commit(record)
                for record in records
            ),
            return_exceptions=True
        )

        for record, outcome in zip(records, outcomes):
            if isinstance(outcome, StorageError):
                logger.error(f"❌ {record.instrument.label} {record.day.isoformat()}: {outcome}")
                result.failed_days.append(record.day)
            elif isinstance(outcome, Exception):
                logger.opt(exception=outcome).error(
                    f"❌ {record.instrument.label} {record.day.isoformat()}: unexpected write error"
                )
                result.failed_days.append(record.day)
            elif isinstance(outcome, BaseException):
                raise outcome
            elif record.day >= current_day:
                logger.debug(
                    f"{record.instrument.label} {record.day.isoformat()}: wrote {len(record.candles)} candles, "
                    f"left outstanding until the session is over"
                )
                result.partial_days.append(record.day)
                result.candles_written += len(record.candles)
            else:
                result.days_written += 1
                result.candles_written += len(record.candles)


async def run_backfill(
    instruments: Iterable[Instrument],
    requested_range: DateRange,
    settings: BackfillSettings,
    transport: Optional[CandleTransport] = None
) -> RunReport:
    """
    Run a backfill with default components

    When no transport is given a KiteHistoricalTransport is opened from the
    settings for the duration of the run.
    """
    settings.validate_for_run(requested_range)

    if transport is not None:
        return await BackfillScheduler.from_settings(settings, transport).run(instruments, requested_range)

    async with KiteHistoricalTransport.from_settings(settings) as kite_transport:
        scheduler = BackfillScheduler.from_settings(settings, kite_transport)
        report = await scheduler.run(instruments, requested_range)
        logger.debug(f"Transport statistics: {kite_transport.get_statistics()}")
        return report
