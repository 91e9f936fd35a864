"""
Centralized Logging Configuration for the Kite historical backfill

This module provides a unified logging setup using loguru for all components
of the backfill with structured logging. Library modules log through
``from loguru import logger``; sinks are only installed by ``setup_logging``.
"""

import sys
from pathlib import Path
from loguru import logger
from typing import Optional

CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | <level>{message}</level>"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{function}:{line} | {message}"


class BackfillLogger:
    """Centralized logger configuration for the backfill"""

    _instance: Optional['BackfillLogger'] = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance.sink_ids = []
        return cls._instance

    def configure(
        self,
        level: str = "INFO",
        log_file_path: Optional[str] = "logs/kitebackfill.log",
        rotation: str = "100 MB",
        retention: str = "30 days"
    ):
        """Replace all sinks with console, file, structured and error sinks"""
        logger.remove()
        self.sink_ids = []

        self.sink_ids.append(logger.add(
            sys.stdout,
            level=level,
            format=CONSOLE_FORMAT,
            colorize=True,
            enqueue=True
        ))

        if log_file_path:
            log_path = Path(log_file_path)
            log_path.parent.mkdir(parents=True, exist_ok=True)

            # Main log file
            self.sink_ids.append(logger.add(
                log_path,
                rotation=rotation,
                retention=retention,
                level=level,
                format=FILE_FORMAT,
                enqueue=True,
                backtrace=True,
                diagnose=True,
                catch=True
            ))

            # Structured logs
            self.sink_ids.append(logger.add(
                log_path.with_name(f"{log_path.stem}_structured.jsonl"),
                rotation=rotation,
                retention=retention,
                level="INFO",
                serialize=True,
                enqueue=True
            ))

            # Error logs
            self.sink_ids.append(logger.add(
                log_path.with_name(f"{log_path.stem}_errors.log"),
                rotation="50 MB",
                retention="60 days",
                level="ERROR",
                format=FILE_FORMAT,
                enqueue=True,
                backtrace=True,
                diagnose=True
            ))

        logger.info(f"Logger configured - Level: {level}, File: {log_file_path or 'console only'}")

    def configure_from_settings(self, settings):
        """Configure logger from BackfillSettings"""
        self.configure(
            level=settings.log_level,
            log_file_path=settings.log_file_path,
            rotation=settings.log_rotation,
            retention=settings.log_retention
        )

    @staticmethod
    def log_instrument_processing(
        symbol: str,
        state: str,
        chunks_requested: int,
        days_written: int,
        processing_time: float,
        status: str = "success",
        error: str = ""
    ):
        """Log instrument processing with structured data"""
        data = {
            'event_type': 'instrument_processed' if status == "success" else 'instrument_failed',
            'symbol': symbol,
            'state': state,
            'chunks_requested': chunks_requested,
            'days_written': days_written,
            'processing_time_seconds': round(processing_time, 2),
            'status': status
        }

        if status == "success":
            logger.bind(**data).info(
                f"✅ {symbol} [{state}]: {days_written} day(s) from {chunks_requested} chunk(s) "
                f"in {processing_time:.2f}s"
            )
        else:
            logger.bind(**data, error=error).error(
                f"❌ {symbol} [{state}] after {processing_time:.2f}s: {error}"
            )

    @staticmethod
    def log_chunk_fetch(symbol: str, date_range: str, candles: int, attempts: int):
        """Log a completed chunk request"""
        data = {
            'event_type': 'chunk_fetched',
            'symbol': symbol,
            'date_range': date_range,
            'candles': candles,
            'attempts': attempts
        }
        logger.bind(**data).debug(f"Fetched {candles:,} candles for {symbol} {date_range} ({attempts} attempt(s))")

    @staticmethod
    def log_run_summary(report):
        """Log the final RunReport"""
        elapsed = 0.0
        if report.finished_at:
            elapsed = (report.finished_at - report.started_at).total_seconds()

        data = {
            'event_type': 'run_summary',
            'instruments': len(report.results),
            'succeeded': len(report.succeeded),
            'failed': len(report.failed),
            'skipped': report.skipped,
            'chunks_requested': report.chunks_requested,
            'days_written': report.days_written,
            'partial_days': report.partial_days,
            'fetch_attempts': report.fetch_attempts,
            'throttle_wait_seconds': round(report.throttle_wait_seconds, 2),
            'elapsed_seconds': round(elapsed, 2)
        }

        logger.bind(**data).info(
            f"📊 Run finished in {elapsed:.1f}s - {len(report.succeeded)}/{len(report.results)} instruments ok, "
            f"{report.skipped} already complete, {report.chunks_requested} chunk request(s) "
            f"in {report.fetch_attempts} attempt(s), {report.throttle_wait_seconds:.1f}s throttled, "
            f"{report.days_written} day file(s) written, {report.partial_days} open day(s) left outstanding"
        )
        for instrument, reason in report.failed:
            logger.error(f"❌ {instrument.label}: {reason}")


def setup_logging(settings=None):
    """Setup logging for the backfill"""
    backfill_logger = BackfillLogger()

    if settings:
        backfill_logger.configure_from_settings(settings)
    else:
        backfill_logger.configure()

    return logger


# Convenience functions for structured logging
def log_instrument_processing(*args, **kwargs):
    """Convenience function for instrument processing logs"""
    return BackfillLogger.log_instrument_processing(*args, **kwargs)


def log_chunk_fetch(*args, **kwargs):
    """Convenience function for chunk fetch logs"""
    return BackfillLogger.log_chunk_fetch(*args, **kwargs)


def log_run_summary(*args, **kwargs):
    """Convenience function for the run summary"""
    return BackfillLogger.log_run_summary(*args, **kwargs)
