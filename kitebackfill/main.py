"""
Kite Historical Backfill - Command line entry point

Downloads the NFO instrument dump, keeps the configured underlyings and
backfills minute candles for the last ``--max-days`` days into one CSV per
instrument per day. Days already on disk are skipped.
"""

import argparse
import asyncio
import os
import sys
from typing import List, Optional

from dotenv import load_dotenv
from loguru import logger

from kitebackfill.config.settings import load_settings
from kitebackfill.exceptions import ConfigError, FetchError
from kitebackfill.fetchers.instrument_source import InstrumentSource
from kitebackfill.scheduler.backfill_scheduler import run_backfill
from kitebackfill.utils.logging_config import setup_logging

EXIT_OK = 0
EXIT_FAILURES = 1
EXIT_CONFIG_ERROR = 2
EXIT_INTERRUPTED = 130


def load_environment():
    """Load variables from a .env file in the working directory or next to the package"""
    env_paths = [
        os.path.join(os.getcwd(), '.env'),
        os.path.join(os.path.dirname(__file__), '..', '.env')
    ]

    for env_path in env_paths:
        if os.path.exists(env_path):
            load_dotenv(dotenv_path=env_path, override=False)
            return env_path
    return None


def parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments"""
    parser = argparse.ArgumentParser(
        prog="kitebackfill",
        description="Incrementally backfill Kite historical candles into per-day CSV files",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  kitebackfill --auth "token KEY:ACCESS"      # Fetch today only
  kitebackfill --max-days 60                  # Backfill the last 60 days
  KITE_AUTH="token KEY:ACCESS" kitebackfill   # Token from the environment
        """
    )

    parser.add_argument("--auth", help="Authorization header value (default: $KITE_AUTH)")
    parser.add_argument("--max-days", type=int, help="Days to backfill, today included (default: 1)")
    parser.add_argument("--max-retries", type=int, help="Attempts per chunk request (default: 3)")
    parser.add_argument("--data-dir", help="Output directory (default: data)")
    parser.add_argument("--names", help="Comma separated underlyings (default: NIFTY,BANKNIFTY,FINNIFTY)")
    parser.add_argument(
        "--empty-days",
        choices=["mark", "skip"],
        help="Mark days without candles as complete, or leave them for the next run (default: mark)"
    )
    parser.add_argument(
        "--log-level", "-l",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Set logging level (default: INFO)"
    )

    return parser.parse_args(argv)


async def run(args: argparse.Namespace) -> int:
    settings = load_settings(
        kite_auth_token=args.auth,
        max_days=args.max_days,
        max_retries=args.max_retries,
        data_dir=args.data_dir,
        instrument_names=args.names,
        empty_day_policy=args.empty_days,
        log_level=args.log_level
    )
    setup_logging(settings)

    if not settings.kite_auth_token:
        raise ConfigError(
            "Auth token not found / specified. Consider passing KITE_AUTH environment variable "
            "or --auth while running the program"
        )

    settings.validate_for_run()
    requested_range = settings.requested_range()
    settings.validate_for_run(requested_range)

    logger.info(
        f"🚀 Kite backfill for {', '.join(settings.instrument_names)} on {settings.instrument_exchange}, "
        f"{requested_range} into {os.path.abspath(settings.data_dir)}"
    )

    instruments = await InstrumentSource.from_settings(settings).load()
    report = await run_backfill(instruments, requested_range, settings)

    return EXIT_OK if report.ok else EXIT_FAILURES


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point"""
    args = parse_arguments(argv)
    env_path = load_environment()
    if env_path:
        logger.debug(f"Loaded environment variables from: {env_path}")

    try:
        return asyncio.run(run(args))

    except ConfigError as e:
        logger.error(f"Configuration error: {e}")
        return EXIT_CONFIG_ERROR

    except FetchError as e:
        logger.error(f"Could not load the instrument universe: {e}")
        return EXIT_FAILURES

    except KeyboardInterrupt:
        logger.info("⏹️ Process interrupted by user, completed days are kept")
        return EXIT_INTERRUPTED


if __name__ == "__main__":
    sys.exit(main())
