"""
Day file writer

Commits one DayRecord in two ordered steps: the CSV is written to a
temporary file and renamed over the final path, then the completion marker
is created. A crash between the two leaves no marker, so the next run
fetches the day again and overwrites the file.
"""

import asyncio
import os
from pathlib import Path
from typing import Union

import pandas as pd
from loguru import logger

from kitebackfill.exceptions import StorageError
from kitebackfill.fetchers.kite_transport import CANDLE_FIELDS
from kitebackfill.models.data_models import DayRecord
from kitebackfill.storage.completion_store import CompletionStore
from kitebackfill.storage.paths import data_file_path


def candles_to_frame(record: DayRecord) -> pd.DataFrame:
    """Candles of one day as a DataFrame with the fixed column order"""
    rows = [
        (
            candle.timestamp.isoformat(),
            candle.open,
            candle.high,
            candle.low,
            candle.close,
            candle.volume,
            candle.oi
        )
        for candle in record.candles
    ]
    return pd.DataFrame(rows, columns=CANDLE_FIELDS)


class DayWriter:
    """Writes day files and their completion markers"""

    def __init__(self, data_dir: Union[str, Path], completion_store: CompletionStore):
        self.data_dir = Path(data_dir)
        self.completion_store = completion_store

    def data_path(self, record: DayRecord) -> Path:
        return data_file_path(self.data_dir, record.instrument, record.day)

    def write_data(self, record: DayRecord) -> Path:
        """
        Write the CSV for one day

        Raises:
            StorageError: if the file cannot be written
        """
        path = self.data_path(record)
        tmp_path = path.with_name(f".{path.name}.tmp")

        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            candles_to_frame(record).to_csv(tmp_path, index=False)
            os.replace(tmp_path, path)
        except OSError as e:
            try:
                tmp_path.unlink(missing_ok=True)
            except OSError:
                logger.warning(f"Could not remove temporary file {tmp_path}")
            raise StorageError(f"Could not write {path}: {e}") from e

        return path

    def commit_sync(self, record: DayRecord) -> Path:
        path = self.write_data(record)
        self.completion_store.mark(record.instrument, record.day)
        logger.debug(f"Done writing {path} ({len(record.candles)} candles)")
        return path

    async def commit(self, record: DayRecord) -> Path:
        """
        Persist a DayRecord, then mark it complete

        Raises:
            StorageError: if either step fails; no marker exists afterwards
                unless the data file was fully written
        """
        return await asyncio.to_thread(self.commit_sync, record)

    async def write(self, record: DayRecord) -> Path:
        """
        Persist a DayRecord without marking it, for days still being traded

        Raises:
            StorageError: if the file cannot be written
        """
        return await asyncio.to_thread(self.write_data, record)
