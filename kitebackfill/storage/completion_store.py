"""
Completion markers

A marker for (instrument, day) means the day's data file has been fully
written. Markers are only ever created by DayWriter after the data file
is in place; nothing else in a run decides whether a day is done.
"""

from datetime import date
from pathlib import Path
from typing import Protocol, Set, Tuple, Union

from loguru import logger

from kitebackfill.exceptions import StorageError
from kitebackfill.models.data_models import Instrument
from kitebackfill.storage.paths import marker_file_path


class CompletionStore(Protocol):
    def exists(self, instrument: Instrument, day: date) -> bool:
        ...

    def mark(self, instrument: Instrument, day: date) -> None:
        ...


class FileCompletionStore:
    """Empty ``.done`` files next to the day's data file"""

    def __init__(self, data_dir: Union[str, Path]):
        self.data_dir = Path(data_dir)

    def marker_path(self, instrument: Instrument, day: date) -> Path:
        return marker_file_path(self.data_dir, instrument, day)

    def exists(self, instrument: Instrument, day: date) -> bool:
        return self.marker_path(instrument, day).is_file()

    def mark(self, instrument: Instrument, day: date) -> None:
        """
        Record the day as complete

        Raises:
            StorageError: if the marker cannot be created
        """
        path = self.marker_path(instrument, day)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.touch()
        except OSError as e:
            raise StorageError(f"Could not write marker {path}: {e}") from e

        logger.debug(f"Marked {instrument.label} {day.isoformat()} complete")


class MemoryCompletionStore:
    """In-process store for tests"""

    def __init__(self):
        self._done: Set[Tuple[int, str, date]] = set()

    @staticmethod
    def _key(instrument: Instrument, day: date) -> Tuple[int, str, date]:
        return instrument.instrument_token, instrument.tradingsymbol, day

    def exists(self, instrument: Instrument, day: date) -> bool:
        return self._key(instrument, day) in self._done

    def mark(self, instrument: Instrument, day: date) -> None:
        self._done.add(self._key(instrument, day))

    def __len__(self) -> int:
        return len(self._done)
