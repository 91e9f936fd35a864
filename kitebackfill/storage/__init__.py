"""On-disk storage for day files and completion markers"""

from .completion_store import CompletionStore, FileCompletionStore, MemoryCompletionStore
from .day_writer import DayWriter, candles_to_frame
from .paths import data_file_path, marker_file_path, instrument_stem, encode_field, decode_stem

__all__ = [
    'CompletionStore',
    'FileCompletionStore',
    'MemoryCompletionStore',
    'DayWriter',
    'candles_to_frame',
    'data_file_path',
    'marker_file_path',
    'instrument_stem',
    'encode_field',
    'decode_stem'
]
