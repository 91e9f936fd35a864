"""
Deterministic on-disk layout

    <data_dir>/<YYYY-MM-DD>/<name>_<tradingsymbol>_<expiry>.csv
    <data_dir>/<YYYY-MM-DD>/<name>_<tradingsymbol>_<expiry>.done

Each identity field is percent-encoded, with ``_`` escaped as ``%5F``, so the
encoded fields never contain the separator and distinct values never share
a file name. A missing field is written as an empty slot: every real value
encodes to at least one character.
"""

from datetime import date
from pathlib import Path
from typing import List, Optional, Union
from urllib.parse import quote, unquote

from kitebackfill.models.data_models import Instrument

FIELD_SEPARATOR = "_"
DATA_SUFFIX = ".csv"
MARKER_SUFFIX = ".done"


def encode_field(value: Optional[object]) -> str:
    """Reversible filesystem-safe rendering of one identity field"""
    if value is None:
        return ""
    text = str(value)
    if not text.strip():
        return ""
    return quote(text, safe='').replace(FIELD_SEPARATOR, '%5F')


def decode_stem(stem: str) -> List[Optional[str]]:
    """Inverse of ``instrument_stem``: the identity fields, None where missing"""
    return [unquote(part) if part else None for part in stem.split(FIELD_SEPARATOR)]


def instrument_stem(instrument: Instrument) -> str:
    return FIELD_SEPARATOR.join(
        encode_field(field)
        for field in (instrument.name, instrument.tradingsymbol, instrument.expiry)
    )


def day_directory(data_dir: Union[str, Path], day: date) -> Path:
    return Path(data_dir) / day.isoformat()


def data_file_path(data_dir: Union[str, Path], instrument: Instrument, day: date) -> Path:
    return day_directory(data_dir, day) / f"{instrument_stem(instrument)}{DATA_SUFFIX}"


def marker_file_path(data_dir: Union[str, Path], instrument: Instrument, day: date) -> Path:
    return day_directory(data_dir, day) / f"{instrument_stem(instrument)}{MARKER_SUFFIX}"
