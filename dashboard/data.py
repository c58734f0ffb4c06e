from __future__ import annotations

import io
import logging
import math
import re
from dataclasses import dataclass, field
from datetime import date, datetime
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence

import pandas as pd


logger = logging.getLogger(__name__)

CSV_EXTENSIONS = {".csv"}
EXCEL_EXTENSIONS = {".xlsx", ".xls"}
SUPPORTED_EXTENSIONS = sorted(CSV_EXTENSIONS | EXCEL_EXTENSIONS)

LEADING_NUMBER = re.compile(r"\s*([+-]?(?:Infinity|(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?))", re.ASCII)


class IngestError(Exception):
    """Base class for upload failures. Prior dataset state is never touched."""


class UnsupportedFormat(IngestError):
    def __init__(self, filename: str):
        self.filename = filename
        self.extension = file_extension(filename)
        super().__init__(
            f"Unsupported format '{self.extension or filename}'. Please upload CSV or Excel "
            f"({', '.join(SUPPORTED_EXTENSIONS)})."
        )


class ParseFailure(IngestError):
    def __init__(self, filename: str, reason: str):
        self.filename = filename
        self.reason = reason
        super().__init__(f"Could not parse '{filename}': {reason}")


@dataclass(frozen=True)
class FieldDescriptor:
    name: str
    numeric: bool = False


@dataclass(frozen=True, eq=False)
class Dataset:
    frame: pd.DataFrame = field(default_factory=pd.DataFrame)
    fields: List[FieldDescriptor] = field(default_factory=list)
    source_name: str = ""

    @property
    def field_names(self) -> List[str]:
        return [f.name for f in self.fields]

    @property
    def is_empty(self) -> bool:
        return self.frame.empty

    def __len__(self) -> int:
        return len(self.frame)


# ---------------- Cell helpers ----------------
def cell_text(value: object) -> str:
    """String form of a cell as shown in the grid and matched by search."""
    if value is None or value is pd.NA or value is pd.NaT:
        return ""
    if isinstance(value, float):
        if math.isnan(value):
            return ""
        if value.is_integer():
            return str(int(value))
    if isinstance(value, datetime):
        if (value.hour, value.minute, value.second, value.microsecond) == (0, 0, 0, 0):
            return value.date().isoformat()
        return value.isoformat(sep=" ")
    return str(value)


def as_float(value: object) -> Optional[float]:
    """Leading number of a cell, read the way a browser's parseFloat does.

    "150 units" -> 150.0, "1,200" -> 1.0, "2024-01-05" -> 2024.0; no leading number -> None.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        out = float(value)
    else:
        match = LEADING_NUMBER.match(cell_text(value))
        if match is None:
            return None
        out = float(match.group(1))
    if math.isnan(out):
        return None
    return out


def _number_or_zero(value: object) -> float:
    out = as_float(value)
    return 0.0 if out is None else out


def to_number(series: pd.Series) -> pd.Series:
    """Coerce a column to floats; unparsable cells become 0."""
    return series.map(_number_or_zero).astype(float)


def parse_date(value: object) -> Optional[pd.Timestamp]:
    if value is None or value is pd.NA or value is pd.NaT:
        return None
    if isinstance(value, (datetime, date)):
        ts = pd.Timestamp(value)
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            ts = pd.to_datetime(text)
        except (ValueError, TypeError, OverflowError):
            return None
    else:
        return None
    if pd.isna(ts):
        return None
    if ts.tzinfo is not None:
        ts = ts.tz_convert(None)
    return ts


def infer_fields(frame: pd.DataFrame) -> List[FieldDescriptor]:
    first = frame.iloc[0] if not frame.empty else None
    return [
        FieldDescriptor(name=str(col), numeric=first is not None and as_float(first[col]) is not None)
        for col in frame.columns
    ]


def _fill_missing(frame: pd.DataFrame) -> pd.DataFrame:
    frame = frame.astype(object)
    frame = frame.where(frame.notna(), "")
    frame.columns = [str(c) for c in frame.columns]
    return frame.reset_index(drop=True)


def dataset_from_records(
    records: Iterable[Dict[str, object]],
    field_names: Optional[Sequence[str]] = None,
    *,
    source_name: str = "",
) -> Dataset:
    """Build a dataset from already-parsed rows (columns default to first-seen key order)."""
    records = list(records)
    if field_names is None:
        seen: Dict[str, None] = {}
        for rec in records:
            for key in rec:
                seen.setdefault(str(key), None)
        field_names = list(seen)
    frame = _fill_missing(pd.DataFrame.from_records(records, columns=list(field_names)))
    return Dataset(frame=frame, fields=infer_fields(frame), source_name=source_name)


# ---------------- Loaders ----------------
def file_extension(filename: str) -> str:
    return Path(filename or "").suffix.lower()


def read_csv_bytes(content: bytes) -> pd.DataFrame:
    try:
        frame = pd.read_csv(
            io.BytesIO(content),
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=True,
            encoding="utf-8-sig",
        )
    except pd.errors.EmptyDataError:
        return pd.DataFrame()
    return _fill_missing(frame)


def read_excel_bytes(content: bytes) -> pd.DataFrame:
    frame = pd.read_excel(io.BytesIO(content), sheet_name=0, dtype=object)
    return _fill_missing(frame)


def check_supported(filename: str) -> str:
    """Return the lower-cased extension, or raise UnsupportedFormat."""
    ext = file_extension(filename)
    if ext not in CSV_EXTENSIONS and ext not in EXCEL_EXTENSIONS:
        logger.warning("Rejected upload %r: unsupported extension %r", filename, ext)
        raise UnsupportedFormat(filename)
    return ext


def ingest(filename: str, content: bytes) -> Dataset:
    ext = check_supported(filename)
    reader = read_csv_bytes if ext in CSV_EXTENSIONS else read_excel_bytes

    try:
        frame = reader(content)
    except Exception as exc:
        logger.warning("Failed to parse upload %r: %s", filename, exc)
        raise ParseFailure(filename, str(exc) or type(exc).__name__) from exc

    dataset = Dataset(frame=frame, fields=infer_fields(frame), source_name=filename)
    logger.info("Ingested %s: %d rows, %d fields", filename, len(frame), len(dataset.fields))
    return dataset
