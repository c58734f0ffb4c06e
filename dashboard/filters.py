from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Dict, Mapping, Optional

import pandas as pd

from dashboard.data import as_float, cell_text, parse_date, to_number

DATE_FIELDS = ("Date", "date")


@dataclass(frozen=True)
class DateRange:
    start: Optional[date] = None
    end: Optional[date] = None

    @property
    def is_active(self) -> bool:
        return self.start is not None or self.end is not None


@dataclass(frozen=True)
class NumericBound:
    min: Optional[float] = None
    max: Optional[float] = None

    @property
    def is_active(self) -> bool:
        return self.min is not None or self.max is not None


@dataclass(frozen=True)
class FilterConfig:
    query: str = ""
    date_range: DateRange = field(default_factory=DateRange)
    numeric_bounds: Dict[str, NumericBound] = field(default_factory=dict)

    @property
    def is_neutral(self) -> bool:
        return (
            not self.query
            and not self.date_range.is_active
            and not any(b.is_active for b in self.numeric_bounds.values())
        )


def _as_date(value: object) -> Optional[date]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    ts = parse_date(str(value))
    return ts.date() if ts is not None else None


def _as_bound(raw: object) -> NumericBound:
    if isinstance(raw, NumericBound):
        return raw
    if isinstance(raw, Mapping):
        return NumericBound(min=as_float(raw.get("min")), max=as_float(raw.get("max")))
    return NumericBound()


def normalize_filters(raw: Optional[Mapping[str, object]]) -> FilterConfig:
    """Build a FilterConfig from loose input; blank or unparsable values mean "no constraint"."""
    raw = raw or {}
    query = raw.get("query") or ""
    if not isinstance(query, str):
        query = str(query)

    dr = raw.get("date_range") or {}
    if isinstance(dr, DateRange):
        date_range = dr
    else:
        date_range = DateRange(start=_as_date(dr.get("start")), end=_as_date(dr.get("end")))

    bounds: Dict[str, NumericBound] = {}
    for name, bound in (raw.get("numeric_bounds") or {}).items():
        bounds[str(name)] = _as_bound(bound)

    return FilterConfig(query=query, date_range=date_range, numeric_bounds=bounds)


# ---------------- Predicates ----------------
def text_mask(frame: pd.DataFrame, query: str) -> pd.Series:
    needle = query.lower()
    mask = pd.Series(False, index=frame.index)
    for col in frame.columns:
        mask |= frame[col].map(cell_text).str.lower().str.contains(needle, regex=False)
    return mask


def row_dates(frame: pd.DataFrame) -> pd.Series:
    """Parsed `Date` (falling back to `date`) per row; NaT where absent or unparsable."""
    values = pd.Series("", index=frame.index, dtype=object)
    for name in reversed(DATE_FIELDS):
        if name in frame.columns:
            col = frame[name]
            present = col.map(cell_text).str.strip() != ""
            values = col.where(present, values)
    return pd.to_datetime(values.map(parse_date), errors="coerce")


def date_mask(frame: pd.DataFrame, date_range: DateRange) -> pd.Series:
    dates = row_dates(frame)
    mask = pd.Series(True, index=frame.index)
    if date_range.start is not None:
        mask &= dates >= pd.Timestamp(date_range.start)
    if date_range.end is not None:
        mask &= dates <= pd.Timestamp(date_range.end)
    # Rows without a usable date are never excluded.
    return mask | dates.isna()


def numeric_mask(values: pd.Series, bound: NumericBound) -> pd.Series:
    numbers = to_number(values)
    mask = pd.Series(True, index=values.index)
    if bound.min is not None:
        mask &= numbers >= bound.min
    if bound.max is not None:
        mask &= numbers <= bound.max
    return mask


def apply_filters(frame: pd.DataFrame, filters: FilterConfig) -> pd.DataFrame:
    if frame.empty:
        return frame
    mask = pd.Series(True, index=frame.index)
    if filters.query:
        mask &= text_mask(frame, filters.query)
    if filters.date_range.is_active:
        mask &= date_mask(frame, filters.date_range)
    for name, bound in filters.numeric_bounds.items():
        if bound.is_active and name in frame.columns:
            mask &= numeric_mask(frame[name], bound)
    return frame[mask]
