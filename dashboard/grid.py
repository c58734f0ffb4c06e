from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

import pandas as pd

from dashboard.data import FieldDescriptor, cell_text, to_number

PAGE_SIZE = 10
EXPORT_FILENAME = "dashboard-export.csv"


@dataclass(frozen=True)
class GridPage:
    page: int = 1
    page_count: int = 1
    total_rows: int = 0
    rows: List[Dict[str, str]] = field(default_factory=list)


def sort_rows(
    frame: pd.DataFrame,
    fields: Sequence[FieldDescriptor],
    sort_by: Optional[str] = None,
    descending: bool = False,
) -> pd.DataFrame:
    if not sort_by or sort_by not in frame.columns or frame.empty:
        return frame
    numeric = {f.name: f.numeric for f in fields}.get(sort_by, False)
    if numeric:
        key = lambda s: to_number(s)  # noqa: E731
    else:
        key = lambda s: s.map(cell_text).str.lower()  # noqa: E731
    return frame.sort_values(sort_by, ascending=not descending, kind="stable", key=key)


def grid_page(
    frame: pd.DataFrame,
    fields: Sequence[FieldDescriptor],
    page: int = 1,
    *,
    sort_by: Optional[str] = None,
    descending: bool = False,
    page_size: int = PAGE_SIZE,
) -> GridPage:
    total = int(len(frame))
    page_count = max(1, math.ceil(total / page_size))
    page = max(1, min(int(page), page_count))
    ordered = sort_rows(frame, fields, sort_by, descending)
    chunk = ordered.iloc[(page - 1) * page_size : page * page_size]
    columns = [f.name for f in fields if f.name in chunk.columns]
    rows = [{c: cell_text(v) for c, v in zip(columns, rec)} for rec in chunk[columns].itertuples(index=False, name=None)]
    return GridPage(page=page, page_count=page_count, total_rows=total, rows=rows)


def export_csv(
    frame: pd.DataFrame,
    fields: Sequence[FieldDescriptor],
    *,
    sort_by: Optional[str] = None,
    descending: bool = False,
) -> bytes:
    """Filtered rows and current columns as UTF-8 CSV, in the grid's sort order."""
    columns = [f.name for f in fields if f.name in frame.columns]
    ordered = sort_rows(frame, fields, sort_by, descending)
    out = pd.DataFrame({c: ordered[c].map(cell_text) for c in columns}, columns=columns)
    return out.to_csv(index=False).encode("utf-8")
