from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Sequence

import pandas as pd

from dashboard.data import FieldDescriptor, cell_text, parse_date, to_number

PALETTE = [
    "#3B82F6",  # blue
    "#8B5CF6",  # purple
    "#06B6D4",  # cyan
    "#10B981",  # green
    "#F59E0B",  # amber
    "#EF4444",  # red
]

SALES_KEYWORDS = ("sales", "revenue")
UNKNOWN_CATEGORY = "Unknown"
FALLBACK_GROUP_FIELD = "Category"
TIME_SERIES_DATE_FIELD = "Date"
FALLBACK_VALUE_FIELD = "Value"


@dataclass(frozen=True)
class KpiSummary:
    total_rows: int = 0
    total_sales: float = 0.0
    avg_sales: float = 0.0
    sales_field: Optional[str] = None


@dataclass(frozen=True)
class CategoryCount:
    name: str
    count: int
    color: str


@dataclass(frozen=True)
class TimePoint:
    date: str
    value: float


@dataclass(frozen=True)
class TimeSeries:
    value_field: str = FALLBACK_VALUE_FIELD
    points: List[TimePoint] = field(default_factory=list)


@dataclass(frozen=True)
class DashboardSummary:
    kpis: KpiSummary = field(default_factory=KpiSummary)
    categories: List[CategoryCount] = field(default_factory=list)
    time_series: TimeSeries = field(default_factory=TimeSeries)


def detect_sales_field(fields: Sequence[FieldDescriptor]) -> Optional[str]:
    for f in fields:
        lowered = f.name.lower()
        if any(k in lowered for k in SALES_KEYWORDS):
            return f.name
    return None


def compute_kpis(filtered: pd.DataFrame, fields: Sequence[FieldDescriptor]) -> KpiSummary:
    total_rows = int(len(filtered))
    sales_field = detect_sales_field(fields)
    total_sales = 0.0
    if sales_field is not None and sales_field in filtered.columns:
        total_sales = float(to_number(filtered[sales_field]).sum())
    avg_sales = total_sales / total_rows if total_rows else 0.0
    return KpiSummary(total_rows=total_rows, total_sales=total_sales, avg_sales=avg_sales, sales_field=sales_field)


def category_label(value: object) -> str:
    text = cell_text(value)
    return text if text else UNKNOWN_CATEGORY


def format_display_date(ts: pd.Timestamp) -> str:
    return f"{ts.month}/{ts.day}/{ts.year}"


def compute_category_counts(filtered: pd.DataFrame, fields: Sequence[FieldDescriptor]) -> List[CategoryCount]:
    if filtered.empty:
        return []
    group_field = fields[0].name if fields else FALLBACK_GROUP_FIELD
    if group_field in filtered.columns:
        keys = filtered[group_field].map(category_label)
    else:
        keys = pd.Series(UNKNOWN_CATEGORY, index=filtered.index)
    counts = keys.groupby(keys, sort=False).size()
    return [
        CategoryCount(name=str(name), count=int(count), color=PALETTE[i % len(PALETTE)])
        for i, (name, count) in enumerate(counts.items())
    ]


def compute_time_series(filtered: pd.DataFrame, fields: Sequence[FieldDescriptor]) -> TimeSeries:
    value_field = fields[1].name if len(fields) >= 2 else FALLBACK_VALUE_FIELD
    if filtered.empty or TIME_SERIES_DATE_FIELD not in filtered.columns:
        return TimeSeries(value_field=value_field)

    raw_dates = filtered[TIME_SERIES_DATE_FIELD]
    rows = filtered[raw_dates.map(cell_text) != ""]
    if value_field in rows.columns:
        values = to_number(rows[value_field])
    else:
        values = pd.Series(0.0, index=rows.index)

    points: List[TimePoint] = []
    for raw, value in zip(rows[TIME_SERIES_DATE_FIELD], values):
        ts = parse_date(raw)
        display = format_display_date(ts) if ts is not None else cell_text(raw)
        points.append(TimePoint(date=display, value=float(value)))
    return TimeSeries(value_field=value_field, points=points)


def summarize(filtered: pd.DataFrame, fields: Sequence[FieldDescriptor]) -> DashboardSummary:
    return DashboardSummary(
        kpis=compute_kpis(filtered, fields),
        categories=compute_category_counts(filtered, fields),
        time_series=compute_time_series(filtered, fields),
    )
