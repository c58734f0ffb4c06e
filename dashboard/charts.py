from __future__ import annotations

from typing import Any, Dict, Sequence

import altair as alt
import pandas as pd

from dashboard.metrics import PALETTE, CategoryCount, TimeSeries

alt.data_transformers.disable_max_rows()

PRIMARY = PALETTE[0]
SECONDARY = PALETTE[1]
ACCENT = PALETTE[2]
CHART_HEIGHT = 260


def to_vega_spec(chart: alt.TopLevelMixin) -> Dict[str, Any]:
    """Convert an Altair chart into a Vega-Lite spec dict (JSON-serializable)."""
    return chart.to_dict()


def _category_frame(categories: Sequence[CategoryCount]) -> pd.DataFrame:
    return pd.DataFrame(
        [{"name": c.name, "count": c.count, "color": c.color} for c in categories],
        columns=["name", "count", "color"],
    )


def _series_frame(series: TimeSeries) -> pd.DataFrame:
    return pd.DataFrame(
        [{"date": p.date, "value": p.value} for p in series.points],
        columns=["date", "value"],
    )


def bar_chart(categories: Sequence[CategoryCount]) -> alt.Chart:
    df = _category_frame(categories)
    hover = alt.selection_point(fields=["name"], on="mouseover", empty="all")
    return (
        alt.Chart(df, title="Distribution")
        .mark_bar(color=PRIMARY)
        .encode(
            x=alt.X("name:N", title=None, sort=None, axis=alt.Axis(grid=False)),
            y=alt.Y("count:Q", title="Count", axis=alt.Axis(gridDash=[3, 3], domain=False, ticks=False)),
            opacity=alt.condition(hover, alt.value(1), alt.value(0.6)),
            tooltip=[alt.Tooltip("name:N", title="Category"), alt.Tooltip("count:Q", title="Count")],
        )
        .add_params(hover)
        .properties(height=CHART_HEIGHT)
    )


def pie_chart(categories: Sequence[CategoryCount]) -> alt.Chart:
    df = _category_frame(categories)
    total = int(df["count"].sum()) if not df.empty else 0
    df["percent"] = df["count"] / total if total else 0.0
    scale = alt.Scale(domain=df["name"].tolist(), range=df["color"].tolist()) if not df.empty else alt.Undefined
    return (
        alt.Chart(df, title="Breakdown")
        .mark_arc(outerRadius=80)
        .encode(
            theta=alt.Theta("count:Q"),
            color=alt.Color("name:N", title="Category", sort=None, scale=scale),
            tooltip=[
                alt.Tooltip("name:N", title="Category"),
                alt.Tooltip("count:Q", title="Count"),
                alt.Tooltip("percent:Q", title="Share", format=".0%"),
            ],
        )
        .properties(height=CHART_HEIGHT)
    )


def line_chart(series: TimeSeries) -> alt.Chart:
    df = _series_frame(series)
    return (
        alt.Chart(df, title="Trend Over Time")
        .mark_line(point={"filled": True, "size": 40}, color=SECONDARY)
        .encode(
            x=alt.X("date:O", title="Date", sort=None, axis=alt.Axis(grid=False)),
            y=alt.Y("value:Q", title=series.value_field, axis=alt.Axis(gridDash=[3, 3], domain=False, ticks=False)),
            tooltip=[alt.Tooltip("date:O", title="Date"), alt.Tooltip("value:Q", title=series.value_field, format=",")],
        )
        .properties(height=CHART_HEIGHT)
    )


def area_chart(series: TimeSeries) -> alt.Chart:
    df = _series_frame(series)
    return (
        alt.Chart(df, title="Area Trend")
        .mark_area(color=ACCENT, line={"color": ACCENT}, opacity=0.6)
        .encode(
            x=alt.X("date:O", title="Date", sort=None, axis=alt.Axis(grid=False)),
            y=alt.Y("value:Q", title=series.value_field, axis=alt.Axis(gridDash=[3, 3], domain=False, ticks=False)),
            tooltip=[alt.Tooltip("date:O", title="Date"), alt.Tooltip("value:Q", title=series.value_field, format=",")],
        )
        .properties(height=CHART_HEIGHT)
    )


def build_charts(categories: Sequence[CategoryCount], series: TimeSeries) -> Dict[str, Any]:
    return {
        "bar": to_vega_spec(bar_chart(categories)),
        "pie": to_vega_spec(pie_chart(categories)),
        "line": to_vega_spec(line_chart(series)),
        "area": to_vega_spec(area_chart(series)),
    }
