from __future__ import annotations

from dashboard.charts import build_charts
from dashboard.metrics import CategoryCount, TimePoint, TimeSeries


def _mark_type(spec):
    mark = spec["mark"]
    return mark["type"] if isinstance(mark, dict) else mark


def test_build_charts_returns_vega_lite_specs():
    categories = [CategoryCount("North", 2, "#3B82F6"), CategoryCount("South", 1, "#8B5CF6")]
    series = TimeSeries("Sales", [TimePoint("1/5/2024", 100.0), TimePoint("2/10/2024", 200.0)])

    charts = build_charts(categories, series)

    assert {k: _mark_type(v) for k, v in charts.items()} == {
        "bar": "bar",
        "pie": "arc",
        "line": "line",
        "area": "area",
    }
    for spec in charts.values():
        assert spec["$schema"].startswith("https://vega.github.io/schema/vega-lite/")
    assert charts["line"]["encoding"]["y"]["title"] == "Sales"
    assert charts["pie"]["encoding"]["color"]["scale"]["range"] == ["#3B82F6", "#8B5CF6"]


def test_empty_inputs_still_render():
    charts = build_charts([], TimeSeries())
    assert set(charts) == {"bar", "pie", "line", "area"}
    assert "scale" not in charts["pie"]["encoding"]["color"]
    assert charts["area"]["encoding"]["y"]["title"] == "Value"
