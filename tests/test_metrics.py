from __future__ import annotations

import pytest

from dashboard.data import FieldDescriptor, dataset_from_records
from dashboard.filters import apply_filters, normalize_filters
from dashboard.metrics import (
    PALETTE,
    UNKNOWN_CATEGORY,
    compute_category_counts,
    compute_kpis,
    compute_time_series,
    detect_sales_field,
    summarize,
)


def test_kpis_coerce_unparsable_sales_to_zero(sales_dataset):
    kpis = compute_kpis(sales_dataset.frame, sales_dataset.fields)
    assert kpis.total_rows == 3
    assert kpis.total_sales == 300
    assert kpis.avg_sales == 100
    assert kpis.sales_field == "Sales"


def test_kpis_on_empty_selection_do_not_divide_by_zero(sales_dataset):
    empty = apply_filters(sales_dataset.frame, normalize_filters({"query": "nothing matches"}))
    kpis = compute_kpis(empty, sales_dataset.fields)
    assert (kpis.total_rows, kpis.total_sales, kpis.avg_sales) == (0, 0.0, 0.0)


def test_kpis_without_sales_field():
    ds = dataset_from_records([{"Name": "a", "Units": "4"}])
    kpis = compute_kpis(ds.frame, ds.fields)
    assert kpis.sales_field is None
    assert kpis.total_sales == 0
    assert kpis.avg_sales == 0


def test_sales_field_detection_is_first_match_case_insensitive():
    fields = [FieldDescriptor("Name"), FieldDescriptor("Net REVENUE"), FieldDescriptor("Sales")]
    assert detect_sales_field(fields) == "Net REVENUE"
    assert detect_sales_field([FieldDescriptor("Wholesales")]) == "Wholesales"


def test_categories_group_by_first_field_in_first_seen_order():
    ds = dataset_from_records(
        [{"Region": "South"}, {"Region": "North"}, {"Region": ""}, {"Region": "South"}]
    )
    cats = compute_category_counts(ds.frame, ds.fields)
    assert [(c.name, c.count) for c in cats] == [("South", 2), ("North", 1), (UNKNOWN_CATEGORY, 1)]
    assert [c.color for c in cats] == PALETTE[:3]


def test_category_colors_cycle_through_palette():
    ds = dataset_from_records([{"k": str(i)} for i in range(len(PALETTE) + 2)])
    cats = compute_category_counts(ds.frame, ds.fields)
    assert cats[len(PALETTE)].color == PALETTE[0]
    assert cats[len(PALETTE) + 1].color == PALETTE[1]


def test_category_counts_sum_to_total_rows(sales_dataset):
    filtered = apply_filters(sales_dataset.frame, normalize_filters({"query": "north"}))
    summary = summarize(filtered, sales_dataset.fields)
    assert sum(c.count for c in summary.categories) == summary.kpis.total_rows == 2


def test_time_series_uses_date_and_second_field(sales_dataset):
    series = compute_time_series(sales_dataset.frame, sales_dataset.fields)
    assert series.value_field == "Sales"
    assert [(p.date, p.value) for p in series.points] == [("1/5/2024", 100.0), ("2/10/2024", 200.0)]


def test_time_series_requires_exact_date_field_name():
    ds = dataset_from_records([{"date": "2024-01-01", "Sales": "1"}])
    assert compute_time_series(ds.frame, ds.fields).points == []


def test_time_series_fallback_value_field_and_unparsable_dates():
    ds = dataset_from_records([{"Date": "someday"}])
    series = compute_time_series(ds.frame, ds.fields)
    assert series.value_field == "Value"
    assert [(p.date, p.value) for p in series.points] == [("someday", 0.0)]


@pytest.mark.parametrize("rows", [[], [{"Region": "x", "Sales": "1"}]])
def test_summarize_is_total(rows):
    ds = dataset_from_records(rows, ["Region", "Sales"])
    summary = summarize(ds.frame, ds.fields)
    assert summary.kpis.total_rows == len(rows)
    assert summary.time_series.points == []


def test_time_series_values_use_leading_number_of_second_field():
    ds = dataset_from_records([{"Region": "North", "Date": "2024-01-05"}])
    series = compute_time_series(ds.frame, ds.fields)
    assert series.value_field == "Date"
    assert [(p.date, p.value) for p in series.points] == [("1/5/2024", 2024.0)]


def test_kpis_sum_leading_numbers():
    ds = dataset_from_records([{"Sales": "150 units"}, {"Sales": "1,200"}])
    assert compute_kpis(ds.frame, ds.fields).total_sales == 151.0
