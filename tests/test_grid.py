from __future__ import annotations

from dashboard.data import dataset_from_records, ingest
from dashboard.filters import apply_filters, normalize_filters
from dashboard.grid import EXPORT_FILENAME, PAGE_SIZE, export_csv, grid_page, sort_rows


def _numbered(n: int):
    return dataset_from_records([{"Name": f"row{i}", "Amount": str(i)} for i in range(n)])


def test_pages_hold_ten_rows_and_clamp():
    ds = _numbered(25)
    first = grid_page(ds.frame, ds.fields, 1)
    assert PAGE_SIZE == 10
    assert first.page_count == 3
    assert len(first.rows) == 10
    assert first.rows[0] == {"Name": "row0", "Amount": "0"}
    last = grid_page(ds.frame, ds.fields, 99)
    assert last.page == 3
    assert len(last.rows) == 5
    assert grid_page(ds.frame, ds.fields, 0).page == 1


def test_empty_grid_has_one_page():
    ds = dataset_from_records([], ["a"])
    page = grid_page(ds.frame, ds.fields, 1)
    assert (page.page, page.page_count, page.total_rows, page.rows) == (1, 1, 0, [])


def test_numeric_fields_sort_by_value():
    ds = dataset_from_records([{"Amount": "100"}, {"Amount": "20"}, {"Amount": "3"}])
    out = sort_rows(ds.frame, ds.fields, "Amount")
    assert out["Amount"].tolist() == ["3", "20", "100"]
    out = sort_rows(ds.frame, ds.fields, "Amount", descending=True)
    assert out["Amount"].tolist() == ["100", "20", "3"]


def test_text_fields_sort_case_insensitively():
    ds = dataset_from_records([{"Name": "beta"}, {"Name": "Alpha"}, {"Name": "gamma"}])
    out = sort_rows(ds.frame, ds.fields, "Name")
    assert out["Name"].tolist() == ["Alpha", "beta", "gamma"]


def test_unknown_sort_column_keeps_order():
    ds = _numbered(3)
    assert sort_rows(ds.frame, ds.fields, "Missing").equals(ds.frame)


def test_export_contains_only_filtered_rows(sales_csv):
    ds = ingest("sales.csv", sales_csv)
    filtered = apply_filters(ds.frame, normalize_filters({"query": "south"}))
    lines = export_csv(filtered, ds.fields).decode("utf-8").splitlines()
    assert lines == ["Region,Sales,Date", "South,200,2024-02-10"]
    assert EXPORT_FILENAME == "dashboard-export.csv"


def test_export_follows_sort_order():
    ds = dataset_from_records([{"Name": "a", "Amount": "5"}, {"Name": "b", "Amount": "40"}, {"Name": "c", "Amount": "12"}])
    lines = export_csv(ds.frame, ds.fields, sort_by="Amount", descending=True).decode("utf-8").splitlines()
    assert lines == ["Name,Amount", "b,40", "c,12", "a,5"]
