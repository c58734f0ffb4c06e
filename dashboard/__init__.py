"""Core (UI-agnostic) dashboard logic.

This package contains:
- ingestion (CSV / XLSX / XLS upload -> pandas)
- filter normalization and the filter engine
- KPI / chart aggregations (JSON-serializable payloads)
- chart helpers (Altair -> Vega-Lite spec dict)
- grid paging, CSV export and the session state that ties them together
"""
