import streamlit as st
import streamlit.components.v1 as components
import pandas as pd
from contextlib import contextmanager
from typing import Dict, List, Optional

from dashboard.charts import area_chart, bar_chart, line_chart, pie_chart
from dashboard.data import FieldDescriptor, IngestError
from dashboard.embed import EmbedUnavailable, embed_html, fetch_embed_config
from dashboard.grid import EXPORT_FILENAME, PAGE_SIZE, export_csv, grid_page
from dashboard.metrics import KpiSummary
from dashboard.session import DashboardSession, SessionSnapshot

EMBED_HEIGHT = 600


# ---------- UI / layout helpers ----------
def inject_base_styles():
    if st.session_state.get("_base_css_injected"):
        return
    st.markdown(
        """
        <style>
        .app-top-bar {padding: 6px 0 4px;border-bottom: 1px solid #e5e7eb;margin-bottom: 10px;}
        .app-top-bar .page-title {font-size: 1.6rem;font-weight: 700;color: #111827;}
        .app-top-bar .subtitle {color: #6b7280;font-size: 0.9rem;margin-top: 2px;}
        .card {border: 1px solid #e5e7eb;border-radius: 12px;padding: 16px;background: #ffffff;
               box-shadow: 0 1px 2px rgba(0,0,0,0.04); margin-bottom: 12px;}
        .card-title {font-weight: 600;font-size: 1.0rem;color: #111827;margin-bottom: 8px;}
        .kpi {text-align: center;}
        .kpi .label {font-size: 1rem;color: #6b7280;}
        .kpi .value {font-size: 1.8rem;font-weight: 700;}
        </style>
        """,
        unsafe_allow_html=True,
    )
    st.session_state["_base_css_injected"] = True


@contextmanager
def card(title: str):
    container = st.container()
    container.markdown(f"<div class='card'><div class='card-title'>{title}</div>", unsafe_allow_html=True)
    body = container.container()
    with body:
        yield body
    container.markdown("</div>", unsafe_allow_html=True)


def format_currency(value: float, decimals: int = 2) -> str:
    return f"${value:,.{decimals}f}"


def get_session() -> DashboardSession:
    if "dashboard_session" not in st.session_state:
        st.session_state["dashboard_session"] = DashboardSession()
        st.session_state["widget_gen"] = 0
    return st.session_state["dashboard_session"]


def widget_key(name: str) -> str:
    # Reset bumps the generation so every filter widget starts from its default.
    return f"{name}_{st.session_state.get('widget_gen', 0)}"


# ---------- callbacks ----------
def on_reset():
    get_session().reset()
    st.session_state["widget_gen"] = st.session_state.get("widget_gen", 0) + 1
    for key in ("last_upload_id", "upload_error", "embed_config", "embed_error"):
        st.session_state.pop(key, None)


def on_toggle_embed():
    visible = get_session().toggle_embed()
    if not visible:
        st.session_state.pop("embed_config", None)
        st.session_state.pop("embed_error", None)


# ---------- sections ----------
def handle_upload(session: DashboardSession, uploaded) -> None:
    if uploaded is None:
        return
    upload_id = getattr(uploaded, "file_id", None) or (uploaded.name, uploaded.size)
    if st.session_state.get("last_upload_id") == upload_id:
        return
    st.session_state["last_upload_id"] = upload_id
    st.session_state.pop("upload_error", None)
    try:
        session.ingest(uploaded.name, uploaded.getvalue())
    except IngestError as exc:
        st.session_state["upload_error"] = str(exc)


def render_controls(session: DashboardSession):
    c1, c2, c3 = st.columns([4, 3, 5])
    with c1:
        uploaded = st.file_uploader("Upload File", key=widget_key("upload"), help="CSV, XLSX or XLS")
        handle_upload(session, uploaded)
    with c3:
        query = st.text_input("Search", key=widget_key("query"), placeholder="Search all data...")
    if st.session_state.get("upload_error"):
        st.error(st.session_state["upload_error"])
    return query, c2


def grid_sort_column() -> Optional[str]:
    # Export follows the grid's sort, which lives in widget state.
    choice = st.session_state.get(widget_key("sort_by"))
    return None if choice in (None, "(none)") else choice


def render_actions(container, session: DashboardSession, snap: SessionSnapshot):
    with container:
        st.download_button(
            "Export",
            data=export_csv(
                snap.filtered,
                snap.dataset.fields,
                sort_by=grid_sort_column(),
                descending=bool(st.session_state.get(widget_key("sort_desc"))),
            ),
            file_name=EXPORT_FILENAME,
            mime="text/csv",
            disabled=snap.dataset.is_empty,
            use_container_width=True,
        )
        st.button("Reset", on_click=on_reset, use_container_width=True)
        st.button(
            "Hide Power BI" if session.embed_visible else "Show Power BI",
            on_click=on_toggle_embed,
            use_container_width=True,
        )


def render_filter_controls(fields: List[FieldDescriptor]) -> Dict[str, object]:
    with card("Advanced Filters"):
        st.markdown("**Date Range**")
        d1, d2 = st.columns(2)
        start = d1.date_input("Start", value=None, key=widget_key("date_start"))
        end = d2.date_input("End", value=None, key=widget_key("date_end"))

        bounds: Dict[str, Dict[str, Optional[str]]] = {}
        numeric_fields = [f for f in fields if f.numeric]
        cols = st.columns(3) if numeric_fields else []
        for i, f in enumerate(numeric_fields):
            with cols[i % 3]:
                st.markdown(f"**{f.name}**")
                lo, hi = st.columns(2)
                bounds[f.name] = {
                    "min": lo.text_input("Min", key=widget_key(f"min_{f.name}"), placeholder="Min"),
                    "max": hi.text_input("Max", key=widget_key(f"max_{f.name}"), placeholder="Max"),
                }
    return {"start": start, "end": end, "bounds": bounds}


def render_kpis(kpis: KpiSummary):
    if kpis.total_rows == 0:
        return
    cards = [
        ("Total Records", f"{kpis.total_rows:,}", "#111827"),
        ("Total Sales", format_currency(kpis.total_sales), "#2563eb"),
        ("Avg per Record", format_currency(kpis.avg_sales), "#16a34a"),
    ]
    cols = st.columns(3)
    for col, (label, value, color) in zip(cols, cards):
        col.markdown(
            f"<div class='card kpi'><div class='label'>{label}</div>"
            f"<div class='value' style='color:{color};'>{value}</div></div>",
            unsafe_allow_html=True,
        )


def render_charts(snap: SessionSnapshot):
    summary = snap.summary
    top = st.columns(2)
    with top[0]:
        with card("Distribution"):
            st.altair_chart(bar_chart(summary.categories), use_container_width=True)
    with top[1]:
        with card("Breakdown"):
            st.altair_chart(pie_chart(summary.categories), use_container_width=True)
    bottom = st.columns(2)
    with bottom[0]:
        with card("Trend Over Time"):
            st.altair_chart(line_chart(summary.time_series), use_container_width=True)
    with bottom[1]:
        with card("Area Trend"):
            st.altair_chart(area_chart(summary.time_series), use_container_width=True)


def render_embed(session: DashboardSession):
    if not session.embed_visible:
        return
    with card("Power BI Report"):
        if "embed_config" not in st.session_state and "embed_error" not in st.session_state:
            with st.spinner("Loading Power BI..."):
                try:
                    st.session_state["embed_config"] = fetch_embed_config()
                except EmbedUnavailable as exc:
                    st.session_state["embed_error"] = exc
        err: Optional[EmbedUnavailable] = st.session_state.get("embed_error")
        if err is not None:
            st.error(err.error)
            if err.details:
                st.caption(err.details)
            return
        components.html(embed_html(st.session_state["embed_config"], height=EMBED_HEIGHT), height=EMBED_HEIGHT + 20)


def render_grid(snap: SessionSnapshot):
    if snap.filtered.empty:
        return
    fields = snap.dataset.fields
    with card("Data"):
        g1, g2, g3 = st.columns([4, 2, 2])
        g1.selectbox("Sort by", ["(none)"] + [f.name for f in fields], key=widget_key("sort_by"))
        descending = g2.checkbox("Descending", key=widget_key("sort_desc"))
        page_count = max(1, -(-len(snap.filtered) // PAGE_SIZE))
        page = g3.number_input("Page", min_value=1, max_value=page_count, value=1, step=1, key=widget_key(f"page_{page_count}"))
        result = grid_page(
            snap.filtered,
            fields,
            int(page),
            sort_by=grid_sort_column(),
            descending=descending,
        )
        st.dataframe(pd.DataFrame(result.rows, columns=[f.name for f in fields]), hide_index=True, use_container_width=True)
        st.caption(f"Page {result.page} of {result.page_count} · {result.total_rows:,} rows")


# ---------- UI setup ----------
st.set_page_config(page_title="Analytics Dashboard", layout="wide")
inject_base_styles()
st.markdown(
    "<div class='app-top-bar'><div class='page-title'>Analytics Dashboard</div>"
    "<div class='subtitle'>Upload data, explore insights, and visualize trends.</div></div>",
    unsafe_allow_html=True,
)

session = get_session()
query, actions_slot = render_controls(session)

kpi_slot = st.container()
selection = render_filter_controls(session.fields)

# Bounds for fields not shown (e.g. from a previous upload) are kept.
numeric_bounds = dict(session.filters.numeric_bounds)
numeric_bounds.update(selection["bounds"])
session.set_filters(
    {
        "query": query,
        "date_range": {"start": selection["start"], "end": selection["end"]},
        "numeric_bounds": numeric_bounds,
    }
)

snap = session.snapshot()
render_actions(actions_slot, session, snap)
with kpi_slot:
    render_kpis(snap.summary.kpis)
render_charts(snap)
render_embed(session)
render_grid(snap)
