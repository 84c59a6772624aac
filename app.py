import logging
import os
from contextlib import contextmanager
from typing import Optional

import pandas as pd
import streamlit as st

from bikeshare.charts import to_altair
from bikeshare.data import CATEGORY_LABELS, category_label, load_default_dataset
from bikeshare.errors import DatasetError, SelectionError
from bikeshare.filters import PLOT_TYPES, PlotType
from bikeshare.session import PLOT_BUILDER, SCATTER, ExplorerSession, RenderResult

logging.basicConfig(level=os.environ.get("BIKESHARE_LOG_LEVEL", "INFO").upper())
logger = logging.getLogger(__name__)


# ---------- UI / layout helpers ----------
def inject_base_styles():
    if st.session_state.get("_base_css_injected"):
        return
    st.markdown(
        """
        <style>
        .app-top-bar {padding: 6px 0 4px;border-bottom: 1px solid #e5e7eb;margin-bottom: 10px;}
        .app-top-bar .breadcrumb {color: #6b7280;font-size: 0.9rem;margin-bottom: 2px;}
        .app-top-bar .page-title {font-size: 1.4rem;font-weight: 700;color: #111827;}
        .card {border: 1px solid #e5e7eb;border-radius: 12px;padding: 16px;background: #ffffff;
               box-shadow: 0 1px 2px rgba(0,0,0,0.04); margin-bottom: 12px;}
        .card-title {font-weight: 600;font-size: 1.0rem;color: #111827;margin-bottom: 8px;}
        .chip-row {display: flex;flex-wrap: wrap;gap: 6px;margin-top: 6px;}
        .chip {background: #f3f4f6;border: 1px solid #e5e7eb;border-radius: 14px;padding: 4px 10px;font-size: 0.85rem;color: #374151;}
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


def format_selection_summary(result: RenderResult) -> str:
    sel = result.selection
    chips = [
        f"X: {sel.x_variable}",
        f"Y: {sel.y_variable}",
        f"Dates: {sel.date_range.start:%Y-%m-%d} – {sel.date_range.end:%Y-%m-%d}",
        f"Days: {result.row_count}",
    ]
    if result.variant == PLOT_BUILDER:
        chips.insert(0, f"Plot: {sel.plot_type.value}")
    return "".join([f"<span class='chip'>{txt}</span>" for txt in chips])


def render_page_header(title: str, breadcrumb: str, summary_html: str, export_df: Optional[pd.DataFrame] = None, export_name: str = "export.csv"):
    inject_base_styles()
    c1, c2 = st.columns([8, 2])
    with c1:
        st.markdown(
            f"<div class='app-top-bar'><div class='breadcrumb'>{breadcrumb}</div><div class='page-title'>{title}</div></div>",
            unsafe_allow_html=True,
        )
    with c2:
        if export_df is not None and not export_df.empty:
            st.download_button(
                "Export CSV",
                data=export_df.to_csv(index=False).encode("utf-8"),
                file_name=export_name,
                mime="text/csv",
            )
    st.markdown(f"<div class='chip-row'>{summary_html}</div>", unsafe_allow_html=True)


def get_session(variant: str) -> ExplorerSession:
    """One engine per browser session and dashboard variant."""
    key = f"_explorer_{variant}"
    session = st.session_state.get(key)
    if session is None or session.dataset is not dataset:
        session = ExplorerSession(dataset, variant=variant)
        st.session_state[key] = session
    return session


# ---------- UI setup ----------
st.set_page_config(page_title="BikeShare Data Explorer", layout="wide")
inject_base_styles()

try:
    dataset = load_default_dataset()
except DatasetError as exc:
    logger.error("dataset load failed: %s", exc)
    st.error(f"Could not load the BikeShare dataset: {exc}")
    st.stop()

columns = dataset.columns
first_date, last_date = dataset.date_span

with st.sidebar:
    st.markdown("### Navigate")
    nav_choice = st.radio("Navigate", ["Scatter & Summary", "Plot Builder"], index=0)
    st.markdown("---")


def render_scatter_page():
    session = get_session(SCATTER)
    sel = session.selection
    with st.sidebar:
        st.markdown("### Variables")
        x_var = st.selectbox("Select X variable:", columns, index=columns.index(sel.x_variable), key="scatter_x")
        y_var = st.selectbox("Select Y variable:", columns, index=columns.index(sel.y_variable), key="scatter_y")
        picked = st.date_input(
            "Select date range:",
            value=(sel.date_range.start, sel.date_range.end),
            min_value=first_date,
            max_value=last_date,
            key="scatter_dates",
        )
    # The date widget returns a single date while the user is mid-selection.
    start, end = (picked[0], picked[1]) if isinstance(picked, (list, tuple)) and len(picked) == 2 else (sel.date_range.start, sel.date_range.end)
    session.update(x_variable=x_var, y_variable=y_var, date_range=(start, end))
    result = session.render()
    view = session.compute_filtered_view()

    st.title("BikeShare Data Exploratory Data Analysis")
    render_page_header("Scatter & Summary", "Home / Scatter & Summary", format_selection_summary(result), export_df=view, export_name="bikeshare_filtered.csv")
    with card(result.chart.title):
        if view.empty:
            st.info("No days fall inside the selected date range.")
        st.altair_chart(to_altair(result.chart, view), use_container_width=True)
    with card("Summary statistics (cnt)"):
        if not result.summary.has_data:
            st.warning("No data for the selected date range.")
        elif result.summary.status == "insufficient":
            st.caption("A single day is selected; standard deviation needs at least two.")
        st.table(result.summary.to_table())


def render_plot_builder_page():
    session = get_session(PLOT_BUILDER)
    sel = session.selection
    with st.sidebar:
        st.markdown("### Plot")
        plot_type = st.selectbox("Plot-type:", PLOT_TYPES, index=PLOT_TYPES.index(sel.plot_type.value), key="builder_plot")
        x_var = st.selectbox("X-variable:", columns, index=columns.index(sel.x_variable), key="builder_x")
        needs_y = PlotType.parse(plot_type) in (PlotType.SCATTERPLOT, PlotType.LINE)
        y_var = st.selectbox("Y-variable:", columns, index=columns.index(sel.y_variable), key="builder_y", disabled=not needs_y)
    try:
        session.update(plot_type=plot_type, x_variable=x_var, y_variable=y_var)
    except SelectionError as exc:
        st.warning(str(exc))
    result = session.render()
    view = session.compute_filtered_view()

    st.title("Exploration of BikeShare Data")
    render_page_header("Plot Builder", "Home / Plot Builder", format_selection_summary(result))
    with card(result.chart.title):
        st.altair_chart(to_altair(result.chart, view), use_container_width=True)
    info = {c.name: c for c in dataset.column_info}[result.chart.x]
    st.caption(f"{info.label} · {info.kind}")
    if info.name in CATEGORY_LABELS and not view.empty:
        codes = sorted(view[info.name].dropna().unique())
        legend = ", ".join(f"{code} = {category_label(info.name, code)}" for code in codes)
        st.caption(f"Codes: {legend}")


if nav_choice == "Scatter & Summary":
    render_scatter_page()
else:
    render_plot_builder_page()
