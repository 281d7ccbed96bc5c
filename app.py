import asyncio
import logging
from contextlib import contextmanager
from dataclasses import replace
from typing import Optional

import altair as alt
import pandas as pd
import streamlit as st

from psdash.config import REGIONS, get_settings
from psdash.data import dataset_context, find_dataset, list_datasets
from psdash.filters import ALL_BRANCHES, is_all, region_is_selected
from psdash.formatting import format_file_size, format_pct, format_value
from psdash.metrics_trend import compute_export, prepare_context
from psdash.months import key_from_str, shift_key, str_from_key
from psdash.session import DatasetSession
from psdash.summary import summary_frame
from psdash.charts import series_chart
from psdash.aggregate import series_records
from psdash import view as v

logging.basicConfig(level=get_settings().log_level)
alt.data_transformers.disable_max_rows()
# ---------- UI / layout helpers ----------
def inject_base_styles():
    if st.session_state.get("_base_css_injected"):
        return
    st.markdown(
        """
        <style>
        .card {border: 1px solid #e5e7eb;border-radius: 12px;padding: 16px;background: #ffffff;
               box-shadow: 0 1px 2px rgba(0,0,0,0.04); margin-bottom: 12px;}
        .card-title {font-weight: 600;font-size: 1.0rem;color: #111827;}
        .dataset-meta {color: #6b7280;font-size: 0.85rem;}
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


def get_session() -> DatasetSession:
    if "psdash_session" not in st.session_state:
        st.session_state["psdash_session"] = DatasetSession()
    return st.session_state["psdash_session"]


def month_options(bounds) -> list:
    lo, hi = bounds
    out, key = [], lo
    while key <= hi:
        out.append(str_from_key(key))
        key = shift_key(key, 1)
    return out


# ---------- UI setup ----------
st.set_page_config(page_title="Product Support Dashboard", layout="wide")
inject_base_styles()
st.title("Product Support Dashboard")

session = get_session()
datasets = list_datasets()

with st.sidebar:
    st.markdown("### Dataset")
    labels = {d.id: d.label for d in datasets}
    current_id = session.entry.id if session.entry else (find_dataset(None, datasets).id if datasets else None)
    dataset_id = st.selectbox(
        "Dataset",
        options=list(labels),
        format_func=lambda i: labels.get(i, i),
        index=list(labels).index(current_id) if current_id in labels else 0,
    ) if datasets else None
    entry = find_dataset(dataset_id, datasets)
    if entry is not None and st.session_state.get("_dataset_pick") != entry.id:
        st.session_state["_dataset_pick"] = entry.id
        asyncio.run(session.switch(entry))
    if entry is not None:
        meta = [t for t in [format_file_size(entry.size) and f"Size: {format_file_size(entry.size)}", entry.last_modified and f"Updated: {entry.last_modified}"] if t]
        if meta:
            st.markdown(f"<div class='dataset-meta'>{' • '.join(meta)}</div>", unsafe_allow_html=True)

    upload = st.file_uploader("CSV Upload", type=["csv"])
    if upload is not None and st.session_state.get("_uploaded") != upload.name:
        session.load_text(upload.getvalue().decode("utf-8-sig"))
        st.session_state["_uploaded"] = upload.name

st.caption(
    "Upload your CSV"
    + (f" ({session.entry.instructions})" if session.entry and session.entry.instructions else "")
    + ". Values for selected branches are summed."
)

if session.error:
    st.error(session.error)
if session.view is None or session.facts is None:
    st.info("No dataset loaded yet.")
    st.stop()

view = session.view
bounds = view.bounds

with st.sidebar:
    st.markdown("---")
    st.markdown("### Filters")
    metric = st.radio(
        "Metric",
        ["value", "r12Value", "r12"],
        index=["value", "r12Value", "r12"].index(session.metric),
        format_func={"value": "Value", "r12Value": "Rolling 12 Value", "r12": "R12 Growth %"}.get,
    )
    session.metric = metric
    view_mode = st.radio("View", ["line", "bar"], horizontal=True)

    picked = st.multiselect("Categories", options=view.categories, default=view.selected_categories, key=f"cats_{session.entry.id if session.entry else 'upload'}")
    session.select_categories(picked)

    st.markdown("**Regions**")
    region_cols = st.columns(len(REGIONS) + 1)
    if region_cols[0].button("All (sum)", type="primary" if is_all(view.selected_branches) else "secondary"):
        session.select_branches([ALL_BRANCHES])
    for col, (name, members) in zip(region_cols[1:], REGIONS.items()):
        if col.button(name, type="primary" if region_is_selected(view.selected_branches, members) else "secondary"):
            session.toggle_region(members)
    current_branches = [] if is_all(session.view.selected_branches) else sorted(session.view.selected_branches)
    branches = st.multiselect("Branches", options=view.branches, default=current_branches, key=f"branches_{'-'.join(current_branches)}")
    if sorted(branches) != current_branches:
        session.select_branches(branches)

    st.markdown("**Date range**")
    options = month_options(bounds)
    start_s, end_s = session.view.window.as_strings()
    start_pick = st.selectbox("Start", options, index=options.index(start_s) if start_s in options else 0, key=f"start_{start_s}")
    end_pick = st.selectbox("End", options, index=options.index(end_s) if end_s in options else len(options) - 1, key=f"end_{end_s}")
    if start_pick != start_s:
        session.set_range(*v.pick_start(key_from_str(start_pick), session.view.window, bounds))
    if end_pick != end_s:
        session.set_range(*v.pick_end(key_from_str(end_pick), session.view.window, bounds))

    year_pick = st.selectbox("Year", ["all"] + [str(y) for y in view.years])
    if year_pick != "all" and st.session_state.get("_year_pick") != year_pick:
        session.set_range(*v.pick_year(int(year_pick), bounds))
    st.session_state["_year_pick"] = year_pick

    p1, p2, p3, p4 = st.columns(4)
    if p1.button("All"):
        session.set_range(*v.preset_all(bounds))
    if p2.button("Last 12"):
        session.set_range(*v.preset_last_n(12, bounds))
    if p3.button("Last 24"):
        session.set_range(*v.preset_last_n(24, bounds))
    if p4.button("YTD"):
        session.set_range(*v.preset_ytd(bounds))

filters = replace(session.filters(), view_mode=view_mode)
data_ctx = dataset_context(session.facts, session.entry)
ctx = prepare_context(filters, data_ctx)
session.auto_fit(ctx["filters"].window)

entry = session.entry
categories = ctx["categories"]
value_type = entry.value_type if entry else None
fmt = format_pct if metric == "r12" else (lambda x: format_value(x, value_type))
rows = series_records(ctx["series"], categories, keep_nulls=metric != "value")

title = {"r12": "R12 Growth %", "r12Value": f"Rolling 12 {entry.label if entry else ''}"}.get(metric, entry.label if entry else "Upload")
with card(title):
    chart = series_chart(
        ctx["series"],
        categories,
        metric=metric,
        view_mode=view_mode,
        colors=entry.colors if entry else None,
        value_type=value_type,
    )
    if chart is None:
        st.info("No data for the selected filters.")
    else:
        st.altair_chart(chart, use_container_width=True)
    export = compute_export(filters, ctx)
    st.download_button("Export View (CSV)", data=export["content"].encode("utf-8"), file_name=export["filename"], mime="text/csv")

stats = v.summary_stats(rows, categories)
if stats:
    cols = st.columns(len(stats))
    for col, (cat, s) in zip(cols, stats.items()):
        col.metric(cat, fmt(s["latest"]), help=f"Avg: {fmt(s['avg'])}")

with card("Branch Summary"):
    table: Optional[pd.DataFrame] = summary_frame(ctx["summary"], categories)
    if table is None or table.empty:
        st.info("No branch totals for the selected filters.")
    else:
        display = table.astype(object)
        if "Total" in categories:
            display.columns = [*display.columns[:-1], "Branch Total"]
        for pos in range(1, display.shape[1]):
            display.iloc[:, pos] = display.iloc[:, pos].map(lambda x: format_value(x, value_type))
        st.dataframe(display, hide_index=True, use_container_width=True)
