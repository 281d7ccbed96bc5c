from __future__ import annotations

from dataclasses import asdict, replace
from typing import Any, Dict, Optional

import pandas as pd

from psdash.aggregate import monthly_aggregate, series_records, value_series
from psdash.charts import series_chart, to_vega_spec
from psdash.export import EXPORT_FILENAMES, series_to_csv
from psdash.filters import DashboardFilters, DateWindow, is_all, normalize_filters
from psdash.normalize import empty_facts
from psdash.rolling import clip_to_window, rolling_growth, rolling_value
from psdash.summary import branch_summary
from psdash.view import auto_fit_window, pick_default_categories, summary_stats


def filters_payload(filters: DashboardFilters) -> Dict[str, Any]:
    payload = asdict(filters)
    branches = filters.selected_branches
    payload["selected_branches"] = [branches] if is_all(branches) else sorted(branches)
    payload["date_start"], payload["date_end"] = filters.window.as_strings()
    return payload


def prepare_context(filters: dict | DashboardFilters, data_ctx: Dict[str, object]) -> Dict[str, object]:
    """Every derived view for one filter combination, recomputed from the facts."""
    facts: pd.DataFrame = data_ctx.get("facts")
    if facts is None:
        facts = empty_facts()
    bounds = data_ctx.get("bounds")
    entry = data_ctx.get("dataset")
    available = list(data_ctx.get("categories") or [])

    filt = filters if isinstance(filters, DashboardFilters) else normalize_filters(filters, available_categories=available, bounds=bounds)
    categories = filt.selected_categories or pick_default_categories(available, getattr(entry, "default_category", None))
    window = filt.window
    if not window.is_valid and bounds is not None:
        window = DateWindow(*bounds)
    filt = replace(filt, selected_categories=list(categories), window=window)

    monthly = monthly_aggregate(facts, filt.selected_branches)
    r12_value = rolling_value(monthly, categories)
    r12_growth = rolling_growth(monthly, categories)

    if filt.metric != "value" and bounds is not None:
        full = r12_growth if filt.metric == "r12" else r12_value
        fitted = auto_fit_window(filt.metric, full, categories, bounds, filt.range_selection)
        if fitted is not None:
            filt = replace(filt, window=fitted)

    values = value_series(facts, filt.selected_branches, filt.window, categories)
    r12_value = clip_to_window(r12_value, filt.window)
    r12_growth = clip_to_window(r12_growth, filt.window)
    active = {"value": values, "r12Value": r12_value, "r12": r12_growth}[filt.metric]

    return {
        "filters": filt,
        "dataset": entry,
        "bounds": bounds,
        "categories": categories,
        "monthly": monthly,
        "value_series": values,
        "rolling_value": r12_value,
        "rolling_growth": r12_growth,
        "series": active,
        "summary": branch_summary(facts, filt.selected_branches, filt.window, categories),
    }


def _series_rows(ctx: Dict[str, Any]):
    filt: DashboardFilters = ctx["filters"]
    return series_records(ctx["series"], ctx["categories"], keep_nulls=filt.metric != "value")


def compute_trend(filters: DashboardFilters, ctx: Dict[str, Any]) -> Dict[str, Any]:
    filt: DashboardFilters = ctx.get("filters", filters)
    entry = ctx.get("dataset")
    rows = _series_rows(ctx)
    chart = series_chart(
        ctx["series"],
        ctx["categories"],
        metric=filt.metric,
        view_mode=filt.view_mode,
        colors=getattr(entry, "colors", None),
        value_type=getattr(entry, "value_type", None),
    )
    bounds = ctx.get("bounds")
    return {
        "filters": filters_payload(filt),
        "dataset": asdict(entry) if entry is not None else None,
        "bounds": list(bounds) if bounds else None,
        "series": rows,
        "summary_stats": summary_stats(rows, ctx["categories"]),
        "charts": {"trend": to_vega_spec(chart) if chart is not None else None},
    }


def compute_branch_summary(filters: DashboardFilters, ctx: Dict[str, Any]) -> Dict[str, Any]:
    filt: DashboardFilters = ctx.get("filters", filters)
    return {"filters": filters_payload(filt), **ctx["summary"]}


def compute_export(filters: DashboardFilters, ctx: Dict[str, Any]) -> Dict[str, str]:
    filt: DashboardFilters = ctx.get("filters", filters)
    return {
        "filename": EXPORT_FILENAMES.get(filt.metric, "dashboard_view.csv"),
        "content": series_to_csv(_series_rows(ctx), ctx["categories"]),
    }
