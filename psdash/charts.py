from __future__ import annotations

from typing import Any, Dict, Mapping, Optional, Sequence

import altair as alt
import pandas as pd

from psdash.aggregate import unique_categories
from psdash.config import BRAND_COLOR_OVERRIDES
from psdash.months import from_key, month_label

alt.data_transformers.disable_max_rows()

_LIGHTNESS_STOPS = [45, 52, 58, 64]
_SATURATION = 65

METRIC_TITLES = {"value": "Value", "r12Value": "Rolling 12", "r12": "R12 Growth %"}


def to_vega_spec(chart: alt.Chart) -> Dict[str, Any]:
    """Convert an Altair chart into a Vega-Lite spec dict (JSON-serializable)."""
    return chart.to_dict()


def color_from_string(key: object) -> str:
    h = 0
    for ch in str(key if key is not None else ""):
        h = (h * 31 + ord(ch)) & 0xFFFFFFFF
    return f"hsl({h % 360}, {_SATURATION}%, {_LIGHTNESS_STOPS[h % len(_LIGHTNESS_STOPS)]}%)"


def category_colors(categories: Sequence[str], overrides: Optional[Mapping[str, str]] = None) -> Dict[str, str]:
    palette = {**(overrides or {}), **BRAND_COLOR_OVERRIDES}
    return {c: palette.get(c) or color_from_string(c) for c in unique_categories(categories)}


def series_chart(
    frame: pd.DataFrame,
    categories: Sequence[str],
    *,
    metric: str = "value",
    view_mode: str = "line",
    colors: Optional[Mapping[str, str]] = None,
    value_type: Optional[str] = None,
    title: Optional[str] = None,
) -> Optional[alt.Chart]:
    cats = [c for c in unique_categories(categories) if c in frame.columns]
    if frame.empty or not cats:
        return None

    # Categories become values of one column, so any category name is safe here.
    long_df = (
        pd.concat({c: frame[c] for c in cats}, names=["category", "key"])
        .rename("value")
        .reset_index()
        .dropna(subset=["value"])
    )
    if long_df.empty:
        return None
    long_df["label"] = [month_label(*from_key(k)) for k in long_df["key"]]
    long_df["month"] = pd.to_datetime(long_df["key"].astype(str), format="%Y%m")

    palette = category_colors(cats, colors)
    is_growth = metric == "r12"
    currency = value_type == "currency"
    y_format = ".1%" if is_growth else ("$~s" if currency else "~s")
    tip_format = ".2%" if is_growth else ("$,.0f" if currency else ",.0f")
    hover = alt.selection_point(fields=["category"], on="mouseover", empty="all")
    base = alt.Chart(long_df)
    mark = base.mark_bar() if view_mode == "bar" else base.mark_line(point={"filled": True, "size": 40})
    chart = (
        mark.encode(
            x=alt.X("yearmonth(month):T", title="Month", axis=alt.Axis(grid=False)),
            y=alt.Y(
                "value:Q",
                title=METRIC_TITLES.get(metric, "Value"),
                stack=None,
                axis=alt.Axis(format=y_format, gridDash=[4, 4], domain=False, ticks=False),
            ),
            color=alt.Color("category:N", title="Category", scale=alt.Scale(domain=cats, range=[palette[c] for c in cats])),
            opacity=alt.condition(hover, alt.value(1), alt.value(0.2)),
            tooltip=[
                alt.Tooltip("label:N", title="Month"),
                alt.Tooltip("category:N", title="Category"),
                alt.Tooltip("value:Q", title=METRIC_TITLES.get(metric, "Value"), format=tip_format),
            ],
        )
        .add_params(hover)
        .properties(height=320)
    )
    if title:
        chart = chart.properties(title=title)
    if is_growth:
        rule = alt.Chart(pd.DataFrame({"y": [0]})).mark_rule(strokeDash=[4, 4]).encode(y="y:Q")
        chart = alt.layer(chart, rule)
    return chart
