"""
Rolling-12 sums and rolling-12 year-over-year growth.

Windows are taken over array position in the monthly aggregate: "the previous
11 (or 23) months present", not calendar distance. A month with no matching
facts is absent from the aggregate, so a gap makes the window span more than
12 calendar months.
"""
from __future__ import annotations

from typing import Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from numpy.lib.stride_tricks import sliding_window_view

from psdash.aggregate import unique_categories
from psdash.config import ROLLING_MONTHS
from psdash.filters import DateWindow


def _category_values(monthly: pd.DataFrame, categories: Sequence[str]) -> np.ndarray:
    # Missing category cells count as zero inside a window.
    return monthly.reindex(columns=list(categories)).astype("float64").fillna(0.0).to_numpy()


def trailing_sums(values: np.ndarray, months: int = ROLLING_MONTHS) -> np.ndarray:
    """Sum over positions [i-months+1, i]; NaN where fewer than `months` entries exist."""
    out = np.full(values.shape, np.nan)
    if values.shape[0] >= months:
        out[months - 1:] = sliding_window_view(values, months, axis=0).sum(axis=-1)
    return out


def _by_month(monthly: pd.DataFrame, categories: Sequence[str], matrix: np.ndarray) -> pd.DataFrame:
    return pd.DataFrame(matrix, index=monthly.index, columns=list(categories), dtype="float64")


def clip_to_window(frame: pd.DataFrame, window: Optional[DateWindow]) -> pd.DataFrame:
    if window is None or not window.is_valid:
        return frame
    return frame[(frame.index >= window.start) & (frame.index <= window.end)]


def rolling_value(
    monthly: pd.DataFrame,
    categories: Sequence[str],
    window: Optional[DateWindow] = None,
    *,
    months: int = ROLLING_MONTHS,
) -> pd.DataFrame:
    cats = unique_categories(categories)
    current = trailing_sums(_category_values(monthly, cats), months)
    return clip_to_window(_by_month(monthly, cats, current), window)


def rolling_growth(
    monthly: pd.DataFrame,
    categories: Sequence[str],
    window: Optional[DateWindow] = None,
    *,
    months: int = ROLLING_MONTHS,
) -> pd.DataFrame:
    """(current12 - prior12) / prior12 as a fraction; NaN when prior12 is 0 or history is short."""
    cats = unique_categories(categories)
    current = trailing_sums(_category_values(monthly, cats), months)
    prior = np.full(current.shape, np.nan)
    if current.shape[0] > months:
        prior[months:] = current[:-months]
    usable = ~np.isnan(prior) & (prior != 0)
    growth = np.full(current.shape, np.nan)
    np.divide(current - prior, prior, out=growth, where=usable)
    return clip_to_window(_by_month(monthly, cats, growth), window)


def rolling_series(
    monthly: pd.DataFrame,
    categories: Sequence[str],
    metric: str,
    window: Optional[DateWindow] = None,
) -> pd.DataFrame:
    if metric == "r12":
        return rolling_growth(monthly, categories, window)
    return rolling_value(monthly, categories, window)


def fit_window(
    frame: pd.DataFrame,
    categories: Sequence[str],
    bounds: Optional[Tuple[int, int]] = None,
) -> Optional[DateWindow]:
    """Window from the first to the last month with any non-null selected value."""
    cats = [c for c in unique_categories(categories) if c in frame.columns]
    if frame.empty or not cats:
        return None
    values = frame[cats].astype("float64")
    has_any = np.isfinite(values.to_numpy()).any(axis=1)
    if not has_any.any():
        return None
    keys = frame.index[has_any]
    window = DateWindow(int(keys.min()), int(keys.max()))
    if bounds is not None:
        window = window.clamp(*bounds)
    return window
