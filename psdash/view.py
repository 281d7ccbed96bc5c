"""
View state derived from a freshly loaded fact frame: observed bounds, the
active date window, category and branch selections, and range pickers.

Range preservation is explicit: callers pass the RangeSelection they hold and
get a new one back. Nothing here keeps module-level state.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

import pandas as pd

from psdash.filters import (
    ALL_BRANCHES,
    BranchSelection,
    DateWindow,
    RangeSelection,
    is_all,
)
from psdash.months import clamp_key, shift_key, to_key
from psdash.normalize import categories_in_order, observed_bounds
from psdash.rolling import fit_window

Bounds = Tuple[int, int]


@dataclass(frozen=True)
class DatasetView:
    bounds: Bounds
    window: DateWindow
    years: List[int] = field(default_factory=list)
    categories: List[str] = field(default_factory=list)
    branches: List[str] = field(default_factory=list)
    selected_categories: List[str] = field(default_factory=list)
    selected_branches: BranchSelection = ALL_BRANCHES


def pick_default_categories(categories: Sequence[str], preferred: Optional[str] = None) -> List[str]:
    """The dataset's preferred total if present, else the first two categories."""
    if not categories:
        return []
    if preferred and preferred in categories:
        return [preferred]
    return list(categories[: min(2, len(categories))])


def restore_window(selection: RangeSelection, bounds: Bounds) -> DateWindow:
    lo, hi = bounds
    full = DateWindow(lo, hi)
    if not selection.touched or (selection.start is None and selection.end is None):
        return full
    start = clamp_key(selection.start if selection.start is not None else lo, lo, hi)
    end = clamp_key(selection.end if selection.end is not None else hi, lo, hi)
    if start <= end:
        return DateWindow(start, end)
    return full


def _restore_branches(previous: Optional[BranchSelection], branches: Sequence[str]) -> BranchSelection:
    if not previous or is_all(previous):
        return ALL_BRANCHES
    valid = frozenset(b for b in previous if b in branches)
    return valid or ALL_BRANCHES


def hydrate(
    facts: pd.DataFrame,
    selection: RangeSelection = RangeSelection(),
    *,
    previous_categories: Sequence[str] = (),
    previous_branches: Optional[BranchSelection] = None,
    default_category: Optional[str] = None,
) -> DatasetView:
    """Derive the view for a newly applied dataset.

    A range the caller never touched resets to the full observed span; a
    touched range is clamped into the new bounds and kept, unless clamping
    inverts it.
    """
    bounds = observed_bounds(facts)
    if bounds is None:
        raise ValueError("Cannot hydrate an empty fact frame")
    categories = categories_in_order(facts)
    preserved = [c for c in previous_categories if c in categories]
    branches = sorted({b for b in facts["Branch"].dropna().unique() if b}, key=str)
    return DatasetView(
        bounds=bounds,
        window=restore_window(selection, bounds),
        years=sorted(int(y) for y in facts["Year"].unique()),
        categories=categories,
        branches=branches,
        selected_categories=preserved or pick_default_categories(categories, default_category),
        selected_branches=_restore_branches(previous_branches, branches),
    )


# ---------------------------------------------------------------------------
# Range pickers: each returns the new window and a touched RangeSelection
# ---------------------------------------------------------------------------

def _touched(window: DateWindow) -> Tuple[DateWindow, RangeSelection]:
    return window, RangeSelection(touched=True, start=window.start, end=window.end)


def pick_start(key: int, current: DateWindow, bounds: Bounds) -> Tuple[DateWindow, RangeSelection]:
    start = clamp_key(key, *bounds)
    end = current.end
    if end is not None and start > end:
        end = start
    return _touched(DateWindow(start, end if end is not None else start))


def pick_end(key: int, current: DateWindow, bounds: Bounds) -> Tuple[DateWindow, RangeSelection]:
    end = clamp_key(key, *bounds)
    start = current.start
    if start is not None and end < start:
        start = end
    return _touched(DateWindow(start if start is not None else end, end))


def pick_year(year: int, bounds: Bounds) -> Tuple[DateWindow, RangeSelection]:
    return _touched(DateWindow(clamp_key(to_key(year, 1), *bounds), clamp_key(to_key(year, 12), *bounds)))


def preset_all(bounds: Bounds) -> Tuple[DateWindow, RangeSelection]:
    return _touched(DateWindow(*bounds))


def preset_last_n(n: int, bounds: Bounds) -> Tuple[DateWindow, RangeSelection]:
    lo, hi = bounds
    return _touched(DateWindow(clamp_key(shift_key(hi, -int(n) + 1), lo, hi), hi))


def preset_ytd(bounds: Bounds) -> Tuple[DateWindow, RangeSelection]:
    lo, hi = bounds
    return _touched(DateWindow(clamp_key(to_key(hi // 100, 1), lo, hi), hi))


def auto_fit_window(
    metric: str,
    series: pd.DataFrame,
    categories: Sequence[str],
    bounds: Bounds,
    selection: RangeSelection,
) -> Optional[DateWindow]:
    """Window fitted to available rolling data, or None when the caller owns the range."""
    if metric == "value" or selection.touched:
        return None
    return fit_window(series, categories, bounds)


def summary_stats(rows: Iterable[Dict[str, Any]], categories: Sequence[str]) -> Dict[str, Dict[str, float]]:
    """Latest and average of the finite values per category."""
    rows = list(rows)
    stats: Dict[str, Dict[str, float]] = {}
    for cat in categories:
        vals = [
            float(r[cat])
            for r in rows
            if isinstance(r.get(cat), (int, float)) and not isinstance(r.get(cat), bool) and math.isfinite(r[cat])
        ]
        if not vals:
            continue
        stats[cat] = {"latest": vals[-1], "avg": sum(vals) / len(vals)}
    return stats
