from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, FrozenSet, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

import pandas as pd

from psdash.months import clamp_key, key_from_str, str_from_key

ALL_BRANCHES = "__ALL__"

METRICS = ("value", "r12Value", "r12")
VIEW_MODES = ("line", "bar")

BranchSelection = Union[str, FrozenSet[str]]


@dataclass(frozen=True)
class DateWindow:
    start: Optional[int] = None
    end: Optional[int] = None

    @property
    def is_valid(self) -> bool:
        return self.start is not None and self.end is not None and self.start <= self.end

    def clamp(self, lo: int, hi: int) -> "DateWindow":
        start = clamp_key(self.start, lo, hi) if self.start is not None else None
        end = clamp_key(self.end, lo, hi) if self.end is not None else None
        return DateWindow(start, end)

    def as_strings(self) -> Tuple[Optional[str], Optional[str]]:
        return (
            str_from_key(self.start) if self.start is not None else None,
            str_from_key(self.end) if self.end is not None else None,
        )


@dataclass(frozen=True)
class RangeSelection:
    """Whether the caller has explicitly picked a date range (and which)."""

    touched: bool = False
    start: Optional[int] = None
    end: Optional[int] = None


@dataclass(frozen=True)
class DashboardFilters:
    dataset: Optional[str] = None
    metric: str = "value"
    view_mode: str = "line"
    selected_categories: List[str] = field(default_factory=list)
    selected_branches: BranchSelection = ALL_BRANCHES
    window: DateWindow = field(default_factory=DateWindow)
    range_selection: RangeSelection = field(default_factory=RangeSelection)


def is_all(selection: BranchSelection) -> bool:
    return isinstance(selection, str) and selection == ALL_BRANCHES


def normalize_branch_selection(values: Optional[Iterable[object]]) -> BranchSelection:
    """ALL for an empty pick or any pick that includes the ALL sentinel."""
    if values is None or isinstance(values, str):
        values = [values] if values else []
    picked = [str(v).strip() for v in values if v is not None and str(v).strip()]
    if not picked or ALL_BRANCHES in picked:
        return ALL_BRANCHES
    return frozenset(picked)


def matches_branch(fact: Mapping[str, Any], selection: BranchSelection) -> bool:
    if is_all(selection):
        return True
    branch = fact.get("Branch")
    if branch is None or (isinstance(branch, float) and pd.isna(branch)) or branch == "":
        return False
    return branch in selection


def in_window(key: int, window: Optional[DateWindow]) -> bool:
    if window is None or not window.is_valid:
        return True
    return window.start <= key <= window.end


def branch_mask(facts: pd.DataFrame, selection: BranchSelection) -> pd.Series:
    if is_all(selection):
        return pd.Series(True, index=facts.index)
    branches = facts["Branch"]
    return branches.notna() & branches.isin(list(selection))


def window_mask(keys: pd.Series, window: Optional[DateWindow]) -> pd.Series:
    if window is None or not window.is_valid:
        return pd.Series(True, index=keys.index)
    return (keys >= window.start) & (keys <= window.end)


# ---------------------------------------------------------------------------
# Region lookup (branch groupings are data, passed in by the caller)
# ---------------------------------------------------------------------------

def region_is_selected(selection: BranchSelection, region_branches: Sequence[str]) -> bool:
    if is_all(selection) or not region_branches:
        return False
    return all(b in selection for b in region_branches)


def toggle_region(selection: BranchSelection, region_branches: Sequence[str]) -> BranchSelection:
    """Add every branch of a region, or drop them all if the region is fully selected."""
    if not region_branches:
        return selection
    current = set() if is_all(selection) else set(selection)
    if region_is_selected(selection, region_branches):
        remaining = current - set(region_branches)
        return frozenset(remaining) if remaining else ALL_BRANCHES
    return frozenset(current | set(region_branches))


def _as_key(value: object) -> Optional[int]:
    if value is None or value == "":
        return None
    if isinstance(value, int) and not isinstance(value, bool):
        return value if 1 <= value % 100 <= 12 else None
    return key_from_str(str(value))


def normalize_filters(
    raw: dict,
    *,
    available_categories: Optional[List[str]] = None,
    bounds: Optional[Tuple[int, int]] = None,
) -> DashboardFilters:
    metric = raw.get("metric") or "value"
    if metric not in METRICS:
        metric = "value"
    view_mode = raw.get("view_mode") or "line"
    if view_mode not in VIEW_MODES:
        view_mode = "line"

    selected_categories = [str(x) for x in (raw.get("selected_categories") or []) if x is not None]
    if available_categories is not None:
        selected_categories = [c for c in selected_categories if c in available_categories]

    selected_branches = normalize_branch_selection(raw.get("selected_branches"))

    start = _as_key(raw.get("date_start"))
    end = _as_key(raw.get("date_end"))
    window = DateWindow(start, end)
    if bounds is not None:
        window = window.clamp(*bounds)

    touched = bool(raw.get("range_touched", start is not None or end is not None))
    range_selection = RangeSelection(touched=touched, start=window.start, end=window.end) if touched else RangeSelection()

    dataset = raw.get("dataset")
    return DashboardFilters(
        dataset=str(dataset) if dataset else None,
        metric=metric,
        view_mode=view_mode,
        selected_categories=selected_categories,
        selected_branches=selected_branches,
        window=window,
        range_selection=range_selection,
    )
