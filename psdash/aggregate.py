from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional, Sequence

import pandas as pd

from psdash.filters import BranchSelection, DateWindow, branch_mask, window_mask
from psdash.months import from_key, month_label
from psdash.normalize import fact_keys


def unique_categories(categories: Iterable[str]) -> List[str]:
    seen: List[str] = []
    for c in categories:
        if c and c not in seen:
            seen.append(c)
    return seen


def month_index(keys: Iterable[int]) -> pd.Index:
    """Distinct MonthKeys, ascending."""
    return pd.Index(sorted({int(k) for k in keys}), name="key", dtype="int64")


def _category_sums(facts: pd.DataFrame, keys: pd.Series) -> pd.DataFrame:
    # Columns are category names only; Year/Month/label come from the index.
    if facts.empty:
        return pd.DataFrame(index=month_index([]))
    sums = facts.assign(_key=keys).groupby(["_key", "Category"], sort=False)["Value"].sum().unstack("Category")
    order = list(pd.unique(facts["Category"]))
    sums = sums.reindex(columns=order)
    sums.index.name = "key"
    sums.columns.name = None
    return sums


def monthly_aggregate(facts: pd.DataFrame, branches: BranchSelection) -> pd.DataFrame:
    """Branch-filtered, full-history monthly sums for every category.

    Indexed by MonthKey with one column per category. The date window is not
    applied; rolling views look back past the visible range. Cells for a
    category with no facts in a month are NaN.
    """
    matched = facts[branch_mask(facts, branches)]
    keys = fact_keys(matched)
    return _category_sums(matched, keys).reindex(index=month_index(keys))


def value_series(
    facts: pd.DataFrame,
    branches: BranchSelection,
    window: Optional[DateWindow],
    categories: Sequence[str],
) -> pd.DataFrame:
    """Per-month totals of the selected categories within branch + date filters.

    Every month with a matching fact gets a row; categories outside the
    selection are dropped before summing.
    """
    cats = unique_categories(categories)
    keys = fact_keys(facts)
    mask = branch_mask(facts, branches) & window_mask(keys, window)
    matched = facts[mask]
    matched_keys = keys[mask]

    chosen = matched["Category"].isin(cats)
    sums = _category_sums(matched[chosen], matched_keys[chosen])
    return sums.reindex(index=month_index(matched_keys), columns=cats)


def _cell(value: Any) -> Optional[float]:
    if value is None or pd.isna(value):
        return None
    return float(value)


def series_records(frame: pd.DataFrame, categories: Sequence[str], *, keep_nulls: bool = True) -> List[Dict[str, Any]]:
    """Renderer rows: {Year, Month, label, <category>: number|None}.

    Id fields are written first, so a category sharing a name with one of them
    overrides it in the row dict.
    """
    cats = unique_categories(categories)
    columns = {c: frame[c].tolist() if c in frame.columns else [None] * len(frame) for c in cats}
    out: List[Dict[str, Any]] = []
    for pos, key in enumerate(frame.index):
        year, month = from_key(key)
        rec: Dict[str, Any] = {"Year": year, "Month": month, "label": month_label(year, month)}
        for c in cats:
            v = _cell(columns[c][pos])
            if v is None and not keep_nulls:
                continue
            rec[c] = v
        out.append(rec)
    return out
