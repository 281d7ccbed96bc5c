from __future__ import annotations

import re
from typing import Any, Dict, List, Optional, Sequence, Tuple

import pandas as pd

from psdash.aggregate import unique_categories
from psdash.config import BLANK_BRANCH
from psdash.filters import BranchSelection, DateWindow, branch_mask, window_mask
from psdash.normalize import fact_keys

_DIGITS_RE = re.compile(r"(\d+)")


def natural_key(value: object) -> Tuple[Tuple[int, Any], ...]:
    """Case-insensitive sort key that orders digit runs numerically ("9" < "10")."""
    parts = _DIGITS_RE.split(str(value).casefold())
    return tuple((0, int(p)) if p.isdigit() else (1, p) for p in parts if p != "")


def branch_summary(
    facts: pd.DataFrame,
    branches: BranchSelection,
    window: Optional[DateWindow],
    categories: Sequence[str],
) -> Dict[str, Any]:
    """Branch x category totals with per-branch and grand totals.

    Facts without a branch are reported under "(Blank)". The grand total is
    always the plain sum of every matching fact of the selected categories.
    """
    cats = unique_categories(categories)
    if facts.empty or not cats:
        return {"rows": [], "totals": {}}

    keys = fact_keys(facts)
    mask = branch_mask(facts, branches) & window_mask(keys, window) & facts["Category"].isin(cats)
    matched = facts[mask]
    if matched.empty:
        return {"rows": [], "totals": {}}

    bucket = matched["Branch"].map(lambda b: (str(b).strip() if b is not None and not pd.isna(b) else "") or BLANK_BRANCH)
    table = (
        matched.assign(_branch=bucket)
        .groupby(["_branch", "Category"])["Value"]
        .sum()
        .unstack("Category")
        .reindex(columns=cats)
        .fillna(0.0)
    )

    rows: List[Dict[str, Any]] = []
    for branch in sorted(table.index, key=natural_key):
        sums = {c: float(table.at[branch, c]) for c in cats}
        rows.append({"Branch": branch, "values": sums, "total": float(matched.loc[bucket == branch, "Value"].sum())})

    totals = {
        "values": {c: float(matched.loc[matched["Category"] == c, "Value"].sum()) for c in cats},
        "total": float(matched["Value"].sum()),
    }
    return {"rows": rows, "totals": totals}


def summary_frame(summary: Dict[str, Any], categories: Sequence[str]) -> pd.DataFrame:
    """Flat table (Branch, <categories...>, Total) plus a trailing Total row, for display."""
    cats = unique_categories(categories)
    rows = summary.get("rows") or []
    if not rows:
        return pd.DataFrame(columns=["Branch"] + cats + ["Total"])
    # Positional rows: a category may itself be called "Total".
    records = [[r["Branch"], *(r["values"].get(c, 0.0) for c in cats), r["total"]] for r in rows]
    totals = summary.get("totals") or {}
    grand = totals.get("values", {})
    records.append(["Total", *(grand.get(c, 0.0) for c in cats), totals.get("total", 0.0)])
    return pd.DataFrame(records, columns=["Branch", *cats, "Total"])
