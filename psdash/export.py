from __future__ import annotations

import math
from typing import Any, Dict, Iterable, Sequence

import pandas as pd

from psdash.aggregate import unique_categories
from psdash.months import month_label

EXPORT_FILENAMES = {
    "value": "dashboard_view.csv",
    "r12Value": "dashboard_r12_value.csv",
    "r12": "dashboard_r12_growth.csv",
}


def _export_value(value: Any) -> Any:
    # Whole floats print without ".0"; missing and non-finite cells print empty.
    if value is None:
        return None
    if isinstance(value, float):
        if not math.isfinite(value):
            return None
        if value.is_integer():
            return int(value)
    return value


def export_frame(rows: Iterable[Dict[str, Any]], categories: Sequence[str]) -> pd.DataFrame:
    """Year, Month, Label, <categories...> as an object frame ready for to_csv."""
    cats = unique_categories(categories)
    records = [
        [row.get("Year"), row.get("Month"), month_label(row["Year"], row["Month"])]
        + [_export_value(row.get(c)) for c in cats]
        for row in rows
    ]
    return pd.DataFrame(records, columns=["Year", "Month", "Label", *cats], dtype=object)


def series_to_csv(rows: Iterable[Dict[str, Any]], categories: Sequence[str]) -> str:
    """CSV text with header `Year,Month,Label,<categories...>`, lines joined by "\\n"."""
    text = export_frame(rows, categories).to_csv(index=False, na_rep="", lineterminator="\n")
    return text.removesuffix("\n")
