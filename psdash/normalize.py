"""
Lexed CSV rows -> flat fact frame (Year, Month, Category, Value, Branch).
"""
from __future__ import annotations

import logging
from typing import Any, Iterable, List, Mapping, Optional, Sequence

import numpy as np
import pandas as pd

from psdash.config import (
    BRANCH_COLUMN_NAMES,
    DIMENSION_COLUMN_NAMES,
    PERIOD_COLUMN_NAMES,
    YEAR_COLUMN_NAMES,
)
from psdash.errors import EmptyDataset, MissingColumn
from psdash.months import parse_month_token

logger = logging.getLogger(__name__)

FACT_COLUMNS = ["Year", "Month", "Category", "Value", "Branch"]


def empty_facts() -> pd.DataFrame:
    return pd.DataFrame(
        {
            "Year": pd.Series(dtype="int64"),
            "Month": pd.Series(dtype="int64"),
            "Category": pd.Series(dtype=object),
            "Value": pd.Series(dtype="float64"),
            "Branch": pd.Series(dtype=object),
        }
    )


def find_column(headers: Iterable[str], names: Sequence[str]) -> Optional[str]:
    wanted = {n.lower() for n in names}
    for h in headers:
        if str(h).strip().lower() in wanted:
            return h
    return None


def category_columns(headers: Sequence[str], id_columns: Iterable[Optional[str]]) -> List[str]:
    ids = {c for c in id_columns if c}
    return [
        h
        for h in headers
        if h and h not in ids and str(h).strip().lower() not in DIMENSION_COLUMN_NAMES
    ]


def _strip_cell(value: Any) -> Any:
    if isinstance(value, str):
        return value.strip()
    return value


def _amount_cell(value: Any) -> Any:
    # "1,234.50" -> "1234.50"; blank cells stay blank and coerce to NaN.
    if isinstance(value, str):
        return value.replace(",", "").strip() or None
    return value


def _branch_cell(value: Any) -> Optional[str]:
    if value is None or (isinstance(value, float) and np.isnan(value)):
        return None
    s = str(value).strip()
    return s or None


def to_number(series: pd.Series, *, amounts: bool = False) -> pd.Series:
    cleaned = series.map(_amount_cell if amounts else _strip_cell)
    out = pd.to_numeric(cleaned, errors="coerce").astype("float64")
    return out.where(np.isfinite(out))


def normalize_records(rows: Iterable[Mapping[str, Any]], headers: Optional[Sequence[str]] = None) -> pd.DataFrame:
    """Flatten lexed rows into one fact per (row, numeric category cell).

    Rows with an unusable Year or Period are skipped whole; an unparsable
    category cell only drops that cell. Raises MissingColumn when the Year or
    Period/Month column cannot be found and EmptyDataset when nothing survives.
    """
    records = list(rows)
    raw_headers = list(headers) if headers else (list(records[0].keys()) if records else [])
    frame = pd.DataFrame.from_records(records, columns=raw_headers) if records else pd.DataFrame(columns=raw_headers)
    frame.columns = [str(c).strip() if c is not None else "" for c in frame.columns]
    frame = frame.loc[:, ~frame.columns.duplicated()]
    header_list = [h for h in frame.columns if h]
    if not header_list:
        raise MissingColumn("No headers found in CSV.")

    year_col = find_column(header_list, YEAR_COLUMN_NAMES)
    period_col = find_column(header_list, PERIOD_COLUMN_NAMES)
    branch_col = find_column(header_list, BRANCH_COLUMN_NAMES)
    if not year_col or not period_col:
        raise MissingColumn()

    cat_cols = category_columns(header_list, [year_col, period_col, branch_col])

    years = to_number(frame[year_col])
    months = frame[period_col].map(parse_month_token)
    valid = years.notna() & (years != 0) & (years % 1 == 0) & months.notna()
    skipped = int((~valid).sum())
    if skipped:
        logger.debug("Skipped %d row(s) with unusable Year/Period values", skipped)

    if not cat_cols or not valid.any():
        raise EmptyDataset()

    kept = frame.loc[valid]
    base = pd.DataFrame(
        {
            "Year": years[valid].astype("int64"),
            "Month": months[valid].astype("int64"),
            "Branch": kept[branch_col].map(_branch_cell) if branch_col else None,
        },
        index=kept.index,
    )
    # Positional names keep melt safe from category headers like "Value".
    values = pd.DataFrame({i: to_number(kept[c], amounts=True) for i, c in enumerate(cat_cols)}, index=kept.index)
    long = (
        pd.concat([base, values], axis=1)
        .melt(id_vars=["Year", "Month", "Branch"], var_name="_pos", value_name="Value")
        .dropna(subset=["Value"])
    )
    if long.empty:
        raise EmptyDataset()

    names = {i: str(c).strip() for i, c in enumerate(cat_cols)}
    long["Category"] = long["_pos"].map(names)
    long["Branch"] = long["Branch"].astype(object).where(long["Branch"].notna(), None)
    facts = long[FACT_COLUMNS].reset_index(drop=True)
    logger.debug("Normalized %d fact(s) across %d categories", len(facts), facts["Category"].nunique())
    return facts


def fact_keys(facts: pd.DataFrame) -> pd.Series:
    """MonthKey per fact (Year*100+Month)."""
    if facts.empty:
        return pd.Series(dtype="int64", index=facts.index)
    return facts["Year"].astype("int64") * 100 + facts["Month"].astype("int64")


def observed_bounds(facts: pd.DataFrame) -> Optional[tuple]:
    if facts.empty:
        return None
    keys = fact_keys(facts)
    return int(keys.min()), int(keys.max())


def categories_in_order(facts: pd.DataFrame) -> List[str]:
    """Distinct categories in first-seen order, dimension names excluded."""
    if facts.empty:
        return []
    cats = [c for c in pd.unique(facts["Category"]) if c]
    return [c for c in cats if str(c).strip().lower() not in DIMENSION_COLUMN_NAMES]

