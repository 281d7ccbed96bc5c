import math

import numpy as np
import pandas as pd
import pytest

from psdash.aggregate import monthly_aggregate, series_records
from psdash.filters import ALL_BRANCHES, DateWindow
from psdash.months import from_key, shift_key
from psdash.rolling import fit_window, rolling_growth, rolling_value, trailing_sums


def _monthly(values, start=202201, category="Total", keys=None) -> pd.DataFrame:
    keys = keys or [shift_key(start, i) for i in range(len(values))]
    rows = [(*from_key(k), category, float(v), "A") for k, v in zip(keys, values)]
    facts = pd.DataFrame(rows, columns=["Year", "Month", "Category", "Value", "Branch"])
    return monthly_aggregate(facts, ALL_BRANCHES)


def _column(frame: pd.DataFrame, category: str = "Total") -> list:
    return [r.get(category) for r in series_records(frame, [category])]


def test_trailing_sums_need_a_full_window() -> None:
    out = trailing_sums(np.ones((13, 1)), 12)
    assert np.isnan(out[:11]).all()
    assert out[11, 0] == 12
    assert out[12, 0] == 12


def test_rolling_value_of_flat_series() -> None:
    values = _column(rolling_value(_monthly([100] * 24), ["Total"]))

    assert values[:11] == [None] * 11
    assert values[11] == 1200.0
    assert values[23] == 1200.0


def test_rolling_growth_of_flat_series_is_zero() -> None:
    values = _column(rolling_growth(_monthly([100] * 24), ["Total"]))

    assert values[:23] == [None] * 23
    assert values[23] == 0.0


def test_rolling_growth_fraction() -> None:
    values = _column(rolling_growth(_monthly([100] * 12 + [110] * 12), ["Total"]))
    assert values[23] == pytest.approx(0.1)


def test_rolling_growth_is_null_when_prior_year_is_zero() -> None:
    values = _column(rolling_growth(_monthly([0] * 12 + [100] * 13), ["Total"]))

    assert values[23] is None
    assert values[24] is not None and math.isfinite(values[24])


def test_missing_category_cells_count_as_zero() -> None:
    monthly = _monthly([5] * 12)
    frame = rolling_value(monthly, ["Total", "Parts"])
    assert _column(frame, "Parts")[11] == 0.0


def test_window_counts_positions_not_calendar_months() -> None:
    # Thirteen observed months with one calendar gap: the 12th entry closes a
    # window that spans thirteen calendar months.
    keys = [shift_key(202201, i) for i in range(14) if i != 5]
    frame = rolling_value(_monthly([10] * 13, keys=keys), ["Total"])

    assert frame.index[11] == 202301
    assert frame.loc[202301, "Total"] == 120.0


def test_clipping_keeps_values_computed_from_earlier_history() -> None:
    frame = rolling_value(_monthly([100] * 24), ["Total"], DateWindow(202301, 202312))

    assert frame.index.tolist()[0] == 202301
    assert len(frame) == 12
    assert _column(frame) == [1200.0] * 12


def test_invalid_window_leaves_series_unclipped() -> None:
    frame = rolling_value(_monthly([1] * 6), ["Total"], DateWindow(202312, 202301))
    assert len(frame) == 6


def test_fit_window_starts_at_first_rolling_value() -> None:
    frame = rolling_growth(_monthly([100] * 30), ["Total"])
    assert fit_window(frame, ["Total"], (202201, 202406)) == DateWindow(202312, 202406)


def test_fit_window_without_values() -> None:
    frame = rolling_growth(_monthly([100] * 6), ["Total"])
    assert fit_window(frame, ["Total"]) is None
