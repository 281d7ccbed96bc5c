import pandas as pd
import pytest

from psdash.filters import ALL_BRANCHES, DateWindow, RangeSelection
from psdash.view import (
    auto_fit_window,
    hydrate,
    pick_default_categories,
    pick_end,
    pick_start,
    pick_year,
    preset_all,
    preset_last_n,
    preset_ytd,
    summary_stats,
)
from psdash.aggregate import monthly_aggregate
from psdash.months import from_key, shift_key
from psdash.rolling import rolling_growth

BOUNDS = (202201, 202412)


def _facts(start=202201, months=36, categories=("Parts", "Service", "Total"), branches=("113", "215")) -> pd.DataFrame:
    rows = [
        (*from_key(shift_key(start, i)), c, 1.0, b)
        for i in range(months)
        for c in categories
        for b in branches
    ]
    return pd.DataFrame(rows, columns=["Year", "Month", "Category", "Value", "Branch"])


def test_untouched_range_resets_to_full_bounds() -> None:
    view = hydrate(_facts(), RangeSelection(touched=False, start=202305, end=202306))

    assert view.bounds == BOUNDS
    assert view.window == DateWindow(*BOUNDS)
    assert view.years == [2022, 2023, 2024]
    assert view.branches == ["113", "215"]


def test_touched_range_is_preserved() -> None:
    view = hydrate(_facts(), RangeSelection(touched=True, start=202305, end=202306))
    assert view.window == DateWindow(202305, 202306)


def test_touched_range_is_clamped_to_new_bounds() -> None:
    view = hydrate(_facts(), RangeSelection(touched=True, start=202006, end=202303))
    assert view.window == DateWindow(202201, 202303)


def test_inverted_touched_range_resets() -> None:
    view = hydrate(_facts(), RangeSelection(touched=True, start=202406, end=202301))
    assert view.window == DateWindow(*BOUNDS)


def test_hydrate_defaults_and_restores_selections() -> None:
    facts = _facts()
    fresh = hydrate(facts, default_category="Total")
    assert fresh.selected_categories == ["Total"]
    assert fresh.selected_branches == ALL_BRANCHES

    restored = hydrate(
        facts,
        previous_categories=["Service", "Gone"],
        previous_branches=frozenset({"215", "999"}),
    )
    assert restored.selected_categories == ["Service"]
    assert restored.selected_branches == frozenset({"215"})


def test_hydrate_rejects_empty_facts() -> None:
    with pytest.raises(ValueError):
        hydrate(_facts(months=0))


def test_pick_default_categories() -> None:
    assert pick_default_categories(["A", "B", "C"]) == ["A", "B"]
    assert pick_default_categories(["A", "B", "Total"], "Total") == ["Total"]
    assert pick_default_categories([]) == []


def test_pickers_keep_start_before_end() -> None:
    window, selection = pick_start(202406, DateWindow(202201, 202303), BOUNDS)
    assert window == DateWindow(202406, 202406)
    assert selection == RangeSelection(True, 202406, 202406)

    window, _ = pick_end(202105, DateWindow(202303, 202412), BOUNDS)
    assert window == DateWindow(202201, 202201)


def test_presets() -> None:
    assert preset_all(BOUNDS)[0] == DateWindow(*BOUNDS)
    assert preset_last_n(12, BOUNDS)[0] == DateWindow(202401, 202412)
    assert preset_last_n(60, BOUNDS)[0] == DateWindow(202201, 202412)
    assert preset_ytd((202201, 202403))[0] == DateWindow(202401, 202403)
    assert pick_year(2023, BOUNDS)[0] == DateWindow(202301, 202312)
    assert pick_year(2021, BOUNDS)[0] == DateWindow(202201, 202201)
    assert all(p[1].touched for p in (preset_all(BOUNDS), preset_ytd(BOUNDS)))


def test_auto_fit_window_only_for_untouched_rolling_views() -> None:
    monthly = monthly_aggregate(_facts(), ALL_BRANCHES)
    growth = rolling_growth(monthly, ["Total"])

    assert auto_fit_window("r12", growth, ["Total"], BOUNDS, RangeSelection()) == DateWindow(202312, 202412)
    assert auto_fit_window("r12", growth, ["Total"], BOUNDS, RangeSelection(True, 202201, 202412)) is None
    assert auto_fit_window("value", growth, ["Total"], BOUNDS, RangeSelection()) is None


def test_summary_stats_skip_missing_values() -> None:
    rows = [{"Total": None}, {"Total": 10.0}, {"Total": 20.0}, {"Parts": 1.0}]
    assert summary_stats(rows, ["Total", "Service"]) == {"Total": {"latest": 20.0, "avg": 15.0}}
