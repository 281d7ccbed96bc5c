import pandas as pd

from psdash.aggregate import monthly_aggregate, series_records, value_series
from psdash.filters import ALL_BRANCHES, DateWindow


def _facts(*rows) -> pd.DataFrame:
    return pd.DataFrame(rows, columns=["Year", "Month", "Category", "Value", "Branch"])


def test_selected_branches_are_summed_per_month() -> None:
    facts = _facts(
        (2024, 1, "Total", 100.0, "A"),
        (2024, 1, "Total", 50.0, "B"),
        (2024, 1, "Total", 25.0, "C"),
    )
    frame = value_series(facts, frozenset({"A", "B"}), DateWindow(202401, 202401), ["Total"])
    assert series_records(frame, ["Total"]) == [{"Year": 2024, "Month": 1, "label": "Jan 2024", "Total": 150.0}]


def test_only_selected_categories_are_summed() -> None:
    facts = _facts(
        (2024, 1, "Parts", 10.0, "A"),
        (2024, 1, "Service", 5.0, "A"),
        (2024, 2, "Service", 7.0, "A"),
    )
    frame = value_series(facts, ALL_BRANCHES, None, ["Parts"])
    rows = series_records(frame, ["Parts"], keep_nulls=False)

    assert rows == [
        {"Year": 2024, "Month": 1, "label": "Jan 2024", "Parts": 10.0},
        {"Year": 2024, "Month": 2, "label": "Feb 2024"},
    ]


def test_value_series_applies_window_and_branch_filters() -> None:
    facts = _facts(
        (2023, 12, "Parts", 1.0, "A"),
        (2024, 1, "Parts", 2.0, "A"),
        (2024, 1, "Parts", 4.0, None),
        (2024, 3, "Parts", 8.0, "A"),
    )
    frame = value_series(facts, frozenset({"A"}), DateWindow(202401, 202402), ["Parts"])

    assert frame.index.tolist() == [202401]
    assert frame.loc[202401, "Parts"] == 2.0


def test_monthly_aggregate_keeps_full_history_in_order() -> None:
    facts = _facts(
        (2024, 1, "Parts", 2.0, "A"),
        (2023, 12, "Parts", 1.0, "A"),
        (2023, 12, "Service", 3.0, None),
    )
    monthly = monthly_aggregate(facts, ALL_BRANCHES)

    assert monthly.index.tolist() == [202312, 202401]
    assert monthly.columns.tolist() == ["Parts", "Service"]
    assert [r["label"] for r in series_records(monthly, ["Parts"])] == ["Dec 2023", "Jan 2024"]
    assert monthly.loc[202312, "Service"] == 3.0
    assert pd.isna(monthly.loc[202401, "Service"])


def test_monthly_aggregate_drops_unselected_branches() -> None:
    facts = _facts((2024, 1, "Parts", 2.0, "A"), (2024, 2, "Parts", 5.0, "B"))
    monthly = monthly_aggregate(facts, frozenset({"B"}))
    assert monthly.index.tolist() == [202402]


def test_no_matching_facts_gives_empty_series() -> None:
    facts = _facts((2024, 1, "Parts", 2.0, "A"))
    frame = value_series(facts, frozenset({"Z"}), None, ["Parts"])
    assert frame.empty
    assert series_records(frame, ["Parts"]) == []


def test_categories_named_like_row_fields_are_kept_apart() -> None:
    facts = _facts(
        (2024, 1, "label", 5.0, "A"),
        (2024, 1, "key", 7.0, "A"),
        (2024, 2, "label", 6.0, "A"),
    )
    monthly = monthly_aggregate(facts, ALL_BRANCHES)
    assert monthly.loc[202401, "label"] == 5.0
    assert monthly.loc[202401, "key"] == 7.0

    frame = value_series(facts, ALL_BRANCHES, None, ["key"])
    rows = series_records(frame, ["key"])
    assert rows == [
        {"Year": 2024, "Month": 1, "label": "Jan 2024", "key": 7.0},
        {"Year": 2024, "Month": 2, "label": "Feb 2024", "key": None},
    ]
