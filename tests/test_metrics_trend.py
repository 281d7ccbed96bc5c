from pathlib import Path

from psdash.data import dataset_context, load_dashboard_data, parse_dataset_text
from psdash.filters import DateWindow
from psdash.metrics_trend import compute_branch_summary, compute_export, compute_trend, prepare_context


def test_value_view_defaults_to_dataset_total(data_dir: Path) -> None:
    data_ctx = load_dashboard_data("Historical_All")
    ctx = prepare_context({"selected_branches": ["113"]}, data_ctx)
    trend = compute_trend(ctx["filters"], ctx)

    assert ctx["categories"] == ["Total"]
    assert trend["bounds"] == [202201, 202406]
    assert len(trend["series"]) == 30
    assert trend["series"][0] == {"Year": 2022, "Month": 1, "label": "Jan 2022", "Total": 100.0}
    assert trend["summary_stats"]["Total"] == {"latest": 100.0, "avg": 100.0}
    assert trend["filters"]["selected_branches"] == ["113"]
    assert trend["charts"]["trend"]["$schema"].startswith("https://vega.github.io/schema/vega-lite/")


def test_untouched_growth_view_fits_to_available_history(data_dir: Path) -> None:
    ctx = prepare_context({"metric": "r12"}, load_dashboard_data())
    trend = compute_trend(ctx["filters"], ctx)

    assert ctx["filters"].window == DateWindow(202312, 202406)
    assert [r["Total"] for r in trend["series"]] == [0.0] * 7
    assert trend["filters"]["date_start"] == "2023-12"


def test_touched_growth_view_keeps_range_and_nulls(data_dir: Path) -> None:
    ctx = prepare_context(
        {"metric": "r12", "date_start": "2023-01", "date_end": "2024-06"},
        load_dashboard_data(),
    )
    rows = compute_trend(ctx["filters"], ctx)["series"]

    assert len(rows) == 18
    assert rows[0]["Total"] is None
    assert rows[-1]["Total"] == 0.0


def test_rolling_value_uses_history_before_the_window(data_dir: Path) -> None:
    ctx = prepare_context(
        {"metric": "r12Value", "selected_categories": ["Parts"], "date_start": "2023-01", "date_end": "2023-03"},
        load_dashboard_data(),
    )
    rows = compute_trend(ctx["filters"], ctx)["series"]
    assert [r["Parts"] for r in rows] == [960.0, 960.0, 960.0]


def test_branch_summary_payload(data_dir: Path) -> None:
    ctx = prepare_context({"date_start": "2024-01", "date_end": "2024-01"}, load_dashboard_data())
    payload = compute_branch_summary(ctx["filters"], ctx)

    assert [r["Branch"] for r in payload["rows"]] == ["113", "215"]
    assert payload["totals"]["total"] == 200.0


def test_export_payload(data_dir: Path) -> None:
    ctx = prepare_context({"metric": "r12Value", "range_touched": True, "date_start": "2022-11", "date_end": "2022-12"}, load_dashboard_data())
    out = compute_export(ctx["filters"], ctx)

    assert out["filename"] == "dashboard_r12_value.csv"
    assert out["content"].split("\n") == [
        "Year,Month,Label,Total",
        "2022,11,Nov 2022,",
        "2022,12,Dec 2022,2400",
    ]


def test_categories_named_label_and_key_flow_through_every_view() -> None:
    text = "Year,Period,Branch,label,key,Total\n" + "".join(
        f"{2023 + i // 12},{i % 12 + 1},A,5,7,10\n" for i in range(24)
    )
    facts = parse_dataset_text(text)
    data_ctx = dataset_context(facts)

    for metric in ("value", "r12Value", "r12"):
        ctx = prepare_context({"metric": metric, "selected_categories": ["label", "key"]}, data_ctx)
        trend = compute_trend(ctx["filters"], ctx)
        assert trend["charts"]["trend"] is not None

    ctx = prepare_context({"metric": "r12Value", "selected_categories": ["label", "key"]}, data_ctx)
    rows = compute_trend(ctx["filters"], ctx)["series"]
    assert rows[-1]["key"] == 84.0
    assert compute_export(ctx["filters"], ctx)["content"].split("\n")[-1] == "2024,12,Dec 2024,60,84"
