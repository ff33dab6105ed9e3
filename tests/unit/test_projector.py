import math
import pytest
from pricing_console.models import ChartPoint, FailedRow, HealthStatus, SuccessRow
from pricing_console.pipeline.normalizer import normalize_rows
from pricing_console.pipeline.projector import (
    ChartSeries, batch_averages, dashboard_overview, export_csv, gm_tier, rows_to_frame, summarize,
    table_rows
)
from pricing_console.session import BatchResult, SessionState

@pytest.fixture
def rows():
    return normalize_rows([
        {"price_recommended": "100.5", "gm_pct": 12, "p_complete_recommended": 0.9},
        {"error": "timeout"},
        {"index": 5, "price_recommended": 200},
    ])

def test_chart_skips_failed_rows_and_labels_densely(rows):
    points = list(ChartSeries(rows))
    assert [p.label for p in points] == ["#1", "#2"]
    assert [p.price for p in points] == [100.5, 200.0]
    assert points[0] == ChartPoint(label="#1", price=100.5, margin_pct=12.0, completion_pct=90.0)
    assert points[1].margin_pct is None
    assert points[1].completion_pct is None

def test_chart_has_one_point_per_successful_row():
    raw = [{"price_recommended": i} if i % 3 else {"error": "failed"} for i in range(10)]
    series = ChartSeries(normalize_rows(raw))
    points = list(series)
    assert len(points) == len(series) == 6
    assert [p.label for p in points] == [f"#{i}" for i in range(1, 7)]
    assert [p.price for p in points] == [1.0, 2.0, 4.0, 5.0, 7.0, 8.0]

def test_chart_series_can_be_iterated_again(rows):
    series = ChartSeries(rows)
    assert list(series) == list(series)

def test_chart_does_not_change_rows(rows):
    before = list(rows)
    list(ChartSeries(rows))
    assert rows == before

def test_summarize(rows):
    summary = summarize(rows)
    assert (summary.total, summary.succeeded, summary.failed) == (3, 2, 1)
    assert summary.message == "Processed 2 records, 1 had errors"
    assert summarize(rows[:1]).message == "Successfully processed 1 records"

@pytest.mark.parametrize("gm_pct, tier", [(25, "high"), (20, "medium"), (10.5, "medium"), (10, "low"),
                                          (-3, "low"), (None, None), (float("nan"), None)])
def test_gm_tier(gm_pct, tier):
    assert gm_tier(gm_pct) == tier

def test_table_rows(rows):
    table = table_rows(rows)
    assert table[0]["status"] == "Optimized"
    assert table[0]["completion_pct"] == 90.0
    assert table[0]["gm_tier"] == "medium"
    assert table[0]["has_invalid_values"] is False
    assert table[1] == {"index": 1, "error": "timeout", "status": "timeout"}
    assert table[2]["index"] == 5

def test_table_rows_flag_unreadable_numbers():
    table = table_rows(normalize_rows([{"price_recommended": "n/a"}]))
    assert table[0]["has_invalid_values"] is True

def test_rows_to_frame(rows):
    frame = rows_to_frame(rows)
    assert list(frame.columns)[0] == "index"
    assert list(frame["index"]) == [0, 1, 5]
    assert frame.loc[0, "price_recommended"] == 100.5
    assert math.isnan(frame.loc[1, "price_recommended"])
    assert frame.loc[1, "error"] == "timeout"

def test_export_csv(rows):
    lines = export_csv(rows).strip().splitlines()
    assert lines[0].startswith("index,price_recommended")
    assert len(lines) == 4

def test_dashboard_overview(rows):
    state = SessionState(
        health=HealthStatus(ok=True),
        batch=BatchResult(rows=tuple(rows), kpis={"Revenue Lift (%)": 3.1}, summary=summarize(rows)),
    )
    assert dashboard_overview(state) == {"api_status": "Connected", "revenue_lift_pct": 3.1, "records": 2}
    assert dashboard_overview(SessionState()) == {"api_status": "Offline", "revenue_lift_pct": None, "records": 0}

def test_failed_row_has_no_numbers():
    row = FailedRow(index=0, error="x")
    assert not hasattr(row, "price_recommended")
    assert SuccessRow(index=0).failed is False

def test_batch_averages(rows):
    averages = batch_averages(rows)
    assert averages["price_recommended"] == 150.25
    assert averages["gm_pct"] == 12.0
    assert averages["p_complete_recommended"] == pytest.approx(0.9)
    assert averages["bound_low"] is None
    assert averages["priced_rows"] == 2

def test_batch_averages_skip_unreadable_and_infinite_values():
    averages = batch_averages(normalize_rows([
        {"price_recommended": "abc"}, {"price_recommended": 10 ** 400}, {"price_recommended": 30},
    ]))
    assert averages["price_recommended"] == 30.0
    assert averages["priced_rows"] == 1

def test_batch_averages_of_empty_batch():
    averages = batch_averages([])
    assert averages["price_recommended"] is None
    assert averages["priced_rows"] == 0
