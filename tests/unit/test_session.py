import threading
import pytest
from pydantic import ValidationError
from pricing_console.client.pricing_client import PricingClientError
from pricing_console.models import FailedRow, RideRecord, SuccessRow
from pricing_console.session import (
    ActionInFlightError, SessionController, SessionState, action_started, batch_failed, single_failed
)

def test_new_session_is_empty(controller):
    state = controller.state
    assert state == SessionState()
    assert state.rows == ()
    assert state.kpis is None
    assert not state.loading

def test_refresh_health(controller, fake_client):
    assert controller.refresh_health().ok
    assert controller.state.health == fake_client.health
    assert controller.state.error is None

def test_refresh_health_failure_marks_health_unknown(controller, fake_client, server_down):
    controller.refresh_health()
    fake_client.error = server_down
    assert controller.refresh_health() is None
    assert controller.state.health is None
    assert controller.state.error == "Cannot connect to API server"

def test_submit_single(controller, fake_client):
    result = controller.submit_single(RideRecord.default())
    assert result == fake_client.result
    assert controller.state.single_result == fake_client.result
    assert controller.state.error is None
    assert not controller.state.loading

def test_submit_single_failure_clears_previous_result(controller, fake_client):
    controller.submit_single(RideRecord.default())
    fake_client.error = PricingClientError("Invalid response from server", "malformed")
    assert controller.submit_single(RideRecord.default()) is None
    assert controller.state.single_result is None
    assert controller.state.error == "Invalid response from server"

def test_upload_batch_swaps_rows_and_kpis(controller, fake_client):
    summary = controller.upload_batch(b"csv")
    state = controller.state
    assert (summary.succeeded, summary.failed) == (2, 1)
    assert [row.index for row in state.rows] == [0, 1, 5]
    assert isinstance(state.rows[1], FailedRow)
    assert state.kpis == fake_client.kpis
    assert state.batch.summary == summary
    assert [p.label for p in state.batch.chart] == ["#1", "#2"]

def test_new_upload_replaces_previous_batch(controller, fake_client):
    controller.upload_batch(b"first")
    fake_client.rows = [{"price_recommended": 7}]
    fake_client.kpis = None
    controller.upload_batch(b"second")
    assert controller.state.rows == (SuccessRow(index=0, price_recommended=7.0),)
    assert controller.state.kpis is None

def test_failed_upload_keeps_previous_batch(controller, fake_client, server_down):
    controller.upload_batch(b"csv")
    before = controller.state

    fake_client.error = server_down
    assert controller.upload_batch(b"csv") is None

    after = controller.state
    assert after.batch is before.batch
    assert after.rows == before.rows
    assert after.kpis == before.kpis
    assert after.error == "Cannot connect to API server"

def test_batch_does_not_touch_single_result(controller, fake_client):
    controller.submit_single(RideRecord.default())
    controller.upload_batch(b"csv")
    assert controller.state.single_result == fake_client.result

def test_compare_kpis_is_kept_apart_from_batch_kpis(controller, fake_client):
    controller.upload_batch(b"csv")
    assert controller.compare_kpis(b"base", b"scn") == fake_client.comparison
    assert controller.state.comparison_kpis == fake_client.comparison
    assert controller.state.kpis == fake_client.kpis

def test_second_single_submission_is_rejected_while_first_in_flight(fake_client):
    started = threading.Event()
    release = threading.Event()

    def slow_recommend(record):
        fake_client.calls.append("recommend")
        started.set()
        release.wait(5)
        return fake_client.result

    fake_client.recommend = slow_recommend
    controller = SessionController(fake_client)
    worker = threading.Thread(target=controller.submit_single, args=(RideRecord.default(),))
    worker.start()
    assert started.wait(5)
    assert controller.state.loading

    with pytest.raises(ActionInFlightError):
        controller.submit_single(RideRecord.default())

    release.set()
    worker.join(5)
    assert fake_client.calls.count("recommend") == 1
    assert controller.state.single_result == fake_client.result
    assert not controller.state.loading

def test_unexpected_error_releases_the_action(controller, fake_client):
    fake_client.error = RuntimeError("boom")
    with pytest.raises(RuntimeError):
        controller.upload_batch(b"csv")
    assert not controller.state.loading
    assert controller.state.error == "Unexpected error while processing batch request"
    fake_client.error = None
    assert controller.upload_batch(b"csv") is not None
    assert controller.state.error is None

def test_oversized_number_does_not_break_the_upload(controller, fake_client):
    fake_client.rows = [{"gm_pct": 10 ** 400}, {"price_recommended": 5}]
    summary = controller.upload_batch(b"csv")
    assert (summary.succeeded, summary.failed) == (2, 0)
    assert controller.state.rows[0].gm_pct == float("inf")
    assert controller.state.rows[1].price_recommended == 5.0
    assert controller.state.error is None

def test_transitions_are_pure():
    state = SessionState(error="old")
    started = action_started(state, "single")
    assert state.error == "old"
    assert started.error is None
    assert started.in_flight == {"single"}
    assert single_failed(started, "bad").in_flight == frozenset()
    assert batch_failed(action_started(state, "batch"), "bad").batch is None

def test_record_field_edit_is_revalidated():
    record = RideRecord.default()
    edited = record.with_changes(Vehicle_Type="Premium")
    assert edited.Vehicle_Type == "Premium"
    assert record.Vehicle_Type == "Economy"
    with pytest.raises(ValidationError):
        record.with_changes(Number_of_Riders=0)
