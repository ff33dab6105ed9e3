from fastapi import APIRouter, Depends, File, Header, HTTPException, UploadFile
from fastapi.responses import Response
from prometheus_client import Counter
from .models import BatchUploadResponse, HealthResponse, PresetsResponse
import logging
import math
import threading
import time
from typing import Any, Dict, Optional
from pricing_console.config import LOCATION_CATEGORIES, LOYALTY_STATUS, TIME_SLOTS, VEHICLE_TYPES
from pricing_console.models import RecommendationResult, RideRecord
from pricing_console.pipeline.projector import batch_averages, dashboard_overview, export_csv, table_rows
from pricing_console.session import ActionInFlightError, SessionController
from pricing_console.utils.logging_config import RecommendationLogger

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)
recommendation_logger = RecommendationLogger()

router = APIRouter()

# ==============================================================================
# METRICS
# ==============================================================================
CONSOLE_ACTIONS = Counter(
    "console_actions_total",
    "Operator actions handled by the console",
    ["action", "outcome"]
)

# ==============================================================================
# SESSION
# ==============================================================================
DEFAULT_SESSION = "default"
SESSIONS: Dict[str, SessionController] = {}
SESSIONS_LOCK = threading.Lock()


def _session_id(x_session_id: Optional[str]) -> str:
    return x_session_id or DEFAULT_SESSION


def get_controller(x_session_id: Optional[str] = Header(None)) -> SessionController:
    """
    The operator session named by the X-Session-ID header (a shared default
    session when absent). Created on first use; discarded by DELETE /session.
    """
    session_id = _session_id(x_session_id)
    with SESSIONS_LOCK:
        controller = SESSIONS.get(session_id)
        if controller is None:
            controller = SESSIONS[session_id] = SessionController()
            logger.info(f"Started session '{session_id}'")
        return controller


def end_all_sessions():
    with SESSIONS_LOCK:
        SESSIONS.clear()


def _json_safe(value: Any) -> Any:
    """Replaces NaN/inf with None so payloads stay valid JSON."""
    if isinstance(value, float) and not math.isfinite(value):
        return None
    if isinstance(value, dict):
        return {k: _json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_json_safe(v) for v in value]
    return value


def _run(action: str, call, *args):
    try:
        result = call(*args)
    except ActionInFlightError as e:
        CONSOLE_ACTIONS.labels(action=action, outcome="rejected").inc()
        raise HTTPException(status_code=409, detail=str(e))
    CONSOLE_ACTIONS.labels(action=action, outcome="ok" if result is not None else "failed").inc()
    return result


# ==============================================================================
# API ENDPOINTS
# ==============================================================================
@router.get("/health", response_model=HealthResponse)
def health_check(controller: SessionController = Depends(get_controller)):
    health = _run("health", controller.refresh_health)
    return HealthResponse(
        ok=bool(health and health.ok),
        status=health.model_dump() if health is not None else None,
        error=controller.state.error if health is None else None
    )


@router.get("/presets", response_model=PresetsResponse)
def get_presets():
    return PresetsResponse(
        record=RideRecord.default(),
        vehicle_types=VEHICLE_TYPES,
        time_slots=TIME_SLOTS,
        location_categories=LOCATION_CATEGORIES,
        loyalty_status=LOYALTY_STATUS
    )


@router.post("/recommend", response_model=RecommendationResult)
def recommend(record: RideRecord, controller: SessionController = Depends(get_controller)):
    """Gets a price recommendation for a single ride record"""
    start_time = time.time()
    result = _run("recommend", controller.submit_single, record)
    response_time_ms = (time.time() - start_time) * 1000

    if result is None:
        message = controller.state.error
        recommendation_logger.log_error("recommend", message, record.model_dump())
        raise HTTPException(status_code=502, detail=message)

    recommendation_logger.log_recommendation(
        record=record.model_dump(),
        result=result.model_dump(),
        response_time_ms=response_time_ms
    )
    return result


@router.post("/recommend_batch", response_model=BatchUploadResponse)
def recommend_batch(file: UploadFile = File(...), controller: SessionController = Depends(get_controller)):
    """Uploads a CSV of ride records for bulk recommendations"""
    start_time = time.time()
    filename = file.filename or "rides.csv"
    summary = _run("recommend_batch", controller.upload_batch, file.file.read(), filename)
    response_time_ms = (time.time() - start_time) * 1000

    if summary is None:
        message = controller.state.error
        recommendation_logger.log_error("recommend_batch", message, {"file": filename})
        raise HTTPException(status_code=502, detail=message)

    kpis = _json_safe(controller.state.kpis)
    recommendation_logger.log_batch(
        filename=filename,
        summary=summary.model_dump(),
        kpis=kpis,
        averages=batch_averages(controller.state.rows),
        response_time_ms=response_time_ms
    )
    return BatchUploadResponse(summary=summary, message=summary.message, kpis=kpis)


@router.post("/kpis")
def compare_kpis(
    file_base: UploadFile = File(...),
    file_scn: UploadFile = File(...),
    controller: SessionController = Depends(get_controller)
):
    """Compares KPIs between a base and a scenario file"""
    kpis = _run("kpis", controller.compare_kpis, file_base.file.read(), file_scn.file.read())
    if kpis is None:
        message = controller.state.error
        recommendation_logger.log_error(
            "kpis", message, {"file_base": file_base.filename, "file_scn": file_scn.filename}
        )
        raise HTTPException(status_code=502, detail=message)
    return _json_safe(kpis)


@router.get("/rows")
def get_rows(controller: SessionController = Depends(get_controller)):
    return {"rows": _json_safe(table_rows(controller.state.rows))}


@router.get("/chart")
def get_chart(controller: SessionController = Depends(get_controller)):
    batch = controller.state.batch
    points = [point.model_dump() for point in batch.chart] if batch is not None else []
    return {"points": _json_safe(points)}


@router.get("/dashboard")
def get_dashboard(controller: SessionController = Depends(get_controller)):
    return _json_safe(dashboard_overview(controller.state))


@router.get("/export")
def export_rows(controller: SessionController = Depends(get_controller)):
    batch = controller.state.batch
    if batch is None:
        raise HTTPException(status_code=404, detail="No batch results to export")
    return Response(
        content=export_csv(batch.rows),
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="recommendations.csv"'}
    )


@router.get("/state")
def get_state(controller: SessionController = Depends(get_controller)):
    state = controller.state
    return _json_safe({
        "loading": state.loading,
        "in_flight": sorted(state.in_flight),
        "error": state.error,
        "health": state.health.model_dump() if state.health is not None else None,
        "single_result": state.single_result.model_dump() if state.single_result is not None else None,
        "summary": state.batch.summary.model_dump() if state.batch is not None else None,
        "kpis": state.kpis,
        "comparison_kpis": state.comparison_kpis,
    })


@router.delete("/session")
def end_session(x_session_id: Optional[str] = Header(None)):
    """Discards the caller's session state."""
    session_id = _session_id(x_session_id)
    with SESSIONS_LOCK:
        ended = SESSIONS.pop(session_id, None) is not None
    if ended:
        logger.info(f"Ended session '{session_id}'")
    return {"session_id": session_id, "ended": ended}
