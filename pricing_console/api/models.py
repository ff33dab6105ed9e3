from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from pricing_console.models import BatchSummary, RideRecord


class HealthResponse(BaseModel):
    """
    Result of checking the remote pricing engine.
    `status` is None when the engine could not be reached.
    """
    ok: bool = Field(..., description="Whether the pricing engine reported itself healthy.")
    status: Optional[Dict[str, Any]] = Field(None, description="Health payload returned by the engine.")
    error: Optional[str] = Field(None, description="Why the check failed, if it did.")


class BatchUploadResponse(BaseModel):
    """
    Outcome of a batch upload. The upload counts as processed even when some
    rows failed; `summary` reports how many did.
    """
    summary: BatchSummary
    message: str = Field(..., description="Operator-facing summary of the upload.")
    kpis: Optional[Dict[str, Any]] = Field(None, description="KPI snapshot computed by the engine.")


class PresetsResponse(BaseModel):
    record: RideRecord
    vehicle_types: List[str]
    time_slots: List[str]
    location_categories: List[str]
    loyalty_status: List[str]
