from typing import Any, Dict, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from pricing_console.config import DEFAULT_RECORD


class RideRecord(BaseModel):
    """
    A single ride submitted for a price recommendation.
    All nine fields are required and none may be null.
    """
    model_config = ConfigDict(frozen=True)

    Historical_Cost_of_Ride: float = Field(..., gt=0, description="Historical cost of the ride.")
    Expected_Ride_Duration: float = Field(..., gt=0, description="Expected ride duration in minutes.")
    Number_of_Riders: int = Field(..., gt=0, description="Riders currently requesting in the area.")
    Number_of_Drivers: int = Field(..., gt=0, description="Drivers currently available in the area.")
    Vehicle_Type: Literal["Economy", "Premium"]
    Time_of_Booking: Literal["Morning", "Afternoon", "Evening", "Night"]
    Location_Category: Literal["Urban", "Suburban", "Rural"]
    Customer_Loyalty_Status: Literal["Regular", "Silver", "Gold"]
    competitor_price: float = Field(..., gt=0, description="Competitor's price for the same ride.")

    @classmethod
    def default(cls) -> "RideRecord":
        return cls(**DEFAULT_RECORD)

    def with_changes(self, **changes: Any) -> "RideRecord":
        """Returns a new, re-validated record with the given fields edited."""
        return RideRecord(**{**self.model_dump(), **changes})


class PriceBounds(BaseModel):
    model_config = ConfigDict(frozen=True, extra="allow")

    low: float
    high: float


class RecommendationResult(BaseModel):
    """Response of a single recommendation. Values are passed through as the server sent them."""
    model_config = ConfigDict(frozen=True, extra="allow")

    price_recommended: float
    p_complete_recommended: Optional[float] = None
    gm_pct: Optional[float] = None
    bounds: Optional[PriceBounds] = None


class HealthStatus(BaseModel):
    model_config = ConfigDict(frozen=True, extra="allow")

    ok: bool = False


# ==============================================================================
# BATCH ROWS
# ==============================================================================
class SuccessRow(BaseModel):
    """
    A batch row the server computed. Numeric fields are None when the server
    did not send them and NaN when it sent something that is not a number.
    """
    model_config = ConfigDict(frozen=True)

    index: int = Field(..., ge=0)
    price_recommended: Optional[float] = None
    p_complete_recommended: Optional[float] = None
    p_complete_baseline: Optional[float] = None
    gm_pct: Optional[float] = None
    bound_low: Optional[float] = None
    bound_high: Optional[float] = None
    error: None = None

    @property
    def failed(self) -> bool:
        return False

    def to_raw(self) -> Dict[str, Any]:
        """The row in server shape, with absent fields omitted."""
        return self.model_dump(exclude_none=True)


class FailedRow(BaseModel):
    """A batch row the server could not compute. It carries no numbers."""
    model_config = ConfigDict(frozen=True)

    index: int = Field(..., ge=0)
    error: str = Field(..., min_length=1)

    @property
    def failed(self) -> bool:
        return True

    def to_raw(self) -> Dict[str, Any]:
        return {"index": self.index, "error": self.error}


BatchRow = Union[SuccessRow, FailedRow]


# ==============================================================================
# DERIVED VIEWS
# ==============================================================================
class ChartPoint(BaseModel):
    model_config = ConfigDict(frozen=True)

    label: str
    price: Optional[float] = None
    margin_pct: Optional[float] = None
    completion_pct: Optional[float] = None


class BatchSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    total: int = 0
    succeeded: int = 0
    failed: int = 0

    @property
    def message(self) -> str:
        if self.failed:
            return f"Processed {self.succeeded} records, {self.failed} had errors"
        return f"Successfully processed {self.succeeded} records"
