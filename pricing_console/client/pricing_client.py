import logging
import time
from typing import Any, Dict, List, Optional, Tuple

import requests
from prometheus_client import Counter, Histogram
from pydantic import ValidationError

from pricing_console.config import API_BASE, BATCH_TIMEOUT_SECONDS, SINGLE_TIMEOUT_SECONDS
from pricing_console.models import HealthStatus, RecommendationResult, RideRecord

logger = logging.getLogger(__name__)

# ==============================================================================
# METRICS
# ==============================================================================
CLIENT_REQUESTS = Counter(
    "pricing_client_requests_total",
    "Requests sent to the remote pricing engine",
    ["operation", "outcome"]
)
CLIENT_LATENCY = Histogram(
    "pricing_client_latency_seconds",
    "Latency of requests to the remote pricing engine",
    ["operation"]
)

# ==============================================================================
# ERRORS
# ==============================================================================
CONNECT_MESSAGE = "Cannot connect to API server"
SINGLE_TIMEOUT_MESSAGE = "Request timeout - server is taking too long to respond"
BATCH_TIMEOUT_MESSAGE = "Request timeout - file too large or server busy"


class PricingClientError(Exception):
    """
    Uniform failure raised by every client operation.

    `kind` is one of "transport", "timeout", "malformed" or "server"; callers
    only need `message`, which is safe to show to the operator.
    """

    def __init__(self, message: str, kind: str):
        super().__init__(message)
        self.message = message
        self.kind = kind

    def to_dict(self) -> Dict[str, str]:
        return {"message": self.message}


def _server_detail(response: requests.Response) -> Optional[str]:
    try:
        payload = response.json()
    except ValueError:
        return None
    if not isinstance(payload, dict) or not payload.get("detail"):
        return None
    detail = payload["detail"]
    if isinstance(detail, list):
        # FastAPI validation errors
        messages = [item.get("msg", str(item)) if isinstance(item, dict) else str(item) for item in detail]
        return "; ".join(messages)
    return str(detail)


class PricingClient:
    """HTTP binding to the remote pricing engine."""

    def __init__(
        self,
        base_url: str = API_BASE,
        single_timeout: float = SINGLE_TIMEOUT_SECONDS,
        batch_timeout: float = BATCH_TIMEOUT_SECONDS,
        session: Optional[requests.Session] = None
    ):
        self.base_url = base_url.rstrip("/")
        self.single_timeout = single_timeout
        self.batch_timeout = batch_timeout
        self.session = session or requests.Session()

    def _request(
        self,
        operation: str,
        method: str,
        path: str,
        timeout: float,
        timeout_message: str,
        fallback_message: str,
        **kwargs
    ) -> Any:
        """Sends a request and returns the decoded JSON body, or raises PricingClientError."""
        url = f"{self.base_url}{path}"
        start_time = time.time()
        try:
            response = self.session.request(method, url, timeout=timeout, **kwargs)
        except requests.exceptions.Timeout:
            raise self._fail(operation, PricingClientError(timeout_message, "timeout"))
        except requests.exceptions.RequestException as e:
            logger.warning(f"{operation}: transport failure talking to {url}: {e}")
            raise self._fail(operation, PricingClientError(CONNECT_MESSAGE, "transport"))
        finally:
            CLIENT_LATENCY.labels(operation=operation).observe(time.time() - start_time)

        if not response.ok:
            detail = _server_detail(response)
            raise self._fail(operation, PricingClientError(detail or fallback_message, "server"))

        try:
            return response.json()
        except ValueError:
            raise self._fail(operation, PricingClientError(fallback_message, "malformed"))

    def _fail(self, operation: str, error: PricingClientError) -> PricingClientError:
        CLIENT_REQUESTS.labels(operation=operation, outcome=error.kind).inc()
        logger.error(f"{operation} failed ({error.kind}): {error.message}")
        return error

    def _succeed(self, operation: str):
        CLIENT_REQUESTS.labels(operation=operation, outcome="ok").inc()

    # ==========================================================================
    # OPERATIONS
    # ==========================================================================
    def check_health(self) -> HealthStatus:
        data = self._request(
            "health", "GET", "/health",
            timeout=self.single_timeout,
            timeout_message=SINGLE_TIMEOUT_MESSAGE,
            fallback_message="Health check failed",
        )
        if not isinstance(data, dict):
            raise self._fail("health", PricingClientError("Invalid response from server", "malformed"))
        self._succeed("health")
        return HealthStatus(**{**data, "ok": bool(data.get("ok", False))})

    def recommend(self, record: RideRecord) -> RecommendationResult:
        """
        Gets a price recommendation for one ride.
        A reply without `price_recommended` is a failure, whatever its status code.
        """
        data = self._request(
            "recommend", "POST", "/recommend",
            timeout=self.single_timeout,
            timeout_message=SINGLE_TIMEOUT_MESSAGE,
            fallback_message="Server error",
            json={"record": record.model_dump()},
        )
        if not isinstance(data, dict) or data.get("price_recommended") is None:
            raise self._fail("recommend", PricingClientError("Invalid response from server", "malformed"))
        try:
            result = RecommendationResult(**data)
        except ValidationError:
            raise self._fail("recommend", PricingClientError("Invalid response from server", "malformed"))
        self._succeed("recommend")
        return result

    def recommend_batch(
        self, content: bytes, filename: str = "rides.csv"
    ) -> Tuple[List[Any], Optional[Dict[str, Any]]]:
        """
        Uploads a CSV of ride records. Returns the raw `rows` list and the KPI
        snapshot (None when the server sent none). Rows are not normalized here.
        """
        data = self._request(
            "recommend_batch", "POST", "/recommend_batch",
            timeout=self.batch_timeout,
            timeout_message=BATCH_TIMEOUT_MESSAGE,
            fallback_message="Failed to process CSV",
            files={"file": (filename, content, "text/csv")},
        )
        if not isinstance(data, dict) or not isinstance(data.get("rows"), list):
            raise self._fail("recommend_batch", PricingClientError("Invalid response format from server", "malformed"))
        kpis = data.get("kpis")
        self._succeed("recommend_batch")
        return data["rows"], kpis if isinstance(kpis, dict) else None

    def compare_kpis(
        self,
        base: bytes,
        scenario: bytes,
        base_filename: str = "base.csv",
        scenario_filename: str = "scenario.csv"
    ) -> Dict[str, Any]:
        data = self._request(
            "kpis", "POST", "/kpis",
            timeout=self.batch_timeout,
            timeout_message=BATCH_TIMEOUT_MESSAGE,
            fallback_message="Failed to calculate KPIs",
            files={
                "file_base": (base_filename, base, "text/csv"),
                "file_scn": (scenario_filename, scenario, "text/csv"),
            },
        )
        if not isinstance(data, dict):
            raise self._fail("kpis", PricingClientError("Invalid response format from server", "malformed"))
        self._succeed("kpis")
        return data
