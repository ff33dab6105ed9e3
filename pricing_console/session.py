"""
Session state for one operator.

`SessionState` is immutable; every change goes through one of the pure
transition functions below and is swapped in as a whole by `SessionController`.
"""
import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field, replace
from typing import Any, Dict, FrozenSet, Optional, Tuple

from pricing_console.client.pricing_client import PricingClient, PricingClientError
from pricing_console.models import BatchRow, BatchSummary, HealthStatus, RecommendationResult, RideRecord
from pricing_console.pipeline.normalizer import normalize_rows
from pricing_console.pipeline.projector import ChartSeries, summarize

logger = logging.getLogger(__name__)

SINGLE = "single"
BATCH = "batch"
COMPARISON = "comparison"
HEALTH = "health"


class ActionInFlightError(Exception):
    """Raised when an action is triggered again before its previous run finished."""

    def __init__(self, action: str):
        super().__init__(f"A {action} request is already in progress")
        self.action = action


@dataclass(frozen=True)
class BatchResult:
    """Rows and KPIs of one upload. Always replaced together."""
    rows: Tuple[BatchRow, ...]
    kpis: Optional[Dict[str, Any]]
    summary: BatchSummary
    filename: Optional[str] = None

    @property
    def chart(self) -> ChartSeries:
        return ChartSeries(self.rows)


@dataclass(frozen=True)
class SessionState:
    health: Optional[HealthStatus] = None
    error: Optional[str] = None
    single_result: Optional[RecommendationResult] = None
    batch: Optional[BatchResult] = None
    comparison_kpis: Optional[Dict[str, Any]] = None
    in_flight: FrozenSet[str] = field(default_factory=frozenset)

    @property
    def loading(self) -> bool:
        return bool(self.in_flight)

    @property
    def rows(self) -> Tuple[BatchRow, ...]:
        return self.batch.rows if self.batch is not None else ()

    @property
    def kpis(self) -> Optional[Dict[str, Any]]:
        return self.batch.kpis if self.batch is not None else None


# ==============================================================================
# TRANSITIONS
# ==============================================================================
def action_started(state: SessionState, action: str) -> SessionState:
    if action == SINGLE:
        return replace(state, in_flight=state.in_flight | {action}, error=None, single_result=None)
    if action == HEALTH:
        return replace(state, in_flight=state.in_flight | {action})
    return replace(state, in_flight=state.in_flight | {action}, error=None)


def _finished(state: SessionState, action: str, **changes) -> SessionState:
    return replace(state, in_flight=state.in_flight - {action}, **changes)


def action_crashed(state: SessionState, action: str) -> SessionState:
    """An action failed outside the client's error contract; results are left as they were."""
    return _finished(state, action, error=f"Unexpected error while processing {action} request")


def health_refreshed(state: SessionState, health: HealthStatus) -> SessionState:
    return _finished(state, HEALTH, health=health, error=None)


def health_failed(state: SessionState, message: str) -> SessionState:
    return _finished(state, HEALTH, health=None, error=message)


def single_succeeded(state: SessionState, result: RecommendationResult) -> SessionState:
    return _finished(state, SINGLE, single_result=result, error=None)


def single_failed(state: SessionState, message: str) -> SessionState:
    return _finished(state, SINGLE, single_result=None, error=message)


def batch_succeeded(state: SessionState, batch: BatchResult) -> SessionState:
    return _finished(state, BATCH, batch=batch, error=None)


def batch_failed(state: SessionState, message: str) -> SessionState:
    """A failed upload keeps the previous batch; only the error changes."""
    return _finished(state, BATCH, error=message)


def comparison_succeeded(state: SessionState, kpis: Dict[str, Any]) -> SessionState:
    return _finished(state, COMPARISON, comparison_kpis=kpis, error=None)


def comparison_failed(state: SessionState, message: str) -> SessionState:
    return _finished(state, COMPARISON, comparison_kpis=None, error=message)


# ==============================================================================
# CONTROLLER
# ==============================================================================
class SessionController:
    """
    Runs client calls for one session and applies their outcome to the state.

    Each action has its own guard: while a single recommendation is running a
    second one is rejected with ActionInFlightError instead of being queued.
    """

    def __init__(self, client: Optional[PricingClient] = None):
        self.client = client or PricingClient()
        self._state = SessionState()
        self._state_lock = threading.Lock()
        self._action_locks = {
            HEALTH: threading.Lock(),
            SINGLE: threading.Lock(),
            BATCH: threading.Lock(),
            COMPARISON: threading.Lock(),
        }

    @property
    def state(self) -> SessionState:
        return self._state

    def _apply(self, transition, *args) -> SessionState:
        with self._state_lock:
            self._state = transition(self._state, *args)
            return self._state

    @contextmanager
    def _guard(self, action: str):
        lock = self._action_locks[action]
        if not lock.acquire(blocking=False):
            logger.warning(f"Rejected {action} request: previous one still in flight")
            raise ActionInFlightError(action)
        try:
            self._apply(action_started, action)
            yield
        except Exception:
            logger.exception(f"Unexpected failure during {action} request")
            self._apply(action_crashed, action)
            raise
        finally:
            lock.release()

    def refresh_health(self) -> Optional[HealthStatus]:
        with self._guard(HEALTH):
            try:
                health = self.client.check_health()
            except PricingClientError as e:
                self._apply(health_failed, e.message)
                return None
            self._apply(health_refreshed, health)
            return health

    def submit_single(self, record: RideRecord) -> Optional[RecommendationResult]:
        """Returns the recommendation, or None when the call failed (see `state.error`)."""
        with self._guard(SINGLE):
            try:
                result = self.client.recommend(record)
            except PricingClientError as e:
                self._apply(single_failed, e.message)
                return None
            self._apply(single_succeeded, result)
            return result

    def upload_batch(self, content: bytes, filename: str = "rides.csv") -> Optional[BatchSummary]:
        """
        Uploads a batch and swaps in its normalized rows and KPIs together.
        Returns the success/failure row counts, or None when the upload failed,
        in which case the previous batch is left as it was.
        """
        with self._guard(BATCH):
            try:
                raw_rows, kpis = self.client.recommend_batch(content, filename)
            except PricingClientError as e:
                self._apply(batch_failed, e.message)
                return None
            rows = tuple(normalize_rows(raw_rows))
            summary = summarize(rows)
            self._apply(batch_succeeded, BatchResult(rows=rows, kpis=kpis, summary=summary, filename=filename))
            logger.info(summary.message)
            return summary

    def compare_kpis(self, base: bytes, scenario: bytes) -> Optional[Dict[str, Any]]:
        with self._guard(COMPARISON):
            try:
                kpis = self.client.compare_kpis(base, scenario)
            except PricingClientError as e:
                self._apply(comparison_failed, e.message)
                return None
            self._apply(comparison_succeeded, kpis)
            return kpis
