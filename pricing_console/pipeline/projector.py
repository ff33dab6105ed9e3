from typing import Any, Dict, Iterator, List, Optional, Sequence

import numpy as np
import pandas as pd

from pricing_console.config import GM_HIGH_THRESHOLD, GM_MEDIUM_THRESHOLD, REVENUE_LIFT_KPI
from pricing_console.models import BatchRow, BatchSummary, ChartPoint
from pricing_console.pipeline.normalizer import NUMERIC_FIELDS

TABLE_COLUMNS = ["index", *NUMERIC_FIELDS, "error"]


class ChartSeries:
    """
    Chart-ready view over a batch. Failed rows are skipped and the remaining
    rows are labelled #1..#n in their original order. Iterating again restarts
    the projection; the rows themselves are never touched.
    """

    def __init__(self, rows: Sequence[BatchRow]):
        self._rows = tuple(rows)

    def __iter__(self) -> Iterator[ChartPoint]:
        position = 0
        for row in self._rows:
            if row.failed:
                continue
            position += 1
            completion = row.p_complete_recommended
            yield ChartPoint(
                label=f"#{position}",
                price=row.price_recommended,
                margin_pct=row.gm_pct,
                completion_pct=completion * 100 if completion is not None else None,
            )

    def __len__(self) -> int:
        return sum(1 for row in self._rows if not row.failed)


def summarize(rows: Sequence[BatchRow]) -> BatchSummary:
    failed = sum(1 for row in rows if row.failed)
    return BatchSummary(total=len(rows), succeeded=len(rows) - failed, failed=failed)


def gm_tier(gm_pct: Optional[float]) -> Optional[str]:
    """Buckets a gross-margin percentage for display."""
    if gm_pct is None or np.isnan(gm_pct):
        return None
    if gm_pct > GM_HIGH_THRESHOLD:
        return "high"
    if gm_pct > GM_MEDIUM_THRESHOLD:
        return "medium"
    return "low"


def table_rows(rows: Sequence[BatchRow]) -> List[Dict[str, Any]]:
    """One display record per batch row, failed rows included."""
    records = []
    for row in rows:
        record: Dict[str, Any] = {"index": row.index, "error": row.error}
        if row.failed:
            record["status"] = row.error
        else:
            record["status"] = "Optimized"
            for name in NUMERIC_FIELDS:
                record[name] = getattr(row, name)
            completion = row.p_complete_recommended
            record["completion_pct"] = completion * 100 if completion is not None else None
            record["gm_tier"] = gm_tier(row.gm_pct)
            record["has_invalid_values"] = any(
                value is not None and np.isnan(value)
                for value in (getattr(row, name) for name in NUMERIC_FIELDS)
            )
        records.append(record)
    return records


def rows_to_frame(rows: Sequence[BatchRow]) -> pd.DataFrame:
    """Batch rows as a DataFrame with a fixed column order; absent values are NaN."""
    frame = pd.DataFrame([row.to_raw() for row in rows], columns=TABLE_COLUMNS)
    for name in NUMERIC_FIELDS:
        frame[name] = pd.to_numeric(frame[name], errors="coerce")
    return frame


def batch_averages(rows: Sequence[BatchRow]) -> Dict[str, Any]:
    """
    Mean of each numeric field over successful rows, skipping absent and
    unreadable values, plus how many rows carry a price. Values are numpy scalars.
    """
    frame = rows_to_frame([row for row in rows if not row.failed])
    numeric = frame[list(NUMERIC_FIELDS)].astype(float).replace([np.inf, -np.inf], np.nan)
    averages: Dict[str, Any] = {
        name: (None if pd.isna(value) else value) for name, value in numeric.mean().items()
    }
    averages["priced_rows"] = numeric["price_recommended"].notna().sum()
    return averages


def export_csv(rows: Sequence[BatchRow]) -> str:
    return rows_to_frame(rows).to_csv(index=False)


def dashboard_overview(state) -> Dict[str, Any]:
    """Headline figures for the dashboard: API status, revenue lift and record count."""
    kpis = state.batch.kpis if state.batch is not None else None
    rows = state.batch.rows if state.batch is not None else ()
    return {
        "api_status": "Connected" if state.health is not None and state.health.ok else "Offline",
        "revenue_lift_pct": (kpis or {}).get(REVENUE_LIFT_KPI),
        "records": sum(1 for row in rows if not row.failed),
    }
