import math
import numbers
from collections.abc import Mapping
from typing import Any, Dict, Iterable, List, Optional

import numpy as np
from pydantic import BaseModel

from pricing_console.models import BatchRow, FailedRow, SuccessRow

# ==============================================================================
# FIELDS
# ==============================================================================
NUMERIC_FIELDS = (
    "price_recommended",
    "p_complete_recommended",
    "p_complete_baseline",
    "gm_pct",
    "bound_low",
    "bound_high",
)


def to_number(value: Any) -> float:
    """
    Converts a server value to a float.
    null and blank strings read as 0. Anything else that cannot be read as a
    number becomes NaN, so it stays distinguishable from a field the server
    never sent. Integers too large for a float become +/-inf.
    """
    if value is None:
        return 0.0
    if isinstance(value, numbers.Real):
        try:
            return float(value)
        except OverflowError:
            return math.inf if value > 0 else -math.inf
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return 0.0
        try:
            return float(text)
        except ValueError:
            return np.nan
    return np.nan


def resolve_index(value: Any, position: int) -> int:
    """Uses the row's own index when it is a usable row number, otherwise its position."""
    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        return position
    try:
        number = float(value)
    except OverflowError:
        return position
    if not math.isfinite(number) or number < 0 or number != int(number):
        return position
    return int(number)


def _error_text(value: Any) -> Optional[str]:
    """The row's error, or None when the server sent null, "", 0 or false."""
    if value is None or isinstance(value, str) and not value:
        return None
    if isinstance(value, numbers.Real) and (value == 0 or value != value):
        return None
    return value if isinstance(value, str) else str(value)


def normalize_row(raw: Any, position: int) -> BatchRow:
    """Normalizes one raw server row found at `position` in the response."""
    if isinstance(raw, BaseModel) and hasattr(raw, "to_raw"):
        raw = raw.to_raw()
    if not isinstance(raw, Mapping):
        raw = {}

    index = resolve_index(raw.get("index"), position)

    error = _error_text(raw.get("error"))
    if error is not None:
        return FailedRow(index=index, error=error)

    fields: Dict[str, float] = {}
    for name in NUMERIC_FIELDS:
        if name in raw:
            fields[name] = to_number(raw[name])
    return SuccessRow(index=index, **fields)


def normalize_rows(raw_rows: Optional[Iterable[Any]]) -> List[BatchRow]:
    """
    Turns the `rows` list of a batch response into typed rows.

    Rows are never rejected: a row the server flagged with an error becomes a
    FailedRow, everything else a SuccessRow. Each row is handled on its own, so
    a bad index or value in one row cannot affect another.
    """
    return [normalize_row(raw, position) for position, raw in enumerate(raw_rows or [])]
