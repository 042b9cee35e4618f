"""Best-effort coercion of raw string rows into typed record frames.

Coercion is total: a malformed cell degrades to its zero value instead of
failing the row or the file.

- numeric fields: anything that does not parse as a number (including the
  empty string, missing columns, NaN and infinities) becomes ``0.0``
- text fields: ``None`` / NaN / missing becomes ``""``; other values are
  converted with ``str``
"""

from __future__ import annotations

import logging
import math
from typing import Any, Iterable, Mapping, Union

import numpy as np
import pandas as pd

from ..schema.records import RecordKind, get_schema

LOGGER = logging.getLogger(__name__)

RawRows = Union[pd.DataFrame, Iterable[Mapping[str, Any]]]


def to_number(value: Any) -> float:
    """Scalar numeric coercion; failures, NaN and infinities become 0.0."""
    if value is None or isinstance(value, bool):
        return float(value or 0)
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError):
        return 0.0
    if not math.isfinite(number):
        return 0.0
    return number


def to_text(value: Any) -> str:
    """Scalar text coercion; None and NaN become the empty string."""
    if value is None:
        return ""
    if isinstance(value, float) and math.isnan(value):
        return ""
    return str(value)


def coerce_numeric(values: pd.Series) -> pd.Series:
    """Vectorized numeric coercion of a column."""
    if pd.api.types.is_bool_dtype(values):
        return values.astype("float64")
    if pd.api.types.is_numeric_dtype(values):
        numbers = values.astype("float64")
    else:
        text = values.astype(object).where(values.notna(), "")
        text = text.map(lambda v: v.strip() if isinstance(v, str) else v)
        numbers = pd.to_numeric(text, errors="coerce").astype("float64")
    return numbers.replace([np.inf, -np.inf], np.nan).fillna(0.0)


def coerce_text(values: pd.Series) -> pd.Series:
    """Vectorized text coercion of a column."""
    text = values.astype(object)
    text = text.where(text.notna(), "")
    return text.map(str).astype(object)


def _as_frame(rows: RawRows) -> pd.DataFrame:
    if isinstance(rows, pd.DataFrame):
        return rows
    return pd.DataFrame.from_records(list(rows))


def coerce(kind: RecordKind | str, rows: RawRows) -> pd.DataFrame:
    """Convert raw rows into the typed record frame for ``kind``.

    Args:
        kind: Target record kind
        rows: DataFrame of raw cells or an iterable of row mappings

    Returns:
        DataFrame with exactly the kind's columns, in schema order, one row per
        input row. Numeric columns are float64, text columns hold str.
    """
    schema = get_schema(kind)
    frame = _as_frame(rows)
    n_rows = len(frame)

    if n_rows == 0:
        return schema.empty_frame()

    missing = [c for c in schema.columns if c not in frame.columns]
    if missing:
        LOGGER.debug("Columns %s missing for %s; using defaults", missing, schema.kind)

    out: dict[str, pd.Series] = {}
    index = pd.RangeIndex(n_rows)
    for spec in schema.fields:
        if spec.name in frame.columns:
            column = frame[spec.name].reset_index(drop=True)
            out[spec.name] = coerce_numeric(column) if spec.is_numeric else coerce_text(column)
        elif spec.is_numeric:
            out[spec.name] = pd.Series(np.zeros(n_rows), index=index, dtype="float64")
        else:
            out[spec.name] = pd.Series([""] * n_rows, index=index, dtype=object)

    return pd.DataFrame(out, columns=schema.columns)


def coerce_chunks(kind: RecordKind | str, chunks: Iterable[pd.DataFrame]) -> pd.DataFrame:
    """Coerce a stream of raw chunks and concatenate the typed results."""
    typed = [coerce(kind, chunk) for chunk in chunks]
    typed = [t for t in typed if not t.empty]
    if not typed:
        return get_schema(kind).empty_frame()
    return pd.concat(typed, ignore_index=True)
