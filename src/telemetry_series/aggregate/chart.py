"""Chart-shaped views of bucketed points.

The aggregation engine returns long tables (one row per bucket and group
key). Line charts want one row per bucket with a column per series; these
helpers pivot the long tables and list the selectable entities.
"""

from __future__ import annotations

from typing import Iterable, Optional, Sequence

import pandas as pd

from ..schema.records import RecordKind

SERVICE_METRICS = ("rr", "sr", "mrt")
BUCKET_COLUMNS = ["time", "timestamp"]
DEFAULT_KPI_LIMIT = 20


def _bucket_frame(points: pd.DataFrame) -> pd.DataFrame:
    buckets = points[BUCKET_COLUMNS].drop_duplicates(subset=BUCKET_COLUMNS)
    return buckets.sort_values(["timestamp", "time"], kind="mergesort").reset_index(drop=True)


def pivot_services(points: pd.DataFrame) -> pd.DataFrame:
    """One row per bucket with ``{service}_rr``, ``{service}_sr``, ``{service}_mrt``.

    Args:
        points: log / metric_app bucketed points

    Returns:
        Wide frame ordered by bucket; services keep their first-seen order.
        Rows are keyed by ``timestamp`` (bucket start). ``time`` is the minute
        that start falls in, so with a grid anchored at the first record a
        label such as "00:16" can cover 00:16:40 to 00:17:40.
    """
    if points.empty:
        return pd.DataFrame(columns=BUCKET_COLUMNS)

    services = list(pd.unique(points["service"]))
    wide = points.pivot(index=BUCKET_COLUMNS, columns="service", values=list(SERVICE_METRICS))
    wide.columns = [f"{service}_{metric}" for metric, service in wide.columns]
    wide = wide.reset_index()

    ordered = [f"{service}_{metric}" for service in services for metric in SERVICE_METRICS]
    result = _bucket_frame(points).merge(wide, on=BUCKET_COLUMNS, how="left")
    return result[BUCKET_COLUMNS + ordered]


def select_kpis(
    points: pd.DataFrame,
    kpis: Optional[Sequence[str]] = None,
    limit: int = DEFAULT_KPI_LIMIT,
) -> list[str]:
    """KPIs to chart: the allow-list if given, else the first ``limit`` seen."""
    if kpis:
        return list(dict.fromkeys(kpis))
    if points.empty:
        return []
    seen = [k for k in pd.unique(points["kpi"]) if k]
    return seen[:limit]


def pivot_kpis(
    points: pd.DataFrame,
    kpis: Optional[Sequence[str]] = None,
    limit: int = DEFAULT_KPI_LIMIT,
) -> pd.DataFrame:
    """One row per bucket with one mean-value column per selected KPI.

    Args:
        points: metric_container bucketed points
        kpis: KPI allow-list; unset charts the first ``limit`` KPIs encountered
        limit: Cap used when no allow-list is given

    Returns:
        Wide frame ordered by bucket. Every bucket of ``points`` is present even
        when none of the selected KPIs has a value there.
    """
    if points.empty:
        return pd.DataFrame(columns=BUCKET_COLUMNS)

    selected = select_kpis(points, kpis, limit)
    chosen = points[points["kpi"].isin(selected)]

    result = _bucket_frame(points)
    if chosen.empty:
        return result

    wide = chosen.pivot_table(
        index=BUCKET_COLUMNS, columns="kpi", values="avg", aggfunc="mean"
    ).reset_index()
    wide.columns.name = None
    result = result.merge(wide, on=BUCKET_COLUMNS, how="left")

    ordered = [k for k in selected if k in result.columns]
    return result[BUCKET_COLUMNS + ordered]


def _distinct(values: Iterable[pd.Series]) -> list[str]:
    found: set[str] = set()
    for series in values:
        found.update(v for v in series.unique() if v)
    return sorted(found)


def list_services(datasets: Iterable) -> list[str]:
    """Sorted non-empty service ids across log / metric_app datasets."""
    kinds = (RecordKind.LOG, RecordKind.METRIC_APP)
    return _distinct(d.records["tc"] for d in datasets if RecordKind.parse(d.kind) in kinds)


def list_components(datasets: Iterable) -> list[str]:
    """Sorted non-empty component ids across metric_container / trace_span datasets."""
    kinds = (RecordKind.METRIC_CONTAINER, RecordKind.TRACE_SPAN)
    return _distinct(d.records["cmdb_id"] for d in datasets if RecordKind.parse(d.kind) in kinds)


def list_kpis(points: pd.DataFrame) -> list[str]:
    """Sorted non-empty KPI names of metric_container points."""
    if points.empty:
        return []
    return _distinct([points["kpi"]])
