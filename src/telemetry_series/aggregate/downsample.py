"""Uniform stride downsampling for chart series.

Keeps every ``step``-th point, ``step = ceil(n / max_points)``, starting at
the first point, then replaces the last kept point with the true last point.
The output therefore never exceeds ``max_points``, keeps chronological order,
and always starts and ends with the input's endpoints. Peaks between stride
points can be lost; the series is meant for trend lines, not extrema.
"""

from __future__ import annotations

import math
from typing import Any, Callable, Mapping, Optional, Sequence, TypeVar, Union

import numpy as np
import pandas as pd

DEFAULT_MAX_POINTS = 1500

T = TypeVar("T")


def check_budget(max_points: int) -> None:
    if max_points < 2:
        raise ValueError(f"max_points must be at least 2, got {max_points}")


def stride_indices(n: int, max_points: int) -> np.ndarray:
    """Positions kept when sampling ``n`` ordered points down to ``max_points``."""
    check_budget(max_points)
    if n <= max_points:
        return np.arange(n)

    step = math.ceil(n / max_points)
    idx = np.arange(0, n, step)
    idx[-1] = n - 1
    return idx


def order_points(points: pd.DataFrame) -> pd.DataFrame:
    """Chronological order: bucket start when present, then bucket label."""
    keys = [c for c in ("timestamp", "time") if c in points.columns]
    if not keys:
        return points
    return points.sort_values(keys, kind="mergesort")


def downsample_frame(points: pd.DataFrame, max_points: int = DEFAULT_MAX_POINTS) -> pd.DataFrame:
    """Downsample a point table; short tables are returned unchanged."""
    check_budget(max_points)
    if len(points) <= max_points:
        return points

    ordered = order_points(points)
    idx = stride_indices(len(ordered), max_points)
    return ordered.iloc[idx].reset_index(drop=True)


def point_order(point: Mapping[str, Any]) -> tuple:
    """Sort key for point mappings: bucket start, then bucket label."""
    return (point.get("timestamp") or 0, str(point.get("time") or ""))


def downsample_sequence(
    points: Sequence[T],
    max_points: int = DEFAULT_MAX_POINTS,
    key: Optional[Callable[[T], object]] = None,
) -> list[T]:
    """Downsample a plain sequence.

    Ordered by ``key`` when given. Without one, mappings are ordered with
    :func:`point_order` and anything else is taken as already ordered.
    """
    check_budget(max_points)
    if len(points) <= max_points:
        return list(points)

    if key is None and all(isinstance(p, Mapping) for p in points):
        key = point_order
    ordered = sorted(points, key=key) if key is not None else list(points)
    return [ordered[i] for i in stride_indices(len(ordered), max_points)]


def downsample(
    points: Union[pd.DataFrame, Sequence[T]],
    max_points: int = DEFAULT_MAX_POINTS,
    key: Optional[Callable[[T], object]] = None,
) -> Union[pd.DataFrame, list[T]]:
    """Reduce an ordered series to at most ``max_points`` points.

    Args:
        points: Point table (sorted by ``timestamp`` then ``time``) or a sequence
        max_points: Point budget, at least 2
        key: Sort key for sequences (defaults to :func:`point_order` for mappings)

    Returns:
        The input itself when it already fits, otherwise the sampled series
    """
    if isinstance(points, pd.DataFrame):
        return downsample_frame(points, max_points)
    return downsample_sequence(points, max_points, key=key)
