"""Time bucketing utilities.

All record timestamps are handled as epoch seconds (float). Trace spans are
recorded in milliseconds and are scaled down by their schema before reaching
these helpers.

Bucket labels are minute-granularity strings (``YYYY-MM-DD HH:MM``) rendered
in a configurable display timezone (UTC by default). A bucket grid is either
anchored at a given origin (e.g. the earliest record) or aligned to the wall
clock in the display timezone. Either way a label names the bucket's own start.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Optional, Union

import numpy as np
import pandas as pd

DEFAULT_FREQ = "1min"
DEFAULT_TZ = "UTC"
LABEL_FORMAT = "%Y-%m-%d %H:%M"

TimeLike = Union[int, float, str, datetime, date, pd.Timestamp, np.datetime64]

# Representable by pandas datetimes, with a day of slack for tz shifts and flooring
MIN_SECONDS = (pd.Timestamp.min + pd.Timedelta(days=1)).timestamp()
MAX_SECONDS = (pd.Timestamp.max - pd.Timedelta(days=1)).timestamp()


def on_calendar(seconds: pd.Series) -> pd.Series:
    """Mask of epoch seconds that can be turned into datetimes and labels."""
    seconds = seconds.astype("float64")
    return np.isfinite(seconds) & (seconds >= MIN_SECONDS) & (seconds <= MAX_SECONDS)


def to_epoch_seconds(value: TimeLike, tz: str = DEFAULT_TZ) -> float:
    """Convert a time-like value to epoch seconds.

    Numbers are taken as epoch seconds already. Naive datetimes and strings
    are interpreted in ``tz``.

    Examples:
        >>> to_epoch_seconds(60)
        60.0
        >>> to_epoch_seconds("1970-01-01 00:01:00")
        60.0
    """
    if isinstance(value, (int, float, np.integer, np.floating)) and not isinstance(value, bool):
        return float(value)
    if isinstance(value, str):
        stripped = value.strip()
        try:
            return float(stripped)
        except ValueError:
            pass
        value = stripped

    ts = pd.Timestamp(value)
    if ts is pd.NaT:
        raise ValueError(f"Cannot interpret {value!r} as a time")
    if ts.tzinfo is None:
        ts = ts.tz_localize(tz)
    return ts.timestamp()


def seconds_to_datetimes(seconds: pd.Series, tz: str = DEFAULT_TZ) -> pd.Series:
    """Epoch seconds -> tz-aware datetimes in ``tz``."""
    return pd.to_datetime(seconds, unit="s", utc=True).dt.tz_convert(tz)


def bucket_width(freq: str) -> float:
    """Width in seconds of a fixed-width offset alias such as ``"1min"``."""
    delta = pd.Timedelta(freq)
    if delta is pd.NaT or delta.total_seconds() <= 0:
        raise ValueError(f"Bucket width must be positive, got {freq!r}")
    return delta.total_seconds()


def assign_buckets(
    seconds: pd.Series,
    freq: str = DEFAULT_FREQ,
    tz: str = DEFAULT_TZ,
    origin: Optional[float] = None,
) -> tuple[pd.Series, pd.Series]:
    """Floor epoch seconds to buckets.

    Args:
        seconds: Epoch seconds, all within :func:`on_calendar` range
        freq: pandas offset alias for the bucket width
        tz: Timezone used for alignment and labels
        origin: Epoch seconds the bucket grid is anchored at. None aligns
            buckets to the wall clock in ``tz``.

    Returns:
        (bucket start in epoch seconds, bucket label) series aligned to input
    """
    if seconds.empty:
        return (
            pd.Series(dtype="float64", index=seconds.index),
            pd.Series(dtype=object, index=seconds.index),
        )

    seconds = seconds.astype("float64")
    if origin is not None:
        width = bucket_width(freq)
        starts = (origin + np.floor((seconds - origin) / width) * width).round(3)
        labels = seconds_to_datetimes(starts, tz).dt.strftime(LABEL_FORMAT).astype(object)
        return starts, labels

    # Floor on naive wall-clock time so DST transitions never re-localize
    wall = seconds_to_datetimes(seconds, tz).dt.tz_localize(None)
    floored = wall.dt.floor(freq)
    labels = floored.dt.strftime(LABEL_FORMAT).astype(object)
    offset = (wall - floored) / pd.Timedelta(seconds=1)
    starts = (seconds - offset).round(3)
    return starts.astype("float64"), labels


def format_seconds(seconds: float, tz: str = DEFAULT_TZ, fmt: str = "%Y-%m-%d %H:%M:%S") -> str:
    """Format a single epoch-seconds value for display."""
    return pd.Timestamp(seconds, unit="s", tz="UTC").tz_convert(tz).strftime(fmt)
