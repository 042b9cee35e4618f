"""Record filters applied before bucketing.

A time window is inclusive and padded by one second on each side, so a record
at ``start - 1s`` or ``end + 1s`` is still in range and a record two seconds
outside either end is not. Filtering always happens on raw record times,
never on bucket labels.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional

import pandas as pd

from ..schema.records import TIMED_KINDS, RecordKind, get_schema
from ..utils.timebuckets import DEFAULT_TZ, TimeLike, format_seconds, on_calendar, to_epoch_seconds

ALL = "all"
DEFAULT_PAD_SECONDS = 1.0


@dataclass(frozen=True)
class TimeWindow:
    """Closed time range in epoch seconds."""

    start: float
    end: float
    pad_seconds: float = DEFAULT_PAD_SECONDS

    @classmethod
    def parse(
        cls,
        start: TimeLike,
        end: TimeLike,
        tz: str = DEFAULT_TZ,
        pad_seconds: float = DEFAULT_PAD_SECONDS,
    ) -> "TimeWindow":
        """Build a window from numbers, ISO strings or datetimes."""
        return cls(
            start=to_epoch_seconds(start, tz),
            end=to_epoch_seconds(end, tz),
            pad_seconds=pad_seconds,
        )

    @property
    def lower(self) -> float:
        return self.start - self.pad_seconds

    @property
    def upper(self) -> float:
        return self.end + self.pad_seconds

    def contains(self, seconds: float) -> bool:
        return self.lower <= seconds <= self.upper

    def mask(self, seconds: pd.Series) -> pd.Series:
        """Vectorized :meth:`contains`."""
        return (seconds >= self.lower) & (seconds <= self.upper)

    def describe(self, tz: str = DEFAULT_TZ) -> str:
        return f"{format_seconds(self.start, tz)} .. {format_seconds(self.end, tz)}"


def is_all(entity: Optional[str]) -> bool:
    """``None`` and ``"all"`` both mean no entity filter."""
    return entity is None or entity == ALL


def record_seconds(records: pd.DataFrame, kind: RecordKind | str) -> pd.Series:
    """Record times in epoch seconds (trace milliseconds are scaled)."""
    schema = get_schema(kind)
    if schema.timestamp_field is None:
        raise ValueError(f"Records of kind '{schema.kind}' carry no timestamp")
    return records[schema.timestamp_field].astype("float64") / schema.timestamp_scale


def filter_records(
    records: pd.DataFrame,
    kind: RecordKind | str,
    entity: Optional[str] = None,
    window: Optional[TimeWindow] = None,
) -> pd.DataFrame:
    """Apply entity and time window filters to a typed record frame.

    Args:
        records: Typed records of a single kind
        kind: Their kind
        entity: Service id (log/metric_app) or component id; None/"all" = every one
        window: Optional time window

    Returns:
        Filtered copy, input order preserved
    """
    schema = get_schema(kind)
    mask = pd.Series(True, index=records.index)

    if not is_all(entity) and schema.entity_field is not None:
        mask &= records[schema.entity_field] == entity

    if window is not None:
        mask &= window.mask(record_seconds(records, kind))

    return records.loc[mask].copy()


def data_time_range(datasets: Iterable) -> Optional[tuple[float, float]]:
    """Overall (min, max) record time in epoch seconds across datasets.

    Only timed kinds contribute. Zero timestamps are coerced placeholders and
    are ignored, as are times too far out to be placed on a calendar.

    Args:
        datasets: Objects with ``kind`` and ``records`` attributes

    Returns:
        (min_seconds, max_seconds), or None when nothing is timed
    """
    lows: list[float] = []
    highs: list[float] = []
    for dataset in datasets:
        kind = RecordKind.parse(dataset.kind)
        if kind not in TIMED_KINDS or dataset.records.empty:
            continue
        seconds = record_seconds(dataset.records, kind)
        seconds = seconds[(seconds != 0) & on_calendar(seconds)]
        if seconds.empty:
            continue
        lows.append(float(seconds.min()))
        highs.append(float(seconds.max()))

    if not lows:
        return None
    return min(lows), max(highs)


def clamp_window(window: TimeWindow, data_range: Optional[tuple[float, float]]) -> TimeWindow:
    """Clamp both window ends into the data range; start never exceeds end."""
    if data_range is None:
        return window
    low, high = data_range

    start = min(max(window.start, low), high)
    end = min(max(window.end, low), high)
    if start > end:
        start = end

    return TimeWindow(start=start, end=end, pad_seconds=window.pad_seconds)
