"""Time-bucket aggregation for telemetry records.

Records are floored to fixed-width buckets (one minute by default) and
summarised per kind. By default the bucket grid starts at the earliest
non-zero record time of the input, so records less than one bucket width
after it always share a bucket. That grid moves with the input: adding an
earlier file shifts every bucket edge, and a label such as "00:16" names the
minute a bucket starts in, so it may cover 00:16:40 to 00:17:40.
``origin="epoch"`` aligns buckets to the wall clock instead, giving stable
edges where each label covers exactly its own minute.

Output is a long table with one row per (bucket, group key):

| Kind                | Group key | Columns                                          |
|---------------------|-----------|--------------------------------------------------|
| log, metric_app     | service   | rr, sr, mrt (means), count                       |
| metric_container    | kpi       | component, avg, max, min, count                  |
| trace_span          | -         | count, avg_duration, max_duration, min_duration  |

Every table also carries ``time`` (bucket label) and ``timestamp`` (bucket
start, epoch seconds) and is sorted by timestamp, then label, then group key.
An empty group key (e.g. a blank KPI name) is kept as its own group. Records
whose time cannot be placed on a calendar (e.g. millisecond values in a seconds
column) are skipped with a warning.
"""

from __future__ import annotations

import logging
from typing import Optional

import pandas as pd

from ..schema.records import RecordKind
from ..utils.timebuckets import DEFAULT_FREQ, DEFAULT_TZ, assign_buckets, on_calendar
from .filters import TimeWindow, filter_records, record_seconds

LOGGER = logging.getLogger(__name__)

SERVICE_KINDS = (RecordKind.LOG, RecordKind.METRIC_APP)

POINT_COLUMNS: dict[RecordKind, list[str]] = {
    RecordKind.LOG: ["time", "timestamp", "service", "rr", "sr", "mrt", "count"],
    RecordKind.METRIC_APP: ["time", "timestamp", "service", "rr", "sr", "mrt", "count"],
    RecordKind.METRIC_CONTAINER: ["time", "timestamp", "kpi", "component", "avg", "max", "min", "count"],
    RecordKind.TRACE_SPAN: ["time", "timestamp", "count", "avg_duration", "max_duration", "min_duration"],
}

GROUP_COLUMN: dict[RecordKind, Optional[str]] = {
    RecordKind.LOG: "service",
    RecordKind.METRIC_APP: "service",
    RecordKind.METRIC_CONTAINER: "kpi",
    RecordKind.TRACE_SPAN: None,
}

DEFAULT_MAX_SERVICES = 5

ORIGIN_START = "start"
ORIGIN_EPOCH = "epoch"
BUCKET_ORIGINS = (ORIGIN_START, ORIGIN_EPOCH)


def empty_points(kind: RecordKind | str) -> pd.DataFrame:
    """Zero-row bucketed point table for a kind."""
    return pd.DataFrame(columns=POINT_COLUMNS[RecordKind.parse(kind)])


def sort_points(points: pd.DataFrame, group_col: Optional[str] = None) -> pd.DataFrame:
    """Sort by bucket start, then label, then group key (stable)."""
    keys = ["timestamp", "time"]
    if group_col is not None and group_col in points.columns:
        keys.append(group_col)
    return points.sort_values(keys, kind="mergesort").reset_index(drop=True)


class BucketAggregator:
    """Aggregate typed records into time-bucketed summary rows."""

    def __init__(
        self,
        freq: str = DEFAULT_FREQ,
        tz: str = DEFAULT_TZ,
        max_services: int = DEFAULT_MAX_SERVICES,
        origin: str = ORIGIN_START,
    ):
        """Initialize aggregator.

        Args:
            freq: Bucket width as a pandas offset alias (e.g. "1min")
            tz: Timezone for bucket labels (and alignment with origin="epoch")
            max_services: Cap on distinct services for log / metric_app
            origin: "start" anchors buckets at the earliest record,
                "epoch" at wall-clock boundaries
        """
        if origin not in BUCKET_ORIGINS:
            raise ValueError(f"origin must be one of {BUCKET_ORIGINS}, got {origin!r}")
        self.freq = freq
        self.tz = tz
        self.max_services = max_services
        self.origin = origin

    def bucket_origin(self, records: pd.DataFrame, kind: RecordKind | str) -> Optional[float]:
        """Epoch seconds the bucket grid starts at; None for wall-clock alignment."""
        if self.origin == ORIGIN_EPOCH or records.empty:
            return None
        seconds = record_seconds(records, kind)
        seconds = seconds[(seconds != 0) & on_calendar(seconds)]
        if seconds.empty:
            return None
        return float(seconds.min())

    def add_bucket_columns(
        self,
        records: pd.DataFrame,
        kind: RecordKind | str,
        origin: Optional[float] = None,
    ) -> pd.DataFrame:
        """Add ``bucket_start`` (epoch seconds) and ``time`` (label) columns.

        The raw record timestamp is kept in ``seconds`` (epoch seconds).
        """
        df = records.copy()
        df["seconds"] = record_seconds(df, kind)
        starts, labels = assign_buckets(df["seconds"], freq=self.freq, tz=self.tz, origin=origin)
        df["bucket_start"] = starts
        df["time"] = labels
        return df

    def aggregate(
        self,
        records: pd.DataFrame,
        kind: RecordKind | str,
        entity: Optional[str] = None,
        window: Optional[TimeWindow] = None,
    ) -> pd.DataFrame:
        """Filter, bucket and summarise records of one kind.

        Args:
            records: Typed records (see :func:`~telemetry_series.ingest.coercion.coerce`)
            kind: Record kind of ``records``
            entity: Service or component filter; None / "all" keeps all
            window: Optional time window, applied before bucketing

        Returns:
            Bucketed point table (see module docstring)

        Raises:
            ValueError: The kind has no time dimension (record, query)
        """
        kind = RecordKind.parse(kind)
        if kind not in POINT_COLUMNS:
            raise ValueError(f"Records of kind '{kind}' cannot be aggregated over time")

        # Anchor on the unfiltered records so filters never shift bucket edges
        origin = self.bucket_origin(records, kind)

        filtered = filter_records(records, kind, entity=entity, window=window)
        filtered = self._drop_off_calendar(filtered, kind)
        if filtered.empty:
            return empty_points(kind)

        df = self.add_bucket_columns(filtered, kind, origin=origin)

        if kind in SERVICE_KINDS:
            points = self._aggregate_services(df)
        elif kind == RecordKind.METRIC_CONTAINER:
            points = self._aggregate_kpis(df)
        else:
            points = self._aggregate_spans(df)

        points = sort_points(points[POINT_COLUMNS[kind]], GROUP_COLUMN[kind])
        LOGGER.debug(
            "Aggregated %d %s records into %d points (%s buckets)",
            len(filtered), kind, len(points), self.freq,
        )
        return points

    def _drop_off_calendar(self, records: pd.DataFrame, kind: RecordKind) -> pd.DataFrame:
        usable = on_calendar(record_seconds(records, kind))
        skipped = int((~usable).sum())
        if skipped:
            LOGGER.warning("Skipping %d %s records with timestamps outside the calendar range", skipped, kind)
            return records.loc[usable]
        return records

    def _aggregate_services(self, df: pd.DataFrame) -> pd.DataFrame:
        # First N distinct services in encounter order
        services = list(pd.unique(df["tc"]))[: self.max_services]
        df = df[df["tc"].isin(services)]

        result = df.groupby(["bucket_start", "tc"], sort=False, as_index=False).agg(
            time=("time", "first"),
            rr=("rr", "mean"),
            sr=("sr", "mean"),
            mrt=("mrt", "mean"),
            count=("rr", "size"),
        )
        return result.rename(columns={"bucket_start": "timestamp", "tc": "service"})

    def _aggregate_kpis(self, df: pd.DataFrame) -> pd.DataFrame:
        result = df.groupby(["bucket_start", "kpi_name"], sort=False, as_index=False).agg(
            time=("time", "first"),
            component=("cmdb_id", "first"),
            avg=("value", "mean"),
            max=("value", "max"),
            min=("value", "min"),
            count=("value", "size"),
        )
        return result.rename(columns={"bucket_start": "timestamp", "kpi_name": "kpi"})

    def _aggregate_spans(self, df: pd.DataFrame) -> pd.DataFrame:
        result = df.groupby("bucket_start", sort=False, as_index=False).agg(
            time=("time", "first"),
            count=("duration", "size"),
            avg_duration=("duration", "mean"),
            max_duration=("duration", "max"),
            min_duration=("duration", "min"),
        )
        return result.rename(columns={"bucket_start": "timestamp"})


def aggregate_records(
    records: pd.DataFrame,
    kind: RecordKind | str,
    entity: Optional[str] = None,
    window: Optional[TimeWindow] = None,
    freq: str = DEFAULT_FREQ,
    tz: str = DEFAULT_TZ,
    max_services: int = DEFAULT_MAX_SERVICES,
    origin: str = ORIGIN_START,
) -> pd.DataFrame:
    """Aggregate records with a one-off :class:`BucketAggregator`."""
    agg = BucketAggregator(freq=freq, tz=tz, max_services=max_services, origin=origin)
    return agg.aggregate(records, kind, entity=entity, window=window)
