"""Time-bucket aggregation, chart pivots and downsampling."""

from .filters import (
    ALL,
    TimeWindow,
    filter_records,
    record_seconds,
    data_time_range,
    clamp_window,
)
from .bucket_aggregator import (
    BucketAggregator,
    BUCKET_ORIGINS,
    POINT_COLUMNS,
    aggregate_records,
    empty_points,
)
from .chart import (
    pivot_services,
    pivot_kpis,
    select_kpis,
    list_services,
    list_components,
    list_kpis,
)
from .downsample import (
    DEFAULT_MAX_POINTS,
    downsample,
    stride_indices,
)

__all__ = [
    "ALL",
    "TimeWindow",
    "filter_records",
    "record_seconds",
    "data_time_range",
    "clamp_window",
    "BucketAggregator",
    "BUCKET_ORIGINS",
    "POINT_COLUMNS",
    "aggregate_records",
    "empty_points",
    "pivot_services",
    "pivot_kpis",
    "select_kpis",
    "list_services",
    "list_components",
    "list_kpis",
    "DEFAULT_MAX_POINTS",
    "downsample",
    "stride_indices",
]
