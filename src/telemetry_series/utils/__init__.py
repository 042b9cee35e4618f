"""Shared utilities for the telemetry series pipeline."""

from .timebuckets import (
    DEFAULT_FREQ,
    DEFAULT_TZ,
    LABEL_FORMAT,
    to_epoch_seconds,
    seconds_to_datetimes,
    assign_buckets,
    bucket_width,
    format_seconds,
    on_calendar,
)

__all__ = [
    "DEFAULT_FREQ",
    "DEFAULT_TZ",
    "LABEL_FORMAT",
    "to_epoch_seconds",
    "seconds_to_datetimes",
    "assign_buckets",
    "bucket_width",
    "format_seconds",
    "on_calendar",
]
