"""Telemetry CSV ingestion, time-bucket aggregation and chart downsampling."""

from .config import PipelineConfig, load_config
from .exceptions import TelemetrySeriesError, UnknownKindError, UnreadableInputError
from .ingest import IngestPipeline, LoadedDataset, LoadResult, SeriesResult
from .schema import RecordKind, detect_kind, extract_date_label

__version__ = "0.1.0"

__all__ = [
    "PipelineConfig",
    "load_config",
    "TelemetrySeriesError",
    "UnknownKindError",
    "UnreadableInputError",
    "IngestPipeline",
    "LoadedDataset",
    "LoadResult",
    "SeriesResult",
    "RecordKind",
    "detect_kind",
    "extract_date_label",
]
