"""Streaming ingestion: file discovery, CSV reading and record typing."""

from .file_scanner import FileScanner, DataFile
from .streaming_reader import (
    StreamingReader,
    ParseIssue,
    ParseReport,
    ParseResult,
)
from .coercion import (
    coerce,
    coerce_chunks,
    coerce_numeric,
    coerce_text,
    to_number,
    to_text,
)
from .pipeline import (
    IngestPipeline,
    LoadedDataset,
    LoadResult,
    SeriesResult,
    records_for,
    run_ingest,
)

__all__ = [
    "FileScanner",
    "DataFile",
    "StreamingReader",
    "ParseIssue",
    "ParseReport",
    "ParseResult",
    "coerce",
    "coerce_chunks",
    "coerce_numeric",
    "coerce_text",
    "to_number",
    "to_text",
    "IngestPipeline",
    "LoadedDataset",
    "LoadResult",
    "SeriesResult",
    "records_for",
    "run_ingest",
]
