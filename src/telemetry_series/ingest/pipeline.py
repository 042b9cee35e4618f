"""Ingestion pipeline: file name -> kind -> streamed rows -> typed records.

Also hosts the consumer-facing series builder that runs aggregation, chart
pivoting and downsampling over loaded datasets.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import IO, Iterable, Optional, Sequence, Union

import pandas as pd

from ..aggregate.bucket_aggregator import BucketAggregator, empty_points
from ..aggregate.chart import pivot_kpis, pivot_services
from ..aggregate.downsample import downsample
from ..aggregate.filters import TimeWindow
from ..config import PipelineConfig
from ..exceptions import UnknownKindError, UnreadableInputError
from ..schema.kinds import detect_kind, extract_date_label
from ..schema.records import RecordKind, get_schema
from .coercion import coerce_chunks
from .file_scanner import FileScanner
from .streaming_reader import CsvSource, ParseReport, StreamingReader, source_name

LOGGER = logging.getLogger(__name__)

# A source is a path, or a (file name, byte stream) pair
NamedSource = Union[str, Path, tuple[str, IO[bytes]]]


@dataclass(frozen=True)
class LoadedDataset:
    """Typed records parsed from one file."""

    kind: RecordKind
    date: Optional[str]
    records: pd.DataFrame = field(compare=False, repr=False)
    file_name: str
    report: ParseReport = field(default_factory=ParseReport, compare=False, repr=False)

    @property
    def row_count(self) -> int:
        return len(self.records)


@dataclass
class LoadResult:
    """Outcome of a multi-file load."""

    datasets: list[LoadedDataset] = field(default_factory=list)
    failures: dict[str, str] = field(default_factory=dict)
    skipped: list[str] = field(default_factory=list)
    elapsed_seconds: float = 0.0

    def summary(self) -> dict:
        total_rows = sum(d.row_count for d in self.datasets)
        return {
            "status": "success" if self.datasets else "no_data",
            "files_loaded": len(self.datasets),
            "files_failed": len(self.failures),
            "files_skipped": len(self.skipped),
            "empty_files": sum(1 for d in self.datasets if d.row_count == 0),
            "total_rows": total_rows,
            "dropped_empty_rows": sum(d.report.dropped_empty for d in self.datasets),
            "parse_warnings": sum(len(d.report.warnings) for d in self.datasets),
            "parse_errors": sum(len(d.report.errors) for d in self.datasets),
            "elapsed_seconds": round(self.elapsed_seconds, 2),
        }


@dataclass
class SeriesResult:
    """Chart-ready series for one kind."""

    kind: RecordKind
    points: pd.DataFrame
    chart: pd.DataFrame
    total_points: int

    @property
    def sampled(self) -> bool:
        return len(self.chart) < self.total_points


def records_for(
    datasets: Iterable[LoadedDataset],
    kind: RecordKind | str,
    date: Optional[str] = None,
) -> pd.DataFrame:
    """Concatenate the records of every dataset of ``kind`` (and ``date``)."""
    kind = RecordKind.parse(kind)
    frames = [
        d.records
        for d in datasets
        if d.kind == kind and (date is None or d.date == date) and not d.records.empty
    ]
    if not frames:
        return get_schema(kind).empty_frame()
    return pd.concat(frames, ignore_index=True)


class IngestPipeline:
    """Complete ingestion and series pipeline."""

    def __init__(self, config: Optional[PipelineConfig] = None):
        """Initialize pipeline.

        Args:
            config: Pipeline settings; defaults when omitted
        """
        self.config = (config or PipelineConfig()).validate()

        self.reader = StreamingReader(chunk_size=self.config.chunk_size)
        self.aggregator = BucketAggregator(
            freq=self.config.bucket_freq,
            tz=self.config.timezone,
            max_services=self.config.max_services,
            origin=self.config.bucket_origin,
        )

    def load_file(
        self,
        source: CsvSource,
        file_name: Optional[str] = None,
        strict: bool = False,
    ) -> Optional[LoadedDataset]:
        """Parse one CSV source into a LoadedDataset.

        Args:
            source: Path or byte stream
            file_name: Name driving kind / date detection; defaults to the source's name
            strict: Raise UnknownKindError instead of returning None

        Returns:
            LoadedDataset, or None when the file name matches no kind

        Raises:
            UnreadableInputError: The stream cannot be opened or decoded
        """
        name = file_name or Path(source_name(source)).name
        kind = detect_kind(name)
        if kind is None:
            if strict:
                raise UnknownKindError(name)
            LOGGER.warning("Unknown file type: %s", name)
            return None

        report = ParseReport()
        records = coerce_chunks(kind, self.reader.iter_chunks(source, report=report))

        if records.empty:
            LOGGER.warning("No data parsed from %s", name)
        else:
            LOGGER.info("Parsed %d %s rows from %s", len(records), kind, name)

        return LoadedDataset(
            kind=kind,
            date=extract_date_label(name),
            records=records,
            file_name=name,
            report=report,
        )

    def load_files(self, sources: Iterable[NamedSource]) -> LoadResult:
        """Load many sources; failures are recorded and never stop the batch.

        Args:
            sources: Paths, or ``(file name, stream)`` pairs

        Returns:
            LoadResult with every successfully parsed file
        """
        start_time = datetime.now()
        result = LoadResult()

        for source in sources:
            if isinstance(source, tuple):
                name, stream = source
            else:
                name, stream = Path(source).name, source

            try:
                dataset = self.load_file(stream, file_name=name, strict=True)
            except UnknownKindError:
                LOGGER.warning("Skipping %s: unknown file type", name)
                result.skipped.append(name)
                continue
            except (UnreadableInputError, ValueError, KeyError, OSError) as e:
                LOGGER.error("Error loading %s: %s", name, e)
                result.failures[name] = str(e)
                continue

            result.datasets.append(dataset)

        result.elapsed_seconds = (datetime.now() - start_time).total_seconds()
        stats = result.summary()
        LOGGER.info(
            "Loaded %d files (%d failed, %d skipped), %d rows in %.1fs",
            stats["files_loaded"], stats["files_failed"], stats["files_skipped"],
            stats["total_rows"], stats["elapsed_seconds"],
        )
        return result

    def load_directory(self, root: str | Path) -> LoadResult:
        """Load every ``*.csv`` under ``root`` (or ``root`` itself if a file)."""
        files = FileScanner(root).scan()
        LOGGER.info("Found %d CSV files under %s", len(files), root)
        return self.load_files(f.path for f in files)

    def window(self, start, end) -> TimeWindow:
        """Time window in the configured timezone and padding."""
        return TimeWindow.parse(
            start, end, tz=self.config.timezone, pad_seconds=self.config.time_pad_seconds
        )

    def aggregate(
        self,
        datasets: Sequence[LoadedDataset],
        kind: RecordKind | str,
        entity: Optional[str] = None,
        window: Optional[TimeWindow] = None,
    ) -> pd.DataFrame:
        """Aggregate all datasets of one kind into bucketed points."""
        kind = RecordKind.parse(kind)
        records = records_for(datasets, kind)
        if records.empty:
            return empty_points(kind)
        return self.aggregator.aggregate(records, kind, entity=entity, window=window)

    def build_series(
        self,
        datasets: Sequence[LoadedDataset],
        kind: RecordKind | str,
        entity: Optional[str] = None,
        window: Optional[TimeWindow] = None,
        kpis: Optional[Sequence[str]] = None,
        max_points: Optional[int] = None,
    ) -> SeriesResult:
        """Aggregate, pivot to one row per bucket, and downsample.

        Args:
            datasets: Loaded datasets (other kinds are ignored)
            kind: log, metric_app, metric_container or trace_span
            entity: Service / component filter; None or "all" keeps all
            window: Optional time window
            kpis: metric_container KPI allow-list; unset = first ``max_kpis`` seen
            max_points: Point budget; defaults to the configured one

        Returns:
            SeriesResult with the long points and the downsampled chart frame
        """
        kind = RecordKind.parse(kind)
        budget = max_points or self.config.max_points

        points = self.aggregate(datasets, kind, entity=entity, window=window)

        if kind in (RecordKind.LOG, RecordKind.METRIC_APP):
            chart = pivot_services(points)
        elif kind == RecordKind.METRIC_CONTAINER:
            chart = pivot_kpis(points, kpis=kpis, limit=self.config.max_kpis)
        else:
            chart = points

        total = len(chart)
        chart = downsample(chart, budget)
        if len(chart) < total:
            LOGGER.info("Sampled %s series from %d to %d points", kind, total, len(chart))

        return SeriesResult(kind=kind, points=points, chart=chart, total_points=total)


def run_ingest(
    paths: Sequence[str | Path],
    config: Optional[PipelineConfig] = None,
) -> LoadResult:
    """Load files and directories with a fresh pipeline.

    Args:
        paths: CSV files and / or directories to walk

    Returns:
        Combined LoadResult
    """
    pipeline = IngestPipeline(config)
    combined = LoadResult()

    for path in paths:
        result = pipeline.load_directory(path)
        combined.datasets.extend(result.datasets)
        combined.failures.update(result.failures)
        combined.skipped.extend(result.skipped)
        combined.elapsed_seconds += result.elapsed_seconds

    return combined
