"""Streaming CSV reader for telemetry exports.

Provides chunked, pull-based reading of large comma-delimited files. Rows are
produced as trimmed strings; typing happens later in :mod:`.coercion`.

Problems are collected rather than raised:

- *warnings* (non-critical): rows with fewer fields than the header. The row
  is kept and the missing cells read as empty strings.
- *errors* (critical): rows with more fields than the header and quoting /
  structural failures. The offending row is dropped and reading continues.
  An unterminated quote swallows the rest of the file into one broken row,
  so every row before it is still produced.

Only a stream that cannot be opened or decoded at all raises
:class:`~telemetry_series.exceptions.UnreadableInputError`.
"""

from __future__ import annotations

import csv
import io
import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import IO, Iterator, Optional, Union

import pandas as pd

from ..exceptions import UnreadableInputError

LOGGER = logging.getLogger(__name__)

CsvSource = Union[str, Path, IO[bytes], IO[str]]

DELIMITER = ","
ENCODING = "utf-8-sig"
PROGRESS_EVERY = 100_000

WARNING = "warning"
ERROR = "error"


@dataclass(frozen=True)
class ParseIssue:
    """A single row- or file-level parse problem."""

    severity: str        # WARNING or ERROR
    code: str            # e.g. "TooFewFields", "TooManyFields", "Quotes"
    message: str
    row: Optional[int] = None

    @property
    def critical(self) -> bool:
        return self.severity == ERROR


@dataclass
class ParseReport:
    """Completion result of one streaming parse."""

    source: str = "<stream>"
    rows: int = 0
    dropped_empty: int = 0
    issues: list[ParseIssue] = field(default_factory=list)
    completed: bool = False

    @property
    def warnings(self) -> list[ParseIssue]:
        return [i for i in self.issues if not i.critical]

    @property
    def errors(self) -> list[ParseIssue]:
        return [i for i in self.issues if i.critical]

    @property
    def has_errors(self) -> bool:
        return any(i.critical for i in self.issues)

    def add(self, severity: str, code: str, message: str, row: Optional[int] = None) -> None:
        self.issues.append(ParseIssue(severity=severity, code=code, message=message, row=row))

    def log(self) -> None:
        """Emit the end-of-parse summary."""
        LOGGER.info(
            "CSV parsing completed for %s. Rows: %d, dropped empty: %d, errors: %d",
            self.source, self.rows, self.dropped_empty, len(self.errors),
        )
        if self.warnings:
            LOGGER.debug("Non-critical CSV parsing warnings for %s: %s", self.source, self.warnings)
        if self.errors:
            LOGGER.error("Critical CSV parsing errors for %s: %s", self.source, self.errors)
        if self.rows == 0:
            LOGGER.warning("No rows parsed from %s; file might be empty or corrupted", self.source)

    def to_dict(self) -> dict:
        return {
            "source": self.source,
            "rows": self.rows,
            "dropped_empty": self.dropped_empty,
            "warnings": len(self.warnings),
            "errors": len(self.errors),
            "completed": self.completed,
        }


@dataclass
class ParseResult:
    """Materialized rows plus the report that produced them."""

    rows: pd.DataFrame
    report: ParseReport

    def __len__(self) -> int:
        return len(self.rows)


def source_name(source: CsvSource) -> str:
    """Human-readable name of a CSV source."""
    if isinstance(source, (str, Path)):
        return str(source)
    return str(getattr(source, "name", "<stream>"))


def header_names(fields: list[str]) -> list[str]:
    """Trimmed header cells; repeats get pandas-style ``.1``, ``.2`` suffixes."""
    names: list[str] = []
    seen: dict[str, int] = {}
    for i, cell in enumerate(fields):
        name = cell.strip()
        if i == 0:
            name = name.lstrip("\ufeff")
        if name in seen:
            seen[name] += 1
            name = f"{name}.{seen[name]}"
        else:
            seen[name] = 0
        names.append(name)
    return names


@contextmanager
def open_text(source: CsvSource) -> Iterator[IO[str]]:
    """Open a path or wrap a binary stream as text; caller's streams stay open."""
    if isinstance(source, (str, Path)):
        try:
            handle = open(source, encoding=ENCODING, newline="")
        except OSError as e:
            raise UnreadableInputError(source_name(source), str(e)) from e
        with handle:
            yield handle
    elif isinstance(source, io.TextIOBase):
        yield source
    else:
        wrapper = io.TextIOWrapper(source, encoding=ENCODING, newline="")
        try:
            yield wrapper
        finally:
            wrapper.detach()


class StreamingReader:
    """Memory-efficient, chunked reader for comma-delimited telemetry CSV."""

    def __init__(self, chunk_size: int = 50_000):
        """Initialize reader.

        Args:
            chunk_size: Number of rows per chunk
        """
        if chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}")
        self.chunk_size = chunk_size

    def iter_chunks(
        self,
        source: CsvSource,
        header: bool = True,
        report: Optional[ParseReport] = None,
    ) -> Iterator[pd.DataFrame]:
        """Iterate over the file in chunks of trimmed string cells.

        Records are pulled one at a time and batched into DataFrames, so a
        malformed record costs only itself. Row numbers in issues count data
        records from 1, header and blank lines excluded.

        Args:
            source: Path or binary/text file-like object
            header: First row holds column names; otherwise columns are "0", "1", ...
            report: Report to fill in; a fresh one is used when omitted

        Yields:
            DataFrame chunks with only valid (not all-empty) rows

        Raises:
            UnreadableInputError: The source cannot be opened or decoded
        """
        if report is None:
            report = ParseReport()
        name = source_name(source)
        report.source = name

        with open_text(source) as handle:
            records = csv.reader(handle, delimiter=DELIMITER, strict=True)
            columns: Optional[list[str]] = None
            batch: list[list[str]] = []
            record_no = 0

            while True:
                try:
                    fields = next(records)
                except StopIteration:
                    break
                except (OSError, UnicodeDecodeError) as e:
                    raise UnreadableInputError(name, str(e)) from e
                except csv.Error as e:
                    if columns is None and header:
                        report.add(ERROR, "Quotes", f"Unreadable header: {e}", row=None)
                        LOGGER.error("Stopped reading %s: header is malformed (%s)", name, e)
                        break
                    record_no += 1
                    report.add(
                        ERROR,
                        "Quotes",
                        f"{e} (line {records.line_num}); row dropped",
                        row=record_no,
                    )
                    continue

                if not fields:
                    continue
                if columns is None:
                    if header:
                        columns = header_names(fields)
                        continue
                    columns = [str(i) for i in range(len(fields))]

                record_no += 1
                row = self._fit_row(fields, len(columns), record_no, report)
                if row is not None:
                    batch.append(row)
                if len(batch) >= self.chunk_size:
                    yield from self._emit(batch, columns, report)
                    batch = []

            if batch:
                yield from self._emit(batch, columns, report)

        report.completed = True
        report.log()

    def _fit_row(
        self,
        fields: list[str],
        width: int,
        record_no: int,
        report: ParseReport,
    ) -> Optional[list[str]]:
        """Pad a short row; drop a long one."""
        if len(fields) > width:
            report.add(
                ERROR,
                "TooManyFields",
                f"Too many fields ({len(fields)} > {width}); row dropped",
                row=record_no,
            )
            return None
        if len(fields) < width:
            report.add(
                WARNING,
                "TooFewFields",
                "Too few fields: missing cells read as empty",
                row=record_no,
            )
            fields = fields + [""] * (width - len(fields))
        return fields

    def _emit(self, batch: list[list[str]], columns: list[str], report: ParseReport) -> Iterator[pd.DataFrame]:
        chunk = pd.DataFrame(batch, columns=columns, dtype=str)
        chunk = chunk.apply(lambda col: col.str.strip())

        before = report.rows
        kept = self._drop_empty(chunk, report)
        if report.rows // PROGRESS_EVERY > before // PROGRESS_EVERY:
            LOGGER.debug("Parsed %d rows so far from %s...", report.rows, report.source)
        if not kept.empty:
            yield kept

    def _drop_empty(self, chunk: pd.DataFrame, report: ParseReport) -> pd.DataFrame:
        if chunk.empty:
            return chunk
        valid = (chunk != "").any(axis=1)
        report.dropped_empty += int((~valid).sum())
        kept = chunk.loc[valid].reset_index(drop=True)
        report.rows += len(kept)
        return kept

    def iter_rows(
        self,
        source: CsvSource,
        header: bool = True,
        report: Optional[ParseReport] = None,
    ) -> Iterator[dict[str, str]]:
        """Iterate over valid rows as ``column -> trimmed string`` mappings."""
        for chunk in self.iter_chunks(source, header=header, report=report):
            yield from chunk.to_dict("records")

    def read(self, source: CsvSource, header: bool = True) -> ParseResult:
        """Read an entire source into one DataFrame of string cells."""
        report = ParseReport()
        chunks = list(self.iter_chunks(source, header=header, report=report))
        if chunks:
            rows = pd.concat(chunks, ignore_index=True)
        else:
            rows = pd.DataFrame()
        return ParseResult(rows=rows, report=report)

    def get_file_stats(self, source: CsvSource) -> dict:
        """Get statistics for a file without keeping its rows.

        Returns:
            Dictionary with row count, column names and issue counts
        """
        report = ParseReport()
        columns: list[str] = []
        for chunk in self.iter_chunks(source, report=report):
            if not columns:
                columns = list(chunk.columns)

        stats = report.to_dict()
        stats["columns"] = columns
        if isinstance(source, (str, Path)) and Path(source).exists():
            stats["file_size_mb"] = round(Path(source).stat().st_size / (1024 * 1024), 2)
        return stats
