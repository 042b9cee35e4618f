"""File scanner for discovering telemetry CSV exports.

Walks a directory tree for ``*.csv`` files and attaches the kind and date
label parsed from each file name.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Optional

from ..schema.kinds import detect_kind, extract_date_label
from ..schema.records import RecordKind

CSV_SUFFIX = ".csv"


@dataclass
class DataFile:
    """Metadata for a discovered CSV file."""

    path: Path
    filename: str
    kind: Optional[RecordKind]
    date: Optional[str]
    file_size: int

    @property
    def detected(self) -> bool:
        return self.kind is not None


class FileScanner:
    """Recursive scanner for telemetry CSV files."""

    def __init__(self, root_dir: str | Path):
        """Initialize scanner.

        Args:
            root_dir: Directory to walk, or a single CSV file
        """
        self.root_dir = Path(root_dir)

    def scan(self) -> list[DataFile]:
        """Scan the root for CSV files at any depth.

        Returns:
            List of DataFile objects sorted by relative path

        Raises:
            FileNotFoundError: The root does not exist
        """
        if not self.root_dir.exists():
            raise FileNotFoundError(f"Path not found: {self.root_dir}")

        if self.root_dir.is_file():
            entry = self._parse_file(self.root_dir)
            return [entry] if entry is not None else []

        files = []
        for entry in sorted(self.root_dir.rglob(f"*{CSV_SUFFIX}")):
            if not entry.is_file():
                continue
            data_file = self._parse_file(entry)
            if data_file is not None:
                files.append(data_file)
        return files

    def _parse_file(self, path: Path) -> Optional[DataFile]:
        """Parse a file path into DataFile; non-CSV paths give None."""
        if path.suffix.lower() != CSV_SUFFIX:
            return None
        return DataFile(
            path=path,
            filename=path.name,
            kind=detect_kind(path.name),
            date=extract_date_label(path.name),
            file_size=path.stat().st_size,
        )

    def iter_files(
        self,
        kind: Optional[RecordKind] = None,
        date: Optional[str] = None,
    ) -> Iterator[DataFile]:
        """Iterate over detected files with optional kind / date filter."""
        for f in self.scan():
            if not f.detected:
                continue
            if kind is not None and f.kind != kind:
                continue
            if date is not None and f.date != date:
                continue
            yield f

    def get_file_stats(self) -> dict:
        """Get statistics for the scanned tree without parsing any file.

        Returns:
            Dictionary with file counts per kind, dates and total size
        """
        files = self.scan()
        by_kind = Counter(f.kind.value for f in files if f.detected)
        dates = sorted({f.date for f in files if f.date})
        total_size = sum(f.file_size for f in files)

        return {
            "root": str(self.root_dir),
            "file_count": len(files),
            "undetected": [f.filename for f in files if not f.detected],
            "by_kind": dict(sorted(by_kind.items())),
            "dates": dates,
            "total_size_mb": round(total_size / (1024 * 1024), 2),
        }
