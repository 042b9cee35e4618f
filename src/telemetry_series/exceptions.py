"""Exception types raised by the ingestion pipeline."""

from __future__ import annotations


class TelemetrySeriesError(Exception):
    """Base class for pipeline errors."""


class UnreadableInputError(TelemetrySeriesError):
    """The byte stream could not be opened or decoded as CSV text."""

    def __init__(self, source: str, reason: str):
        self.source = source
        self.reason = reason
        super().__init__(f"Cannot read {source}: {reason}")


class UnknownKindError(TelemetrySeriesError):
    """No kind detection rule matched the file name."""

    def __init__(self, file_name: str):
        self.file_name = file_name
        super().__init__(f"Unknown file type: {file_name}")
