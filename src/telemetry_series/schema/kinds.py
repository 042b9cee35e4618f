"""File-name based record kind detection.

Telemetry exports are named after their content, e.g.
``metric_container_2024_03_05.csv`` or ``trace_span.csv``. The kind is
inferred from substrings of the lower-cased name; the optional date label is
the first ``YYYY_MM_DD`` run found anywhere in the name.
"""

from __future__ import annotations

import re
from typing import Optional

from .records import RecordKind

# Ordered rules: first match wins. metric_app / metric_container come before
# the generic trace/log substrings so that e.g. "metric_app_log.csv" stays a
# metric_app file.
KIND_RULES: tuple[tuple[tuple[str, ...], RecordKind], ...] = (
    (("metric_app",), RecordKind.METRIC_APP),
    (("metric_container",), RecordKind.METRIC_CONTAINER),
    (("trace_span", "trace"), RecordKind.TRACE_SPAN),
    (("log_service", "log"), RecordKind.LOG),
    (("record",), RecordKind.RECORD),
    (("query",), RecordKind.QUERY),
)

DATE_LABEL_PATTERN = re.compile(r"(\d{4}_\d{2}_\d{2})")


def detect_kind(file_name: str) -> Optional[RecordKind]:
    """Map a file name to its record kind.

    Args:
        file_name: Bare file name or path; only the text is inspected

    Returns:
        RecordKind if a rule matches, None otherwise

    Examples:
        >>> detect_kind("metric_app_2024_01_01.csv")
        <RecordKind.METRIC_APP: 'metric_app'>
        >>> detect_kind("Trace_Span.csv")
        <RecordKind.TRACE_SPAN: 'trace_span'>
        >>> detect_kind("notes.csv") is None
        True
    """
    lower_name = file_name.lower()
    for needles, kind in KIND_RULES:
        if any(needle in lower_name for needle in needles):
            return kind
    return None


def extract_date_label(file_name: str) -> Optional[str]:
    """Return the first ``YYYY_MM_DD`` run in the name, if any.

    Examples:
        >>> extract_date_label("log_service_2024_01_02.csv")
        '2024_01_02'
        >>> extract_date_label("query.csv") is None
        True
    """
    match = DATE_LABEL_PATTERN.search(file_name)
    if not match:
        return None
    return match.group(1)
