"""Record schemas and kind detection."""

from .records import (
    RecordKind,
    RecordSchema,
    FieldSpec,
    SCHEMAS,
    TIMED_KINDS,
    get_schema,
    empty_frame,
)
from .kinds import (
    KIND_RULES,
    detect_kind,
    extract_date_label,
)

__all__ = [
    "RecordKind",
    "RecordSchema",
    "FieldSpec",
    "SCHEMAS",
    "TIMED_KINDS",
    "get_schema",
    "empty_frame",
    "KIND_RULES",
    "detect_kind",
    "extract_date_label",
]
