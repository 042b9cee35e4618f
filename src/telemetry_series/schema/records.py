"""Typed record shapes for each telemetry kind.

Every input file is coerced into exactly one of these shapes. Fields are
either numeric (stored as float64, defaulting to 0) or text (stored as str,
defaulting to ""). Input columns not listed here are ignored.

| Kind             | Numeric fields          | Text fields                              |
|------------------|-------------------------|------------------------------------------|
| log              | timestamp rr sr cnt mrt | tc                                       |
| metric_app       | timestamp rr sr cnt mrt | tc                                       |
| metric_container | timestamp value         | cmdb_id kpi_name                         |
| trace_span       | timestamp duration      | cmdb_id parent_id span_id trace_id       |
| record           | timestamp               | level component datetime reason          |
| query            | -                       | task_index instruction scoring_points    |
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

import pandas as pd


class RecordKind(str, Enum):
    """Closed set of telemetry record kinds."""

    LOG = "log"
    METRIC_APP = "metric_app"
    METRIC_CONTAINER = "metric_container"
    TRACE_SPAN = "trace_span"
    RECORD = "record"
    QUERY = "query"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def parse(cls, value: str | "RecordKind") -> "RecordKind":
        """Parse a kind name, accepting ``trace`` as an alias of ``trace_span``."""
        if isinstance(value, RecordKind):
            return value
        name = str(value).strip().lower()
        if name == "trace":
            name = cls.TRACE_SPAN.value
        try:
            return cls(name)
        except ValueError:
            valid = ", ".join(k.value for k in cls)
            raise ValueError(f"Unknown record kind: {value!r} (expected one of: {valid})") from None


NUMERIC = "numeric"
TEXT = "text"


@dataclass(frozen=True)
class FieldSpec:
    """A single typed field of a record shape."""

    name: str
    dtype: str  # NUMERIC or TEXT

    @property
    def is_numeric(self) -> bool:
        return self.dtype == NUMERIC


@dataclass(frozen=True)
class RecordSchema:
    """Field layout and aggregation hints for one record kind."""

    kind: RecordKind
    fields: tuple[FieldSpec, ...]
    entity_field: Optional[str] = None
    timestamp_field: Optional[str] = None
    timestamp_scale: float = 1.0  # divisor converting raw timestamps to seconds

    @property
    def columns(self) -> list[str]:
        return [f.name for f in self.fields]

    @property
    def numeric_columns(self) -> list[str]:
        return [f.name for f in self.fields if f.is_numeric]

    @property
    def text_columns(self) -> list[str]:
        return [f.name for f in self.fields if not f.is_numeric]

    @property
    def has_time(self) -> bool:
        return self.timestamp_field is not None

    def empty_frame(self) -> pd.DataFrame:
        """Zero-row DataFrame carrying this schema's columns and dtypes."""
        data = {
            f.name: pd.Series(dtype="float64" if f.is_numeric else "object")
            for f in self.fields
        }
        return pd.DataFrame(data, columns=self.columns)


def _num(name: str) -> FieldSpec:
    return FieldSpec(name, NUMERIC)


def _text(name: str) -> FieldSpec:
    return FieldSpec(name, TEXT)


# log and metric_app share the service-level KPI snapshot shape
_SERVICE_FIELDS = (
    _num("timestamp"),
    _num("rr"),   # response rate
    _num("sr"),   # success rate
    _num("cnt"),  # request count
    _num("mrt"),  # mean response time
    _text("tc"),  # service id
)

SCHEMAS: dict[RecordKind, RecordSchema] = {
    RecordKind.LOG: RecordSchema(
        kind=RecordKind.LOG,
        fields=_SERVICE_FIELDS,
        entity_field="tc",
        timestamp_field="timestamp",
    ),
    RecordKind.METRIC_APP: RecordSchema(
        kind=RecordKind.METRIC_APP,
        fields=_SERVICE_FIELDS,
        entity_field="tc",
        timestamp_field="timestamp",
    ),
    RecordKind.METRIC_CONTAINER: RecordSchema(
        kind=RecordKind.METRIC_CONTAINER,
        fields=(
            _num("timestamp"),
            _text("cmdb_id"),
            _text("kpi_name"),
            _num("value"),
        ),
        entity_field="cmdb_id",
        timestamp_field="timestamp",
    ),
    RecordKind.TRACE_SPAN: RecordSchema(
        kind=RecordKind.TRACE_SPAN,
        fields=(
            _num("timestamp"),
            _text("cmdb_id"),
            _text("parent_id"),
            _text("span_id"),
            _text("trace_id"),
            _num("duration"),
        ),
        entity_field="cmdb_id",
        timestamp_field="timestamp",
        timestamp_scale=1000.0,
    ),
    RecordKind.RECORD: RecordSchema(
        kind=RecordKind.RECORD,
        fields=(
            _text("level"),
            _text("component"),
            _num("timestamp"),
            _text("datetime"),
            _text("reason"),
        ),
    ),
    RecordKind.QUERY: RecordSchema(
        kind=RecordKind.QUERY,
        fields=(
            _text("task_index"),
            _text("instruction"),
            _text("scoring_points"),
        ),
    ),
}

# Kinds whose timestamps feed the chartable time range
TIMED_KINDS: tuple[RecordKind, ...] = (
    RecordKind.LOG,
    RecordKind.METRIC_APP,
    RecordKind.METRIC_CONTAINER,
    RecordKind.TRACE_SPAN,
)


def get_schema(kind: RecordKind | str) -> RecordSchema:
    """Look up the schema for a kind (accepts kind names)."""
    return SCHEMAS[RecordKind.parse(kind)]


def empty_frame(kind: RecordKind | str) -> pd.DataFrame:
    """Zero-row typed frame for a kind."""
    return get_schema(kind).empty_frame()
