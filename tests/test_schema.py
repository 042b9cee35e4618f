"""Tests for record schemas and kind detection."""

import pytest

from telemetry_series.schema import (
    RecordKind,
    SCHEMAS,
    TIMED_KINDS,
    detect_kind,
    empty_frame,
    extract_date_label,
    get_schema,
)


class TestDetectKind:
    """Tests for file-name based kind detection."""

    @pytest.mark.parametrize(
        "file_name, expected",
        [
            ("metric_app_2021_03_04.csv", RecordKind.METRIC_APP),
            ("metric_container.csv", RecordKind.METRIC_CONTAINER),
            ("trace_span_2021_03_04.csv", RecordKind.TRACE_SPAN),
            ("trace.csv", RecordKind.TRACE_SPAN),
            ("log_service.csv", RecordKind.LOG),
            ("syslog.csv", RecordKind.LOG),
            ("record.csv", RecordKind.RECORD),
            ("query.csv", RecordKind.QUERY),
        ],
    )
    def test_basic_names(self, file_name, expected):
        assert detect_kind(file_name) == expected

    def test_first_rule_wins(self):
        """Earlier rules take precedence over later substrings."""
        assert detect_kind("metric_app_log.csv") == RecordKind.METRIC_APP
        assert detect_kind("trace_log.csv") == RecordKind.TRACE_SPAN
        # "catalog" contains "log", which outranks "record"
        assert detect_kind("catalog_record.csv") == RecordKind.LOG

    def test_case_insensitive(self):
        assert detect_kind("METRIC_Container_2021_03_04.CSV") == RecordKind.METRIC_CONTAINER
        assert detect_kind("Trace_Span.csv") == RecordKind.TRACE_SPAN

    def test_unknown(self):
        assert detect_kind("notes.csv") is None
        assert detect_kind("") is None


class TestDateLabel:
    """Tests for date label extraction."""

    def test_first_match_anywhere(self):
        assert extract_date_label("log_service_2021_03_04.csv") == "2021_03_04"
        assert extract_date_label("2021_03_04_trace_2021_03_05.csv") == "2021_03_04"

    def test_missing(self):
        assert extract_date_label("query.csv") is None
        assert extract_date_label("log_2021-03-04.csv") is None


class TestRecordSchemas:
    """Tests for typed record shapes."""

    def test_every_kind_has_a_schema(self):
        assert set(SCHEMAS) == set(RecordKind)

    def test_service_shape(self):
        schema = get_schema("log")
        assert schema.columns == ["timestamp", "rr", "sr", "cnt", "mrt", "tc"]
        assert schema.text_columns == ["tc"]
        assert schema.entity_field == "tc"
        assert get_schema(RecordKind.METRIC_APP).columns == schema.columns

    def test_trace_timestamps_are_milliseconds(self):
        schema = get_schema("trace")
        assert schema.kind == RecordKind.TRACE_SPAN
        assert schema.timestamp_scale == 1000.0
        assert schema.numeric_columns == ["timestamp", "duration"]

    def test_untimed_kinds(self):
        assert not get_schema("record").has_time
        assert not get_schema("query").has_time
        assert RecordKind.RECORD not in TIMED_KINDS
        assert get_schema("query").numeric_columns == []

    def test_empty_frame_dtypes(self):
        frame = empty_frame("metric_container")
        assert list(frame.columns) == ["timestamp", "cmdb_id", "kpi_name", "value"]
        assert len(frame) == 0
        assert frame["value"].dtype == "float64"
        assert frame["kpi_name"].dtype == object

    def test_parse_kind(self):
        assert RecordKind.parse("trace") == RecordKind.TRACE_SPAN
        assert RecordKind.parse(" Metric_App ") == RecordKind.METRIC_APP
        assert str(RecordKind.LOG) == "log"
        with pytest.raises(ValueError, match="Unknown record kind"):
            RecordKind.parse("span")
