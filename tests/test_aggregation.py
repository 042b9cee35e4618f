"""Tests for time-bucket aggregation, filters and chart pivots."""

import pandas as pd
import pytest

from telemetry_series.aggregate import (
    BucketAggregator,
    TimeWindow,
    aggregate_records,
    clamp_window,
    data_time_range,
    filter_records,
    list_components,
    list_kpis,
    list_services,
    pivot_kpis,
    pivot_services,
    select_kpis,
)
from telemetry_series.ingest.coercion import coerce
from telemetry_series.ingest.pipeline import LoadedDataset
from telemetry_series.schema.records import RecordKind
from telemetry_series.utils.timebuckets import assign_buckets, bucket_width, to_epoch_seconds

# 2021-03-04 00:00:00 UTC
T0 = 1614816000


def service_records(rows):
    return coerce("log", [dict(zip(["timestamp", "rr", "sr", "mrt", "tc"], r)) for r in rows])


def container_records(rows):
    return coerce(
        "metric_container",
        [dict(zip(["timestamp", "cmdb_id", "kpi_name", "value"], r)) for r in rows],
    )


def span_records(rows):
    return coerce("trace_span", [dict(zip(["timestamp", "cmdb_id", "duration"], r)) for r in rows])


def dataset(kind, records, date=None):
    return LoadedDataset(kind=RecordKind.parse(kind), date=date, records=records, file_name=f"{kind}.csv")


class TestTimeBuckets:
    """Tests for bucket flooring and labels."""

    def test_floor_to_minute(self):
        seconds = pd.Series([T0, T0 + 59.9, T0 + 60, T0 + 3599])
        starts, labels = assign_buckets(seconds)
        assert starts.tolist() == [T0, T0, T0 + 60, T0 + 3540]
        assert labels.tolist() == [
            "2021-03-04 00:00",
            "2021-03-04 00:00",
            "2021-03-04 00:01",
            "2021-03-04 00:59",
        ]

    def test_display_timezone(self):
        _, labels = assign_buckets(pd.Series([T0]), tz="Asia/Shanghai")
        assert labels.tolist() == ["2021-03-04 08:00"]

    def test_anchored_grid(self):
        seconds = pd.Series([1000.0, 1030.0, 1059.9, 1060.0])
        starts, labels = assign_buckets(seconds, origin=1000.0)
        assert starts.tolist() == [1000.0, 1000.0, 1000.0, 1060.0]
        assert labels.tolist() == ["1970-01-01 00:16"] * 3 + ["1970-01-01 00:17"]

    def test_bucket_width(self):
        assert bucket_width("1min") == 60.0
        assert bucket_width("5s") == 5.0
        with pytest.raises(ValueError):
            bucket_width("0min")

    def test_to_epoch_seconds(self):
        assert to_epoch_seconds(T0) == T0
        assert to_epoch_seconds(str(T0)) == T0
        assert to_epoch_seconds("2021-03-04 00:00:00") == T0
        assert to_epoch_seconds("2021-03-04T08:00:00", tz="Asia/Shanghai") == T0
        assert to_epoch_seconds(pd.Timestamp("2021-03-04", tz="UTC")) == T0


class TestServiceAggregation:
    """Tests for log / metric_app aggregation."""

    def test_log_minute_buckets(self):
        records = service_records([
            (T0, 100, 100, 20, "svc-a"),
            (T0 + 30, 85, 90, 40, "svc-a"),
        ])
        points = aggregate_records(records, "log")

        assert len(points) == 1
        row = points.iloc[0]
        assert row["time"] == "2021-03-04 00:00"
        assert row["timestamp"] == T0
        assert row["service"] == "svc-a"
        assert row["rr"] == pytest.approx(92.5)
        assert row["sr"] == pytest.approx(95.0)
        assert row["mrt"] == pytest.approx(30.0)
        assert row["count"] == 2

    def test_rows_within_one_bucket_of_the_first_share_it(self):
        records = service_records([
            (1000, 90, 99, 120, "svc-a"),
            (1030, 95, 98, 110, "svc-a"),
        ])
        points = aggregate_records(records, "log")

        assert len(points) == 1
        assert points.iloc[0]["timestamp"] == 1000
        assert pivot_services(points).iloc[0]["svc-a_rr"] == pytest.approx(92.5)

    def test_epoch_origin_uses_wall_clock_minutes(self):
        records = service_records([
            (1000, 90, 99, 120, "svc-a"),
            (1030, 95, 98, 110, "svc-a"),
        ])
        points = aggregate_records(records, "log", origin="epoch")

        assert points["timestamp"].tolist() == [960, 1020]
        assert points["time"].tolist() == ["1970-01-01 00:16", "1970-01-01 00:17"]

    def test_invalid_origin(self):
        with pytest.raises(ValueError):
            BucketAggregator(origin="midnight")

    def test_one_row_per_bucket_and_service(self):
        records = service_records([
            (T0 + 61, 1, 1, 1, "svc-b"),
            (T0, 2, 2, 2, "svc-a"),
            (T0 + 5, 3, 3, 3, "svc-b"),
        ])
        points = aggregate_records(records, "metric_app")

        assert list(points.columns) == ["time", "timestamp", "service", "rr", "sr", "mrt", "count"]
        assert points[["timestamp", "service"]].values.tolist() == [
            [T0, "svc-a"],
            [T0, "svc-b"],
            [T0 + 60, "svc-b"],
        ]

    def test_service_cap_keeps_first_seen(self):
        names = ["s5", "s1", "s7", "s2", "s6", "s3", "s4"]
        records = service_records([(T0 + i, 1, 1, 1, name) for i, name in enumerate(names)])

        points = BucketAggregator(max_services=5).aggregate(records, "log")
        assert sorted(points["service"]) == sorted(names[:5])

    def test_entity_filter(self):
        records = service_records([
            (T0, 10, 10, 10, "svc-a"),
            (T0, 20, 20, 20, "svc-b"),
        ])
        points = aggregate_records(records, "log", entity="svc-b")
        assert points["service"].tolist() == ["svc-b"]

        everything = aggregate_records(records, "log", entity="all")
        assert len(everything) == 2


class TestContainerAggregation:
    """Tests for metric_container aggregation."""

    def test_kpi_statistics(self):
        records = container_records([
            (T0, "db-1", "cpu", 10),
            (T0 + 20, "db-2", "cpu", 20),
        ])
        points = aggregate_records(records, "metric_container")

        assert len(points) == 1
        row = points.iloc[0]
        assert row["kpi"] == "cpu"
        assert row["avg"] == pytest.approx(15.0)
        assert row["max"] == 20
        assert row["min"] == 10
        assert row["count"] == 2
        assert row["component"] == "db-1"

    def test_empty_kpi_is_its_own_group(self):
        records = container_records([
            (T0, "db-1", "cpu", 1),
            (T0 + 1, "db-1", "", 2),
            (T0 + 2, "db-1", "", 4),
        ])
        points = aggregate_records(records, "metric_container")

        assert points["kpi"].tolist() == ["", "cpu"]
        assert points.iloc[0]["avg"] == pytest.approx(3.0)


class TestSpanAggregation:
    """Tests for trace_span aggregation."""

    def test_millisecond_timestamps(self):
        records = span_records([
            (T0 * 1000, "os-1", 100),
            (T0 * 1000 + 30_500, "os-2", 300),
            (T0 * 1000 + 61_000, "os-1", 50),
        ])
        points = aggregate_records(records, "trace_span")

        assert points["time"].tolist() == ["2021-03-04 00:00", "2021-03-04 00:01"]
        assert points["timestamp"].tolist() == [T0, T0 + 60]
        first = points.iloc[0]
        assert first["count"] == 2
        assert first["avg_duration"] == pytest.approx(200.0)
        assert first["max_duration"] == 300
        assert first["min_duration"] == 100


class TestAggregationEdgeCases:
    """Empty input, untimed kinds and window boundaries."""

    def test_empty_input(self):
        points = aggregate_records(coerce("log", []), "log")
        assert points.empty
        assert list(points.columns) == ["time", "timestamp", "service", "rr", "sr", "mrt", "count"]

    @pytest.mark.parametrize("kind", ["record", "query"])
    def test_untimed_kinds_rejected(self, kind):
        with pytest.raises(ValueError, match="cannot be aggregated"):
            aggregate_records(coerce(kind, []), kind)

    def test_window_boundaries_with_padding(self):
        start, end = T0 + 100, T0 + 200
        times = [start - 2, start - 1, start, end, end + 1, end + 2]
        records = span_records([(t * 1000, "os-1", i) for i, t in enumerate(times)])

        window = TimeWindow(start=start, end=end)
        kept = filter_records(records, "trace_span", window=window)
        assert (kept["timestamp"] / 1000).tolist() == [start - 1, start, end, end + 1]

        points = aggregate_records(records, "trace_span", window=window)
        assert points["count"].sum() == 4

    def test_window_contains(self):
        window = TimeWindow.parse("2021-03-04 00:00:00", "2021-03-04 00:10:00")
        assert window.contains(T0 - 1)
        assert not window.contains(T0 - 1.5)
        assert window.contains(T0 + 601)

    def test_records_not_mutated(self):
        records = service_records([(T0, 1, 1, 1, "svc-a")])
        before = records.copy()
        aggregate_records(records, "log")
        pd.testing.assert_frame_equal(records, before)

    def test_millisecond_values_in_seconds_column_skipped(self, caplog):
        records = container_records([
            (T0 * 1000, "db-1", "cpu", 99),
            (T0, "db-1", "cpu", 10),
            (T0 + 20, "db-1", "cpu", 20),
        ])
        with caplog.at_level("WARNING"):
            points = aggregate_records(records, "metric_container")

        assert points["timestamp"].tolist() == [T0]
        assert points.iloc[0]["avg"] == pytest.approx(15.0)
        assert "Skipping 1 metric_container records" in caplog.text

    @pytest.mark.parametrize("origin", ["start", "epoch"])
    def test_infinite_timestamps_skipped(self, origin):
        records = service_records([(T0, 1, 1, 1, "svc-a"), (T0 + 5, 3, 3, 3, "svc-a")])
        records.loc[1, "timestamp"] = float("inf")

        points = aggregate_records(records, "log", origin=origin)
        assert points["timestamp"].tolist() == [T0]
        assert points.iloc[0]["rr"] == pytest.approx(1.0)


class TestTimeRange:
    """Tests for data range discovery and window clamping."""

    def test_range_across_kinds(self):
        datasets = [
            dataset("log", service_records([(T0 + 10, 1, 1, 1, "a"), (0, 1, 1, 1, "a")])),
            dataset("trace_span", span_records([(T0 * 1000 + 90_000, "os", 1)])),
            dataset("query", coerce("query", [{"task_index": "t"}])),
        ]
        assert data_time_range(datasets) == (T0 + 10, T0 + 90)

    def test_range_ignores_off_calendar_times(self):
        records = service_records([(T0, 1, 1, 1, "a"), (T0 * 1000, 1, 1, 1, "a")])
        assert data_time_range([dataset("log", records)]) == (T0, T0)

    def test_no_timed_data(self):
        assert data_time_range([]) is None
        assert data_time_range([dataset("log", coerce("log", []))]) is None

    def test_clamp_window(self):
        clamped = clamp_window(TimeWindow(T0 - 500, T0 + 500), (T0, T0 + 100))
        assert (clamped.start, clamped.end) == (T0, T0 + 100)

        inverted = clamp_window(TimeWindow(T0 + 300, T0 + 200), (T0, T0 + 100))
        assert inverted.start <= inverted.end

        assert clamp_window(TimeWindow(1, 2), None) == TimeWindow(1, 2)


class TestChart:
    """Tests for chart pivots and entity listings."""

    def test_pivot_services(self):
        records = service_records([
            (T0, 90, 95, 10, "svc-b"),
            (T0 + 60, 80, 85, 20, "svc-a"),
            (T0 + 61, 70, 75, 30, "svc-b"),
        ])
        chart = pivot_services(aggregate_records(records, "log"))

        assert list(chart.columns) == [
            "time", "timestamp",
            "svc-b_rr", "svc-b_sr", "svc-b_mrt",
            "svc-a_rr", "svc-a_sr", "svc-a_mrt",
        ]
        assert len(chart) == 2
        assert pd.isna(chart.iloc[0]["svc-a_rr"])
        assert chart.iloc[1]["svc-b_rr"] == pytest.approx(70.0)

    def test_pivot_kpis_allow_list(self):
        records = container_records([
            (T0, "db-1", "cpu", 10),
            (T0, "db-1", "mem", 50),
            (T0 + 60, "db-1", "disk", 5),
        ])
        points = aggregate_records(records, "metric_container")

        chart = pivot_kpis(points, kpis=["mem", "mem"])
        assert list(chart.columns) == ["time", "timestamp", "mem"]
        assert len(chart) == 2
        assert chart.iloc[0]["mem"] == pytest.approx(50.0)
        assert pd.isna(chart.iloc[1]["mem"])

    def test_select_kpis_limit(self):
        records = container_records([(T0, "db-1", f"k{i}", i) for i in range(25)])
        points = aggregate_records(records, "metric_container")
        assert len(select_kpis(points, limit=20)) == 20
        assert select_kpis(points, kpis=["k3"]) == ["k3"]

    def test_listings(self):
        datasets = [
            dataset("log", service_records([(T0, 1, 1, 1, "svc-b"), (T0, 1, 1, 1, "")])),
            dataset("metric_app", service_records([(T0, 1, 1, 1, "svc-a")])),
            dataset("metric_container", container_records([(T0, "db-2", "cpu", 1)])),
            dataset("trace_span", span_records([(T0 * 1000, "db-1", 1)])),
        ]
        assert list_services(datasets) == ["svc-a", "svc-b"]
        assert list_components(datasets) == ["db-1", "db-2"]

        points = aggregate_records(datasets[2].records, "metric_container")
        assert list_kpis(points) == ["cpu"]
