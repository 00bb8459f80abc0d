"""Unit tests for importer_engine.sink.influx."""

from __future__ import annotations

from datetime import UTC, datetime
from unittest.mock import MagicMock, patch

import pytest
import requests
from influxdb.exceptions import InfluxDBClientError, InfluxDBServerError
from influxdb.resultset import ResultSet

from importer_engine.models.events import Record
from importer_engine.models.metrics import Point
from importer_engine.models.tags import TagSet
from importer_engine.models.window import to_epoch_ns
from importer_engine.sink.base import SinkError
from importer_engine.sink.influx import InfluxSink, build_last_time_query

TAGS = TagSet([("router", "R1"), ("node", "N1")])
T0 = datetime(2025, 5, 15, 12, 0, 0, tzinfo=UTC)


@pytest.fixture()
def client() -> MagicMock:
    return MagicMock()


def _grouped(*series: tuple[dict[str, str], int]) -> ResultSet:
    """Build a ``GROUP BY *`` result with one newest row per tag set."""
    return ResultSet(
        {
            "statement_id": 0,
            "series": [
                {"name": "cpu", "tags": tags, "columns": ["time", "value"], "values": [[time_ns, 1.0]]}
                for tags, time_ns in series
            ],
        }
    )


@pytest.fixture()
def influx(client: MagicMock) -> InfluxSink:
    return InfluxSink("conductor", client)


class TestBuildLastTimeQuery:
    def test_all_tags_anded(self):
        query, params = build_last_time_query("cpu/utilization", TAGS)
        assert query == (
            'SELECT * FROM "cpu/utilization" WHERE "router" = $t0 AND "node" = $t1 GROUP BY * ORDER BY time DESC LIMIT 1'
        )
        assert params == {"t0": "R1", "t1": "N1"}

    def test_no_tags(self):
        query, params = build_last_time_query("alarm-history", TagSet())
        assert query == 'SELECT * FROM "alarm-history" GROUP BY * ORDER BY time DESC LIMIT 1'
        assert params == {}

    def test_identifiers_escaped(self):
        query, _ = build_last_time_query('we"ird', TagSet([('k"ey', "v")]))
        assert 'FROM "we\\"ird"' in query
        assert '"k\\"ey" = $t0' in query


class TestLastRecordedTime:
    def test_returns_newest_time(self, influx, client):
        client.query.return_value = _grouped(({"router": "R1", "node": "N1"}, 1747310400000000001))
        assert influx.last_recorded_time("cpu", TAGS) == 1747310400000000001
        _, kwargs = client.query.call_args
        assert kwargs["epoch"] == "ns"
        assert kwargs["database"] == "conductor"
        assert kwargs["bind_params"] == {"t0": "R1", "t1": "N1"}

    def test_no_rows(self, influx, client):
        client.query.return_value = ResultSet({"statement_id": 0})
        assert influx.last_recorded_time("cpu", TAGS) is None

    def test_rows_with_extra_tags_ignored(self, influx, client):
        client.query.return_value = _grouped(
            ({"router": "R1", "node": "N1", "device_interface": "10"}, 1747310395000000000),
            ({"router": "R1", "node": "N1", "device_interface": ""}, 1747310000000000000),
        )
        assert influx.last_recorded_time("cpu", TAGS) == 1747310000000000000

    def test_only_superset_rows_means_no_checkpoint(self, influx, client):
        client.query.return_value = _grouped(
            ({"router": "R1", "node": "N1", "device_interface": "10"}, 1747310395000000000),
        )
        assert influx.last_recorded_time("cpu", TAGS) is None

    def test_inexact_lookup_counts_wider_tag_sets(self, influx, client):
        client.query.return_value = _grouped(
            ({"router": "R1", "node": "N1", "device_interface": "10"}, 1747310395000000000),
            ({"router": "R1", "node": "N1", "device_interface": ""}, 1747310000000000000),
        )
        assert influx.last_recorded_time("cpu", TAGS, exact=False) == 1747310395000000000

    def test_empty_tag_matches_absent_key(self, influx, client):
        tags = TagSet([("router", "R1"), ("node", "")])
        client.query.return_value = _grouped(({"router": "R1", "node": ""}, 7))
        assert influx.last_recorded_time("cpu", tags) == 7

    def test_query_error_wrapped(self, influx, client):
        client.query.side_effect = InfluxDBClientError("database not found", 404)
        with pytest.raises(SinkError, match="Last recorded time query for cpu"):
            influx.last_recorded_time("cpu", TAGS)


class TestSend:
    def test_points_written_with_nanosecond_precision(self, influx, client):
        written = influx.send("cpu", TAGS, [Point(value=1, time=T0), Point(value=2.5, time=T0)])

        assert written == 2
        (body,), kwargs = client.write_points.call_args
        assert kwargs == {"time_precision": "n", "database": "conductor"}
        assert body[0] == {
            "measurement": "cpu",
            "tags": {"router": "R1", "node": "N1"},
            "time": to_epoch_ns(T0),
            "fields": {"value": 1.0},
        }
        assert isinstance(body[0]["fields"]["value"], float)

    def test_one_call_per_batch(self, influx, client):
        influx.send("cpu", TAGS, [Point(value=i, time=T0) for i in range(50)])
        assert client.write_points.call_count == 1

    def test_empty_points_skip_write(self, influx, client):
        assert influx.send("cpu", TAGS, []) == 0
        client.write_points.assert_not_called()

    def test_write_error_wrapped(self, influx, client):
        client.write_points.side_effect = InfluxDBServerError("timeout")
        with pytest.raises(SinkError, match="write of 1 row"):
            influx.send("cpu", TAGS, [Point(value=1, time=T0)])


class TestInsert:
    def test_records_written_and_empty_tags_dropped(self, influx, client):
        record = Record(
            time_ns=42,
            tags=TagSet([("router", "R1"), ("node", ""), ("geohash", "drt2yzr")]),
            fields={"message": "link down", "severity": "MAJOR"},
        )
        assert influx.insert("alarm-history", [record]) == 1
        (body,), _ = client.write_points.call_args
        assert body == [
            {
                "measurement": "alarm-history",
                "tags": {"router": "R1", "geohash": "drt2yzr"},
                "time": 42,
                "fields": {"message": "link down", "severity": "MAJOR"},
            }
        ]


class TestConnectivity:
    def test_ping_returns_version(self, influx, client):
        client.ping.return_value = "1.8.10"
        assert influx.ping() == "1.8.10"

    def test_ping_failure(self, influx, client):
        client.ping.side_effect = requests.exceptions.ConnectionError("refused")
        with pytest.raises(SinkError, match="not reachable"):
            influx.ping()

    def test_context_manager_closes(self, client):
        with InfluxSink("db", client):
            pass
        client.close.assert_called_once()


class TestFromAddress:
    def test_parses_address(self):
        with patch("importer_engine.sink.influx.InfluxDBClient") as factory:
            InfluxSink.from_address("https://influx.example.com:9086/proxy", "db", "u", "p", timeout=5.0)
        kwargs = factory.call_args.kwargs
        assert kwargs["host"] == "influx.example.com"
        assert kwargs["port"] == 9086
        assert kwargs["ssl"] is True
        assert kwargs["path"] == "proxy"
        assert kwargs["retries"] == 1
        assert kwargs["database"] == "db"

    def test_defaults_port_and_scheme(self):
        with patch("importer_engine.sink.influx.InfluxDBClient") as factory:
            InfluxSink.from_address("localhost", "db")
        kwargs = factory.call_args.kwargs
        assert kwargs["host"] == "localhost"
        assert kwargs["port"] == 8086
        assert kwargs["ssl"] is False
