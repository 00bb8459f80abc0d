"""Shared fixtures for importer_engine tests.

Provides an in-memory sink honouring the InfluxDB overwrite-on-duplicate-key
semantics, a scriptable management API fake, a fixed clock and a small
topology snapshot.
"""

from __future__ import annotations

import threading
from collections.abc import Callable, Sequence
from datetime import UTC, datetime
from typing import Any

import pytest

from importer_engine.client.management_api import ManagementAPIError
from importer_engine.models.events import AuditEvent, Record
from importer_engine.models.metrics import MetricDescriptor, MetricPermutation, Point, SystemInfo
from importer_engine.models.tags import TagSet
from importer_engine.models.topology import (
    Adjacency,
    Authority,
    Configuration,
    DeviceInterface,
    NetworkInterface,
    Node,
    Router,
    Service,
    ServiceRoute,
    Tenant,
)
from importer_engine.models.window import Window, to_epoch_ns
from importer_engine.sink.base import SinkError

NOW = datetime(2025, 5, 15, 12, 0, 0, tzinfo=UTC)


# ---------------------------------------------------------------------------
# In-memory sink
# ---------------------------------------------------------------------------


class InMemorySink:
    """Dict-backed :class:`TimeSeriesSink` keyed by ``(series, tags, time_ns)``."""

    def __init__(self) -> None:
        self.rows: dict[tuple[str, frozenset[tuple[str, str]], int], dict[str, Any]] = {}
        self.write_calls: list[tuple[str, int]] = []
        self.fail_queries = False
        self.fail_writes = False
        self.reachable = True
        self._lock = threading.Lock()

    def ping(self) -> str:
        if not self.reachable:
            raise SinkError("connection refused")
        return "1.8.10"

    def last_recorded_time(self, series: str, tags: TagSet, exact: bool = True) -> int | None:
        if self.fail_queries:
            raise SinkError("query failed")
        # Empty values stand for absent keys.
        wanted = frozenset((k, v) for k, v in tags.items() if v != "")
        with self._lock:
            times = [
                t
                for (s, row_tags, t) in self.rows
                if s == series and (wanted == row_tags if exact else wanted <= row_tags)
            ]
        return max(times) if times else None

    def send(self, series: str, tags: TagSet, points: Sequence[Point]) -> int:
        records = [
            Record(time_ns=to_epoch_ns(p.time), tags=tags, fields={"value": p.value})
            for p in points
        ]
        return self.insert(series, records)

    def insert(self, series: str, records: Sequence[Record]) -> int:
        if self.fail_writes:
            raise SinkError("write failed")
        if not records:
            return 0
        with self._lock:
            self.write_calls.append((series, len(records)))
            for record in records:
                tags = frozenset((k, v) for k, v in record.tags.items() if v != "")
                self.rows[(series, tags, record.time_ns)] = dict(record.fields)
        return len(records)

    def series_rows(self, series: str) -> list[tuple[dict[str, str], int, dict[str, Any]]]:
        return sorted(
            ((dict(tags), t, fields) for (s, tags, t), fields in self.rows.items() if s == series),
            key=lambda row: row[1],
        )


# ---------------------------------------------------------------------------
# Management API fake
# ---------------------------------------------------------------------------

PointsResponder = Callable[[str, str, Window, TagSet], list[Point]]


class FakeManagementAPI:
    """Scriptable :class:`ManagementAPI` recording every call it receives."""

    def __init__(
        self,
        configuration: Configuration | None = None,
        version: str = "4.2.0",
        points: PointsResponder | None = None,
        audit_events: list[AuditEvent] | None = None,
        legacy_events: list[AuditEvent] | None = None,
        metadata: list[MetricDescriptor] | None = None,
    ) -> None:
        self.configuration = configuration or Configuration()
        self.version = version
        self.points = points or (lambda router, series, window, filters: [])
        self.audit_events = audit_events or []
        self.legacy_events = legacy_events or []
        self.metadata = metadata or []
        self.fail_metrics: set[str] = set()
        self.fail_configuration = False
        self.fail_system_info = False
        self.calls: list[tuple[Any, ...]] = []
        self._lock = threading.Lock()

    def _record(self, *call: Any) -> None:
        with self._lock:
            self.calls.append(call)

    def calls_named(self, name: str) -> list[tuple[Any, ...]]:
        return [call for call in self.calls if call[0] == name]

    def get_configuration(self) -> Configuration:
        self._record("get_configuration")
        if self.fail_configuration:
            raise ManagementAPIError("GET /api/v1/config/getJSON returned invalid status code: 503")
        return self.configuration

    def get_system_info(self) -> SystemInfo:
        self._record("get_system_info")
        if self.fail_system_info:
            raise ManagementAPIError("GET /api/v1/system failed")
        return SystemInfo(version=self.version)

    def get_metric_metadata(self) -> list[MetricDescriptor]:
        self._record("get_metric_metadata")
        return self.metadata

    def get_metric_permutations(self, router: str, descriptor: MetricDescriptor) -> list[MetricPermutation]:
        self._record("get_metric_permutations", router, descriptor.id)
        return []

    def get_metric(
        self,
        router: str,
        series_id: str,
        window: Window,
        filters: TagSet,
        transform: str = "sum",
    ) -> list[Point]:
        self._record("get_metric", router, series_id, window, filters)
        if series_id in self.fail_metrics:
            raise ManagementAPIError(f"POST /api/v1/router/{router}/metrics returned invalid status code: 500")
        return self.points(router, series_id, window, filters)

    def get_audit_events(self, router, category_filter, start, end) -> list[AuditEvent]:
        self._record("get_audit_events", router, list(category_filter), start, end)
        return list(self.audit_events)

    def get_legacy_alarm_history(self, router, start, end) -> list[AuditEvent]:
        self._record("get_legacy_alarm_history", router, start, end)
        return list(self.legacy_events)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def clock() -> Callable[[], datetime]:
    return lambda: NOW


@pytest.fixture()
def sink() -> InMemorySink:
    return InMemorySink()


@pytest.fixture()
def router() -> Router:
    return Router(
        name="R1",
        location="+42.3601-071.0589/",
        nodes=[
            Node(
                name="N1",
                device_interfaces=[
                    DeviceInterface(
                        id=10,
                        network_interfaces=[
                            NetworkInterface(
                                name="wan0",
                                vlan=0,
                                adjacencies=[Adjacency(peer="R2", ip_address="10.0.0.2")],
                            )
                        ],
                    )
                ],
            )
        ],
        service_routes=[ServiceRoute(name="web-route")],
    )


@pytest.fixture()
def authority(router: Router) -> Authority:
    return Authority(
        routers=[router],
        services=[
            Service(name="web", service_group="g1"),
            Service(name="dns", service_group="g1"),
            Service(name="ssh"),
        ],
        tenants=[Tenant(name="corp")],
    )


@pytest.fixture()
def configuration(authority: Authority) -> Configuration:
    return Configuration(authority=authority)


@pytest.fixture()
def api(configuration: Configuration) -> FakeManagementAPI:
    return FakeManagementAPI(configuration=configuration)


@pytest.fixture()
def now_ns() -> int:
    return to_epoch_ns(NOW)
