"""Abstract interface for the conductor management API.

Every consumer in the engine depends on :class:`ManagementAPI` rather than
on the HTTP client, which keeps the extraction logic testable with plain
in-memory fakes.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime
from typing import Protocol

from importer_engine.models.events import AuditEvent
from importer_engine.models.metrics import MetricDescriptor, MetricPermutation, Point, SystemInfo
from importer_engine.models.tags import TagSet
from importer_engine.models.topology import Configuration
from importer_engine.models.window import Window


class ManagementAPI(Protocol):
    """Structural interface for the typed management API operations."""

    def get_configuration(self) -> Configuration:
        """Return the running topology snapshot."""
        ...

    def get_system_info(self) -> SystemInfo:
        """Return the conductor software version."""
        ...

    def get_metric_metadata(self) -> list[MetricDescriptor]:
        """Return the full metric catalog known to the conductor."""
        ...

    def get_metric_permutations(self, router: str, descriptor: MetricDescriptor) -> list[MetricPermutation]:
        """Return the parameter combinations *descriptor* can be queried with on *router*."""
        ...

    def get_metric(
        self,
        router: str,
        series_id: str,
        window: Window,
        filters: TagSet,
        transform: str = "sum",
    ) -> list[Point]:
        """Return the points of *series_id* on *router* matching *filters* within *window*."""
        ...

    def get_audit_events(
        self,
        router: str,
        category_filter: Sequence[str],
        start: datetime,
        end: datetime,
    ) -> list[AuditEvent]:
        """Return audit events of the given categories, in upstream order."""
        ...

    def get_legacy_alarm_history(self, router: str, start: datetime, end: datetime) -> list[AuditEvent]:
        """Return historical alarms from 3.1.x conductors, normalised to :class:`AuditEvent`."""
        ...
