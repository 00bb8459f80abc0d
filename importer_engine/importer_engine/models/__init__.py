"""Domain models for the importer engine."""

from importer_engine.models.events import AuditEvent, FieldValue, LegacyAlarm, Record, to_field_values
from importer_engine.models.metrics import MetricDescriptor, MetricPermutation, Point, SystemInfo
from importer_engine.models.run import ItemKind, ItemOutcome, ItemStatus, RunSummary
from importer_engine.models.tags import TagSet
from importer_engine.models.telemetry import MetricsEvent
from importer_engine.models.topology import (
    Adjacency,
    Authority,
    Configuration,
    DeviceInterface,
    NetworkInterface,
    Node,
    Router,
    Service,
    ServiceClass,
    ServiceRoute,
    Tenant,
)
from importer_engine.models.window import ResolvedWindow, Window, from_epoch_ns, to_epoch_ns

__all__ = [
    "Adjacency",
    "AuditEvent",
    "Authority",
    "Configuration",
    "DeviceInterface",
    "FieldValue",
    "ItemKind",
    "ItemOutcome",
    "ItemStatus",
    "LegacyAlarm",
    "MetricDescriptor",
    "MetricPermutation",
    "MetricsEvent",
    "NetworkInterface",
    "Node",
    "Point",
    "Record",
    "ResolvedWindow",
    "Router",
    "RunSummary",
    "Service",
    "ServiceClass",
    "ServiceRoute",
    "SystemInfo",
    "TagSet",
    "Tenant",
    "Window",
    "from_epoch_ns",
    "to_epoch_ns",
    "to_field_values",
]
