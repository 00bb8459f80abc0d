"""Audit/alarm event models and the sink record they are converted into.

Two upstream shapes exist.  Modern conductors return :class:`AuditEvent`
objects from ``/api/v1/audit``; 3.1.x conductors only expose
``/api/v1/audit/alarms`` whose flat :class:`LegacyAlarm` rows are normalised
into the same :class:`AuditEvent` shape before any further processing.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from importer_engine.models.tags import TagSet

FieldValue = str | int | float | bool


class AuditEvent(BaseModel):
    """A discrete event reported by the audit log."""

    type: str = ""
    router: str = ""
    node: str = ""
    timestamp: datetime
    data: dict[str, Any] = Field(default_factory=dict)


class LegacyAlarm(BaseModel):
    """Row shape of the legacy alarm-history endpoint."""

    node: str = ""
    time: datetime
    id: str = ""
    message: str = ""
    category: str = ""
    severity: str = ""
    process: str = ""
    source: str = ""
    event: str = ""

    def to_audit_event(self, router: str) -> AuditEvent:
        return AuditEvent(
            type="alarm",
            router=router,
            node=self.node,
            timestamp=self.time,
            data={
                "uuid": self.id,
                "process": self.process,
                "source": self.source,
                "category": self.category,
                "severity": self.severity,
                "type": self.event,
                "message": self.message,
            },
        )


def to_field_values(data: dict[str, Any]) -> dict[str, FieldValue]:
    """Drop null values and JSON-encode anything that is not a scalar."""
    fields: dict[str, FieldValue] = {}
    for key, value in data.items():
        if value is None:
            continue
        if isinstance(value, (str, int, float, bool)):
            fields[key] = value
        else:
            fields[key] = json.dumps(value, sort_keys=True, default=str)
    return fields


@dataclass(frozen=True)
class Record:
    """One row destined for the sink, keyed by ``(series, tags, time_ns)``."""

    time_ns: int
    tags: TagSet
    fields: dict[str, FieldValue] = field(default_factory=dict)
