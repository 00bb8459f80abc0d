"""Telemetry event envelope written by :class:`MetricsEmitter`."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class MetricsEvent(BaseModel):
    """Generic timestamped event for run-level observability.

    Used for per-item results and the end-of-run summary so that external
    monitoring can follow an import without parsing log lines.
    """

    event: str = Field(
        ...,
        min_length=1,
        description="Event type identifier, e.g. 'item.succeeded' or 'run.finished'.",
    )
    timestamp: datetime = Field(
        ...,
        description="UTC timestamp when the event occurred.",
    )
    data: dict[str, Any] = Field(
        default_factory=dict,
        description="Arbitrary payload associated with the event.",
    )
