"""Metric catalog entries and metric payloads exchanged with the conductor."""

from __future__ import annotations

from datetime import datetime

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class MetricDescriptor(BaseModel):
    """A fetchable metric and the topology entity types it applies to.

    ``keys`` holds applicability keys such as ``node``, ``peer-path`` or
    ``service``.  A metric is only requested for entities whose type
    appears in this set.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1, description="Metric identifier without the '/stats/' prefix.")
    description: str = Field(default="", description="Human readable description.")
    keys: frozenset[str] = Field(default_factory=frozenset, description="Applicability keys.")

    def applies_to(self, key: str) -> bool:
        return key in self.keys


class MetricPermutation(BaseModel):
    """One combination of parameter values a metric can be queried with."""

    parameters: dict[str, str] = Field(default_factory=dict)


class Point(BaseModel):
    """A single sample returned by the metrics endpoint."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    value: float
    time: datetime = Field(..., alias="date")


class SystemInfo(BaseModel):
    """Subset of ``/api/v1/system`` used to pick the alarm-history protocol."""

    version: str = Field(
        default="",
        validation_alias=AliasChoices("version", "softwareVersion"),
    )
