"""Outcome models for a single extraction run.

Every unit of work (one metric for one tag set, or one router's alarm batch)
produces exactly one :class:`ItemOutcome`.  The :class:`RunSummary` is what
the CLI renders and what decides nothing about the exit status: only setup
failures abort a run.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field


class ItemStatus(str, Enum):
    """Terminal state of one extraction item."""

    SUCCESS = "SUCCESS"
    FAIL = "FAIL"


class ItemKind(str, Enum):
    METRIC = "metric"
    ALARM = "alarm"
    ROUTER = "router"


class ItemOutcome(BaseModel):
    """Result of extracting one series for one tag set."""

    kind: ItemKind = Field(default=ItemKind.METRIC)
    series: str = Field(..., min_length=1, description="Metric id or alarm series name.")
    router: str = Field(..., description="Router the item was extracted from.")
    tags: str = Field(default="", description="Rendered tag set, e.g. 'router=R1,node=N1'.")
    status: ItemStatus
    window_seconds: int = Field(default=0, ge=0, description="Width of the window queried.")
    points: int = Field(default=0, ge=0, description="Number of rows written to the sink.")
    error: str | None = Field(default=None, description="Failure reason, when status is FAIL.")

    @property
    def succeeded(self) -> bool:
        return self.status == ItemStatus.SUCCESS


class RunSummary(BaseModel):
    """Aggregated result of a whole run."""

    routers: int = Field(default=0, ge=0)
    outcomes: list[ItemOutcome] = Field(default_factory=list)
    duration_ms: float = Field(default=0.0, ge=0.0)

    @property
    def succeeded(self) -> int:
        return sum(1 for o in self.outcomes if o.succeeded)

    @property
    def failed(self) -> int:
        return sum(1 for o in self.outcomes if not o.succeeded)
