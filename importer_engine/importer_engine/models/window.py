"""Query windows and nanosecond timestamp helpers.

The sink stores every point at nanosecond precision, so checkpoints and
window bounds are carried as integer epoch nanoseconds.  ``datetime`` only
resolves microseconds; conversions floor to the nearest microsecond.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from pydantic import BaseModel, Field

NANOS_PER_SECOND = 1_000_000_000

_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)


def to_epoch_ns(value: datetime) -> int:
    """Convert an aware (or UTC-naive) datetime to integer epoch nanoseconds."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return ((value - _EPOCH) // timedelta(microseconds=1)) * 1000


def from_epoch_ns(value: int) -> datetime:
    """Convert epoch nanoseconds to an aware UTC datetime (microsecond floor)."""
    return _EPOCH + timedelta(microseconds=value // 1000)


class Window(BaseModel):
    """Relative time window understood by the metrics endpoint."""

    start: str = Field(..., description="Lower bound expression, e.g. 'now-3600'.")
    end: str = Field(default="now", description="Upper bound expression.")


@dataclass(frozen=True)
class ResolvedWindow:
    """Absolute bounds of the data not yet delivered for one series."""

    start_ns: int
    end_ns: int
    checkpoint_ns: int | None = None

    def __post_init__(self) -> None:
        if self.start_ns > self.end_ns:
            raise ValueError(f"Window start ({self.start_ns}) must be <= end ({self.end_ns}).")

    @property
    def width_seconds(self) -> int:
        return (self.end_ns - self.start_ns) // NANOS_PER_SECOND

    @property
    def start(self) -> datetime:
        return from_epoch_ns(self.start_ns)

    @property
    def end(self) -> datetime:
        return from_epoch_ns(self.end_ns)

    def to_relative(self) -> Window:
        """Express the window relative to the upstream's notion of ``now``."""
        return Window(start=f"now-{self.width_seconds}", end="now")
