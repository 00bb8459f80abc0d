"""Abstract interface for time-series sinks.

The checkpoint resolver, the router task and the alarm synchroniser only
depend on :class:`TimeSeriesSink`, so tests can substitute an in-memory
sink and other stores can be added without touching the engine.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol

from importer_engine.models.events import Record
from importer_engine.models.metrics import Point
from importer_engine.models.tags import TagSet


class SinkError(Exception):
    """Raised when the sink cannot be reached, queried, or written to."""


class TimeSeriesSink(Protocol):
    """Structural interface for time-series stores.

    Writes must overwrite any existing row with the same
    ``(series, tags, time)`` key; the checkpoint logic relies on it.
    """

    def ping(self) -> str:
        """Check connectivity and return the server version."""
        ...

    def last_recorded_time(self, series: str, tags: TagSet, exact: bool = True) -> int | None:
        """Return the newest timestamp (epoch ns) written for *series* with exactly *tags*.

        With *exact* false, rows carrying tags beyond *tags* count as well.
        Returns ``None`` when nothing has been written yet.

        Raises
        ------
        SinkError
            If the query itself fails.
        """
        ...

    def send(self, series: str, tags: TagSet, points: Sequence[Point]) -> int:
        """Write *points* as one batch under *series* and *tags*.

        Returns the number of rows written.
        """
        ...

    def insert(self, series: str, records: Sequence[Record]) -> int:
        """Write pre-built *records* as one batch under *series*.

        Returns the number of rows written.
        """
        ...
