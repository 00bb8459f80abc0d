"""Resolve the window of data not yet delivered to the sink.

The sink doubles as the checkpoint store: the newest row written for an
exact ``(series, tags)`` pair is the checkpoint, so no local state has to
be persisted between runs.  Resolution rules:

* no prior row (or a failed lookup) -> start ``max_lookback`` seconds ago;
* otherwise start one increment after the checkpoint, so that the boundary
  point already delivered is not requested again;
* never start earlier than ``now - max_lookback``, even after long outages;
* the window always ends at ``now``.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime

from importer_engine.models.tags import TagSet
from importer_engine.models.window import NANOS_PER_SECOND, ResolvedWindow, to_epoch_ns
from importer_engine.sink.base import SinkError, TimeSeriesSink

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(UTC)


class CheckpointResolver:
    """Compute per-series query windows from the sink's last recorded times.

    Parameters
    ----------
    sink:
        Sink queried for the last recorded time.  Queried on every call;
        results are never cached.
    clock:
        Source of ``now``.  Injected for deterministic tests.
    logger:
        Logger for checkpoint misses.  Defaults to this module's logger.
    """

    def __init__(
        self,
        sink: TimeSeriesSink,
        clock: Clock = utcnow,
        logger: logging.Logger | None = None,
    ) -> None:
        self._sink = sink
        self._clock = clock
        self._logger = logger or logging.getLogger(__name__)

    def resolve(
        self,
        series: str,
        tags: TagSet,
        max_lookback_seconds: int,
        increment_ns: int = 1,
        exact: bool = True,
    ) -> ResolvedWindow:
        """Return the window to query for *series* with *tags*.

        Parameters
        ----------
        series:
            Series (measurement) identifier.
        tags:
            Tag set; every tag must match the checkpoint row.
        max_lookback_seconds:
            Upper bound on how far back the window may start.
        increment_ns:
            Amount added to the checkpoint to exclude the already-delivered
            row.  One nanosecond for metrics; alarm history uses one second
            because the audit API only resolves seconds.
        exact:
            When false, rows carrying tags beyond *tags* also count as the
            checkpoint.
        """
        now_ns = to_epoch_ns(self._clock())
        floor_ns = now_ns - max_lookback_seconds * NANOS_PER_SECOND

        try:
            checkpoint_ns = self._sink.last_recorded_time(series, tags, exact=exact)
        except SinkError as exc:
            self._logger.warning(
                "Error requesting last recorded time for %s(%s): %s. Defaulting to last %d seconds",
                series,
                tags,
                exc,
                max_lookback_seconds,
            )
            checkpoint_ns = None

        if checkpoint_ns is None:
            self._logger.debug(
                "No previous record for %s(%s); defaulting to last %d seconds",
                series,
                tags,
                max_lookback_seconds,
            )
            start_ns = floor_ns
        else:
            start_ns = max(checkpoint_ns + increment_ns, floor_ns)

        # A checkpoint ahead of our clock (skew) yields an empty window.
        start_ns = min(start_ns, now_ns)
        return ResolvedWindow(start_ns=start_ns, end_ns=now_ns, checkpoint_ns=checkpoint_ns)
