"""Thread-safe metrics emitter for run-level observability events.

Events are written as JSON lines to an optional file.  All file writes are
protected by a :class:`threading.Lock` because router tasks report their
outcomes from worker threads.
"""

from __future__ import annotations

import logging
import threading
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from importer_engine.models.run import ItemOutcome, RunSummary
from importer_engine.models.telemetry import MetricsEvent

logger = logging.getLogger(__name__)


class MetricsEmitter:
    """Emit structured observability events to a JSON-lines file.

    Parameters
    ----------
    metrics_file:
        Optional path to a JSON-lines file.  Parent directories are created
        automatically.  When ``None``, emission is a no-op.
    """

    def __init__(self, metrics_file: Path | None = None) -> None:
        self._metrics_file = metrics_file
        self._lock = threading.Lock()

        if self._metrics_file is not None:
            self._metrics_file.parent.mkdir(parents=True, exist_ok=True)

    @property
    def enabled(self) -> bool:
        return self._metrics_file is not None

    def emit(self, event: str, data: dict[str, Any]) -> None:
        """Create and write a :class:`MetricsEvent`.

        Failures to write are logged and swallowed: telemetry must never
        break an import.
        """
        if self._metrics_file is None:
            return

        metrics_event = MetricsEvent(event=event, timestamp=datetime.now(UTC), data=data)
        json_line = metrics_event.model_dump_json()

        try:
            with self._lock, self._metrics_file.open("a", encoding="utf-8") as fh:
                fh.write(json_line + "\n")
        except OSError as exc:
            logger.warning("Could not write metrics event %s: %s", event, exc)
            return

        logger.debug("Emitted event: %s", event)

    # -- Convenience methods -------------------------------------------------

    def item_finished(self, outcome: ItemOutcome) -> None:
        """Emit ``item.succeeded`` or ``item.failed`` for one outcome."""
        event = "item.succeeded" if outcome.succeeded else "item.failed"
        self.emit(event, outcome.model_dump(mode="json"))

    def run_finished(self, summary: RunSummary) -> None:
        """Emit a ``run.finished`` event."""
        self.emit(
            "run.finished",
            {
                "routers": summary.routers,
                "succeeded": summary.succeeded,
                "failed": summary.failed,
                "duration_ms": summary.duration_ms,
            },
        )
