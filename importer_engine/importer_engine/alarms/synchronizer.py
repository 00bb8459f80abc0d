"""Incremental copy of a router's alarm history into the sink.

Alarm events are written to a single ``alarm-history`` series tagged by
router, node and the router's geohash.  The checkpoint is the newest row
carrying the router tag, whatever its node or geohash, and the next window
starts one second after it because the audit endpoints resolve time in
whole seconds.

Several alarms frequently share the same reported second.  To keep every
one of them as a distinct row, the ``i``-th event of a batch (in upstream
order) is written at ``reported_ns + i``.
"""

from __future__ import annotations

import logging

from importer_engine.alarms.geohash import location_to_geohash
from importer_engine.client.base import ManagementAPI
from importer_engine.client.management_api import ManagementAPIError
from importer_engine.models.events import AuditEvent, Record, to_field_values
from importer_engine.models.run import ItemKind, ItemOutcome, ItemStatus
from importer_engine.models.tags import TagSet
from importer_engine.models.topology import Router
from importer_engine.models.window import NANOS_PER_SECOND, to_epoch_ns
from importer_engine.planner.checkpoint import CheckpointResolver
from importer_engine.sink.base import SinkError, TimeSeriesSink

ALARM_HISTORY_SERIES = "alarm-history"
ALARM_CATEGORY = "ALARM"

_LEGACY_VERSION_PREFIXES = ("3.0.", "3.1.")


def is_legacy_version(version: str) -> bool:
    """Return ``True`` for conductors that only offer the legacy alarm endpoint."""
    return version.strip().startswith(_LEGACY_VERSION_PREFIXES)


def build_records(events: list[AuditEvent], router: str, geohash: str) -> list[Record]:
    """Convert *events* into sink records with per-batch unique timestamps."""
    records: list[Record] = []
    for index, event in enumerate(events):
        tags = TagSet([("router", router), ("node", event.node), ("geohash", geohash)])
        fields = to_field_values(event.data) or {"type": event.type}
        records.append(Record(time_ns=to_epoch_ns(event.timestamp) + index, tags=tags, fields=fields))
    return records


class AlarmHistorySynchronizer:
    """Copy alarms raised since the last checkpoint for one router.

    Parameters
    ----------
    api:
        Management API providing the audit or legacy alarm endpoint.
    sink:
        Destination of the alarm records.
    resolver:
        Checkpoint resolver bound to *sink*.
    max_lookback_seconds:
        Maximum alarm history lookback (``alarm_history.max_query_time``).
    logger:
        Logger for per-router results.
    """

    def __init__(
        self,
        api: ManagementAPI,
        sink: TimeSeriesSink,
        resolver: CheckpointResolver,
        max_lookback_seconds: int,
        logger: logging.Logger | None = None,
    ) -> None:
        self._api = api
        self._sink = sink
        self._resolver = resolver
        self._max_lookback_seconds = max_lookback_seconds
        self._logger = logger or logging.getLogger(__name__)

    def sync(self, router: Router, version: str) -> ItemOutcome:
        """Fetch and write the alarms of *router* not yet in the sink."""
        tags = TagSet([("router", router.name)])
        log_extra = {"router": router.name, "series": ALARM_HISTORY_SERIES, "tags": str(tags)}
        window = self._resolver.resolve(
            ALARM_HISTORY_SERIES,
            tags,
            self._max_lookback_seconds,
            increment_ns=NANOS_PER_SECOND,
            exact=False,
        )

        try:
            if is_legacy_version(version):
                events = self._api.get_legacy_alarm_history(router.name, window.start, window.end)
            else:
                events = self._api.get_audit_events(router.name, [ALARM_CATEGORY], window.start, window.end)

            records = build_records(events, router.name, self._geohash(router))
            written = self._sink.insert(ALARM_HISTORY_SERIES, records)
        except (ManagementAPIError, SinkError) as exc:
            self._logger.error(
                "Error exporting %s(%s): %s",
                ALARM_HISTORY_SERIES,
                tags,
                exc,
                extra=log_extra,
            )
            return ItemOutcome(
                kind=ItemKind.ALARM,
                series=ALARM_HISTORY_SERIES,
                router=router.name,
                tags=str(tags),
                status=ItemStatus.FAIL,
                window_seconds=window.width_seconds,
                error=str(exc),
            )

        self._logger.info(
            "Successfully exported %d alarm(s) from the last %d seconds of router %s",
            written,
            window.width_seconds,
            router.name,
            extra=log_extra,
        )
        return ItemOutcome(
            kind=ItemKind.ALARM,
            series=ALARM_HISTORY_SERIES,
            router=router.name,
            tags=str(tags),
            status=ItemStatus.SUCCESS,
            window_seconds=window.width_seconds,
            points=written,
        )

    def _geohash(self, router: Router) -> str:
        if not router.location:
            return ""
        try:
            return location_to_geohash(router.location)
        except ValueError as exc:
            self._logger.warning(
                "Unable to translate location of router %s into a geohash: %s",
                router.name,
                exc,
                extra={"router": router.name},
            )
            return ""
