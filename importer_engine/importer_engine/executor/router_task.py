"""Sequential extraction of every series for one router.

A :class:`RouterTask` is what the dispatcher runs on a worker thread.  For
its router it plans the extraction targets, then for each target resolves
the checkpoint window, fetches the points and forwards them to the sink.
Once all metrics are done the alarm history is synchronised.

Every item ends in exactly one :class:`ItemOutcome`.  Failures of a single
item are logged with the series id and tag string and never stop the
remaining items; failed fetches are not retried within a run.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from importer_engine.alarms.synchronizer import ALARM_HISTORY_SERIES, AlarmHistorySynchronizer
from importer_engine.client.base import ManagementAPI
from importer_engine.client.management_api import ManagementAPIError
from importer_engine.models.metrics import MetricDescriptor
from importer_engine.models.run import ItemKind, ItemOutcome, ItemStatus
from importer_engine.models.topology import Authority, Router
from importer_engine.planner.checkpoint import CheckpointResolver
from importer_engine.planner.extraction_planner import ExtractionTarget, plan_router_targets
from importer_engine.sink.base import SinkError, TimeSeriesSink
from importer_engine.telemetry.emitter import MetricsEmitter


class RouterTask:
    """Callable extracting metrics and alarms for one router at a time.

    One instance is shared by all worker threads; it holds no per-router
    state.

    Parameters
    ----------
    api:
        Management API used to fetch metric points.
    sink:
        Destination of the fetched points.
    resolver:
        Checkpoint resolver bound to *sink*.
    authority:
        Authority of the topology snapshot; supplies the logical entities.
    metrics:
        Metrics selected for extraction.
    max_query_time:
        Maximum metric lookback in seconds.
    synchronizer:
        Alarm history synchroniser, or ``None`` when alarm history is
        disabled.
    version:
        Conductor software version; ``None`` when it could not be fetched,
        in which case the alarm item is recorded as failed.
    emitter:
        Optional telemetry emitter notified of every outcome.
    logger:
        Logger for per-item results.
    """

    def __init__(
        self,
        api: ManagementAPI,
        sink: TimeSeriesSink,
        resolver: CheckpointResolver,
        authority: Authority,
        metrics: Sequence[MetricDescriptor],
        max_query_time: int,
        *,
        synchronizer: AlarmHistorySynchronizer | None = None,
        version: str | None = None,
        emitter: MetricsEmitter | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._api = api
        self._sink = sink
        self._resolver = resolver
        self._authority = authority
        self._metrics = list(metrics)
        self._max_query_time = max_query_time
        self._synchronizer = synchronizer
        self._version = version
        self._emitter = emitter
        self._logger = logger or logging.getLogger(__name__)
        self._service_groups = authority.service_groups()

    def __call__(self, router: Router) -> list[ItemOutcome]:
        targets = plan_router_targets(self._authority, router, self._metrics, self._service_groups)
        self._logger.debug("Extracting %d series from router %s", len(targets), router.name)

        outcomes = [self._finish(self.extract_metric(router.name, target)) for target in targets]

        if self._synchronizer is not None:
            outcomes.append(self._finish(self._sync_alarms(self._synchronizer, router)))

        return outcomes

    # -- Items ---------------------------------------------------------------

    def extract_metric(self, router: str, target: ExtractionTarget) -> ItemOutcome:
        """Fetch the undelivered points of one target and forward them."""
        series = target.metric.id
        window = self._resolver.resolve(series, target.tags, self._max_query_time)

        try:
            points = self._api.get_metric(router, series, window.to_relative(), target.filters)
            written = self._sink.send(series, target.tags, points)
        except (ManagementAPIError, SinkError) as exc:
            self._logger.error(
                "Error exporting %s(%s): %s",
                series,
                target.tags,
                exc,
                extra={"router": router, "series": series, "tags": str(target.tags)},
            )
            return ItemOutcome(
                kind=ItemKind.METRIC,
                series=series,
                router=router,
                tags=str(target.tags),
                status=ItemStatus.FAIL,
                window_seconds=window.width_seconds,
                error=str(exc),
            )

        self._logger.info(
            "Successfully exported last %d seconds of %s(%s)",
            window.width_seconds,
            series,
            target.tags,
            extra={"router": router, "series": series, "tags": str(target.tags)},
        )
        return ItemOutcome(
            kind=ItemKind.METRIC,
            series=series,
            router=router,
            tags=str(target.tags),
            status=ItemStatus.SUCCESS,
            window_seconds=window.width_seconds,
            points=written,
        )

    def _sync_alarms(self, synchronizer: AlarmHistorySynchronizer, router: Router) -> ItemOutcome:
        if self._version is None:
            self._logger.error(
                "Skipping alarm history of router %s: conductor version unavailable",
                router.name,
                extra={"router": router.name, "series": ALARM_HISTORY_SERIES},
            )
            return ItemOutcome(
                kind=ItemKind.ALARM,
                series=ALARM_HISTORY_SERIES,
                router=router.name,
                tags=f"router={router.name}",
                status=ItemStatus.FAIL,
                error="conductor version unavailable",
            )
        return synchronizer.sync(router, self._version)

    def _finish(self, outcome: ItemOutcome) -> ItemOutcome:
        if self._emitter is not None:
            self._emitter.item_finished(outcome)
        return outcome

