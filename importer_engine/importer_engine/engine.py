"""Top-level orchestration of one extraction run.

A run has two phases:

1. **Setup** - resolve the metric catalog, take the topology snapshot and
   verify the sink is reachable.  Any failure here raises
   :class:`SetupError` and nothing is extracted.
2. **Extraction** - every router of the snapshot is handed to the
   :class:`~importer_engine.executor.dispatcher.FetchDispatcher`.  Failures
   in this phase are per item and only show up in the returned
   :class:`RunSummary`.
"""

from __future__ import annotations

import logging
import time

from importer_engine.alarms.synchronizer import AlarmHistorySynchronizer
from importer_engine.catalog import METRICS, CatalogError, resolve_metrics
from importer_engine.client.base import ManagementAPI
from importer_engine.client.management_api import ManagementAPIClient, ManagementAPIError
from importer_engine.config import CatalogSource, Settings
from importer_engine.executor.dispatcher import FetchDispatcher
from importer_engine.executor.router_task import RouterTask
from importer_engine.models.metrics import MetricDescriptor
from importer_engine.models.run import ItemKind, RunSummary
from importer_engine.models.topology import Configuration
from importer_engine.planner.checkpoint import CheckpointResolver, Clock, utcnow
from importer_engine.sink.base import SinkError, TimeSeriesSink
from importer_engine.sink.influx import InfluxSink
from importer_engine.telemetry.emitter import MetricsEmitter

logger = logging.getLogger(__name__)


class SetupError(Exception):
    """Raised when a run cannot start: catalog, topology or sink unavailable."""


class ImportEngine:
    """Run an incremental import from a conductor into the sink.

    Parameters
    ----------
    settings:
        Validated importer settings.
    api:
        Management API implementation.
    sink:
        Time-series sink implementation.
    emitter:
        Optional telemetry emitter.
    clock:
        Source of ``now`` for checkpoint resolution.
    """

    def __init__(
        self,
        settings: Settings,
        api: ManagementAPI,
        sink: TimeSeriesSink,
        emitter: MetricsEmitter | None = None,
        clock: Clock = utcnow,
    ) -> None:
        self._settings = settings
        self._api = api
        self._sink = sink
        self._emitter = emitter or MetricsEmitter()
        self._resolver = CheckpointResolver(sink, clock=clock)

    @classmethod
    def from_settings(cls, settings: Settings, emitter: MetricsEmitter | None = None) -> ImportEngine:
        """Build an engine talking to the configured conductor and Influx instance."""
        api = ManagementAPIClient(
            settings.target.url,
            settings.target.token.get_secret_value(),
            timeout=settings.application.request_timeout,
            verify_ssl=settings.target.verify_ssl,
        )
        sink = InfluxSink.from_address(
            settings.influx.address,
            settings.influx.database,
            username=settings.influx.username,
            password=settings.influx.password.get_secret_value(),
            timeout=settings.application.request_timeout,
        )
        return cls(settings, api, sink, emitter=emitter)

    def close(self) -> None:
        """Release the connections of the API client and the sink, when they hold any."""
        for resource in (self._api, self._sink):
            close = getattr(resource, "close", None)
            if callable(close):
                close()

    # -- Setup ---------------------------------------------------------------

    def load_metrics(self) -> list[MetricDescriptor]:
        """Resolve ``metrics.enabled`` against the configured catalog.

        Raises
        ------
        SetupError
            If the catalog cannot be fetched or a metric id is unknown.
        """
        metrics_config = self._settings.metrics
        if metrics_config.catalog is CatalogSource.DISCOVER:
            try:
                catalog = self._api.get_metric_metadata()
            except ManagementAPIError as exc:
                raise SetupError(f"Error retrieving metric metadata: {exc}") from exc
        else:
            catalog = list(METRICS)

        try:
            metrics = resolve_metrics(metrics_config.enabled, catalog)
        except CatalogError as exc:
            raise SetupError(str(exc)) from exc

        if not metrics:
            logger.warning("No metrics enabled; only alarm history will be collected")
        return metrics

    def load_configuration(self) -> Configuration:
        """Take the topology snapshot for this run."""
        try:
            return self._api.get_configuration()
        except ManagementAPIError as exc:
            raise SetupError(f"Error retrieving configuration: {exc}") from exc

    def check_sink(self) -> None:
        try:
            version = self._sink.ping()
        except SinkError as exc:
            raise SetupError(str(exc)) from exc
        logger.debug("Sink reachable (version %s)", version)

    def conductor_version(self) -> str | None:
        """Return the conductor software version, or ``None`` when unavailable."""
        try:
            version = self._api.get_system_info().version
        except ManagementAPIError as exc:
            logger.error("Error retrieving conductor version; alarm history will be skipped: %s", exc)
            return None
        logger.debug("Conductor version %s", version)
        return version

    # -- Run -----------------------------------------------------------------

    def run(self) -> RunSummary:
        """Extract every enabled series of every router once.

        Raises
        ------
        SetupError
            If the run cannot start.  Per-item failures never raise.
        """
        started = time.monotonic()

        metrics = self.load_metrics()
        self.check_sink()
        configuration = self.load_configuration()
        authority = configuration.authority

        synchronizer: AlarmHistorySynchronizer | None = None
        version: str | None = None
        if self._settings.alarm_history.enabled:
            synchronizer = AlarmHistorySynchronizer(
                self._api,
                self._sink,
                self._resolver,
                self._settings.alarm_history.max_query_time,
            )
            version = self.conductor_version()

        task = RouterTask(
            self._api,
            self._sink,
            self._resolver,
            authority,
            metrics,
            self._settings.metrics.max_query_time,
            synchronizer=synchronizer,
            version=version,
            emitter=self._emitter,
        )
        dispatcher = FetchDispatcher(self._settings.application.max_concurrent_routers)

        logger.info(
            "Extracting %d metric(s) from %d router(s) with up to %d concurrent router(s)",
            len(metrics),
            len(authority.routers),
            dispatcher.max_workers,
        )
        outcomes = dispatcher.dispatch(authority.routers, task)
        # Item outcomes are emitted by the router task as they finish.
        for outcome in outcomes:
            if outcome.kind is ItemKind.ROUTER:
                self._emitter.item_finished(outcome)

        summary = RunSummary(
            routers=len(authority.routers),
            outcomes=outcomes,
            duration_ms=round((time.monotonic() - started) * 1000, 2),
        )
        self._emitter.run_finished(summary)
        logger.info(
            "Run finished in %.0f ms: %d succeeded, %d failed",
            summary.duration_ms,
            summary.succeeded,
            summary.failed,
        )
        return summary
