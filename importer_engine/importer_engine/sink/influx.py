"""InfluxDB 1.x sink backed by the ``influxdb`` client library.

All rows are written with nanosecond precision.  InfluxDB identifies a row
by ``(measurement, tag set, time)`` and silently overwrites the fields of an
existing row with the same key, which is what makes re-running an import
safe.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Any
from urllib.parse import urlparse

import requests
from influxdb import InfluxDBClient
from influxdb.exceptions import InfluxDBClientError, InfluxDBServerError

from importer_engine.models.events import Record
from importer_engine.models.metrics import Point
from importer_engine.models.tags import TagSet
from importer_engine.models.window import to_epoch_ns
from importer_engine.sink.base import SinkError

logger = logging.getLogger(__name__)

_DEFAULT_PORT = 8086
_PRECISION = "n"

_SINK_EXCEPTIONS = (InfluxDBClientError, InfluxDBServerError, requests.exceptions.RequestException)


def _quote_identifier(name: str) -> str:
    escaped = name.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def _write_tags(tags: Mapping[str, str]) -> dict[str, str]:
    # InfluxDB rejects empty tag values; an absent tag is the closest equivalent.
    return {key: value for key, value in tags.items() if value != ""}


def build_last_time_query(series: str, tags: TagSet) -> tuple[str, dict[str, str]]:
    """Return the InfluxQL query and bind parameters for the newest row of *series*.

    Every tag is matched exactly and the clauses are ANDed.  InfluxQL also
    matches rows carrying additional tags, so the result is grouped by every
    tag and the caller decides whether series with a wider tag set count
    (see :func:`_is_exact_series`).  Tag values are passed as bind
    parameters; tag keys and the measurement are quoted identifiers.
    """
    clauses: list[str] = []
    params: dict[str, str] = {}
    for idx, (key, value) in enumerate(tags.items()):
        param = f"t{idx}"
        clauses.append(f"{_quote_identifier(key)} = ${param}")
        params[param] = value

    where = f" WHERE {' AND '.join(clauses)}" if clauses else ""
    query = f"SELECT * FROM {_quote_identifier(series)}{where} GROUP BY * ORDER BY time DESC LIMIT 1"
    return query, params


def _is_exact_series(series_tags: Mapping[str, str] | None, tags: TagSet) -> bool:
    # Grouped results report absent tag keys with an empty value.
    present = {key: value for key, value in (series_tags or {}).items() if value}
    return present == _write_tags(tags)


class InfluxSink:
    """Write points and query checkpoints against an InfluxDB database.

    Implements the :class:`~importer_engine.sink.base.TimeSeriesSink`
    protocol.

    Parameters
    ----------
    database:
        Target database name.
    client:
        A configured :class:`influxdb.InfluxDBClient`.  Use
        :meth:`from_address` to build one from configuration values.
    """

    def __init__(self, database: str, client: InfluxDBClient) -> None:
        self._database = database
        self._client = client

    @classmethod
    def from_address(
        cls,
        address: str,
        database: str,
        username: str = "",
        password: str = "",
        timeout: float = 30.0,
    ) -> InfluxSink:
        """Build a sink from an HTTP address such as ``http://influx:8086``."""
        parsed = urlparse(address if "://" in address else f"http://{address}")
        client = InfluxDBClient(
            host=parsed.hostname or "localhost",
            port=parsed.port or _DEFAULT_PORT,
            username=username,
            password=password,
            database=database,
            ssl=parsed.scheme == "https",
            verify_ssl=True,
            timeout=timeout,
            # A single attempt per call: a value of 0 would retry forever.
            retries=1,
            path=parsed.path.strip("/"),
        )
        return cls(database, client)

    # -- Lifecycle -----------------------------------------------------------

    def ping(self) -> str:
        try:
            version = self._client.ping()
        except _SINK_EXCEPTIONS as exc:
            raise SinkError(f"Influx instance is not reachable: {exc}") from exc
        logger.debug("Influx reachable (version %s)", version)
        return str(version)

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> InfluxSink:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        self.close()

    # -- Checkpoints ---------------------------------------------------------

    def last_recorded_time(self, series: str, tags: TagSet, exact: bool = True) -> int | None:
        query, params = build_last_time_query(series, tags)
        try:
            result = self._client.query(query, bind_params=params, epoch="ns", database=self._database)
        except _SINK_EXCEPTIONS as exc:
            raise SinkError(f"Last recorded time query for {series}({tags}) failed: {exc}") from exc

        times = [
            int(row["time"])
            for (_, series_tags), rows in result.items()
            if not exact or _is_exact_series(series_tags, tags)
            for row in rows
        ]
        return max(times) if times else None

    # -- Writes --------------------------------------------------------------

    def send(self, series: str, tags: TagSet, points: Sequence[Point]) -> int:
        write_tags = _write_tags(tags)
        body = [
            {
                "measurement": series,
                "tags": write_tags,
                "time": to_epoch_ns(point.time),
                "fields": {"value": float(point.value)},
            }
            for point in points
        ]
        return self._write(series, body)

    def insert(self, series: str, records: Sequence[Record]) -> int:
        body = [
            {
                "measurement": series,
                "tags": _write_tags(record.tags),
                "time": record.time_ns,
                "fields": dict(record.fields),
            }
            for record in records
        ]
        return self._write(series, body)

    def _write(self, series: str, body: list[dict[str, Any]]) -> int:
        if not body:
            return 0
        try:
            self._client.write_points(body, time_precision=_PRECISION, database=self._database)
        except _SINK_EXCEPTIONS as exc:
            raise SinkError(f"Influx write of {len(body)} row(s) to {series} failed: {exc}") from exc
        return len(body)
