"""Time-series sinks."""

from __future__ import annotations

from importer_engine.sink.base import SinkError, TimeSeriesSink
from importer_engine.sink.influx import InfluxSink

__all__ = [
    "InfluxSink",
    "SinkError",
    "TimeSeriesSink",
]
