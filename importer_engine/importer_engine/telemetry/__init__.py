"""Logging setup and run telemetry."""

from __future__ import annotations

from importer_engine.telemetry.emitter import MetricsEmitter
from importer_engine.telemetry.log_config import JSONFormatter, configure_logging

__all__ = [
    "JSONFormatter",
    "MetricsEmitter",
    "configure_logging",
]
