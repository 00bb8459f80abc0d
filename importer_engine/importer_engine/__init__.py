"""Incremental metric and alarm extraction into InfluxDB."""

__version__ = "1.0.0"
