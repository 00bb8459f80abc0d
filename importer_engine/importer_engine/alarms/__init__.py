"""Alarm history synchronisation."""

from importer_engine.alarms.geohash import location_to_geohash
from importer_engine.alarms.synchronizer import ALARM_HISTORY_SERIES, AlarmHistorySynchronizer, is_legacy_version

__all__ = [
    "ALARM_HISTORY_SERIES",
    "AlarmHistorySynchronizer",
    "is_legacy_version",
    "location_to_geohash",
]
