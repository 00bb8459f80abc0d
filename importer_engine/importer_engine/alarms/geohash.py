"""Translate ISO 6709 router locations into geohashes.

Router locations are configured as ISO 6709 strings such as
``+42.3601-071.0589/``.  Only the latitude and longitude are used; an
altitude component, if present, is ignored.
"""

from __future__ import annotations

import re

import pygeohash

_COORDINATE = re.compile(r"[+-]\d+\.?\d*")

GEOHASH_PRECISION = 12


def location_to_geohash(location: str, precision: int = GEOHASH_PRECISION) -> str:
    """Return the geohash of an ISO 6709 *location*.

    Raises
    ------
    ValueError
        If *location* does not contain at least a signed latitude and a
        signed longitude, or they are out of range.
    """
    coordinates = _COORDINATE.findall(location or "")
    if len(coordinates) < 2:
        raise ValueError(f"location {location!r} is not in ISO 6709 format")

    latitude, longitude = float(coordinates[0]), float(coordinates[1])
    if not -90.0 <= latitude <= 90.0 or not -180.0 <= longitude <= 180.0:
        raise ValueError(f"location {location!r} is out of range")

    return pygeohash.encode(latitude, longitude, precision=precision)
