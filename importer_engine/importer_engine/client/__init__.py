"""Conductor management API access."""

from __future__ import annotations

from importer_engine.client.base import ManagementAPI
from importer_engine.client.management_api import (
    ManagementAPIClient,
    ManagementAPIError,
    ResponseDecodeError,
    get_token,
)

__all__ = [
    "ManagementAPI",
    "ManagementAPIClient",
    "ManagementAPIError",
    "ResponseDecodeError",
    "get_token",
]
