"""HTTP client for the conductor management REST API.

All requests carry the bearer token from the configuration and are bounded
by a fixed per-request timeout.  Conductors commonly run with self-signed
certificates, so TLS verification is opt-in (``target.verify_ssl``).

Failures surface as :class:`ManagementAPIError` (transport problems and
non-200 responses) or :class:`ResponseDecodeError` (bodies that are not
JSON or do not match the expected shape).  The client never retries.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import UTC, datetime
from typing import Any, TypeVar
from urllib.parse import quote

import httpx
from pydantic import TypeAdapter, ValidationError

from importer_engine.models.events import AuditEvent, LegacyAlarm
from importer_engine.models.metrics import MetricDescriptor, MetricPermutation, Point, SystemInfo
from importer_engine.models.tags import TagSet
from importer_engine.models.topology import Configuration
from importer_engine.models.window import Window

logger = logging.getLogger(__name__)

T = TypeVar("T")

_STATS_PREFIX = "/stats/"

_POINTS = TypeAdapter(list[Point])
_AUDIT_EVENTS = TypeAdapter(list[AuditEvent])
_LEGACY_ALARMS = TypeAdapter(list[LegacyAlarm])
_DESCRIPTORS = TypeAdapter(list[MetricDescriptor])
_PERMUTATIONS = TypeAdapter(list[MetricPermutation])


class ManagementAPIError(Exception):
    """Raised when a management API request fails."""


class ResponseDecodeError(ManagementAPIError):
    """Raised when a response body cannot be decoded into the expected model."""


def _format_time(value: datetime) -> str:
    """Render *value* as RFC 3339 UTC with second resolution."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).strftime("%Y-%m-%dT%H:%M:%SZ")


def _router_path(router: str, suffix: str) -> str:
    return f"/api/v1/router/{quote(router, safe='')}/{suffix}"


class ManagementAPIClient:
    """Typed wrapper around the conductor REST API.

    Implements the :class:`~importer_engine.client.base.ManagementAPI`
    protocol.

    Parameters
    ----------
    base_url:
        Root URL of the conductor (e.g. ``https://10.0.1.29``).
    token:
        JWT used as bearer token.
    timeout:
        Per-request timeout in seconds.
    verify_ssl:
        Whether to verify the conductor's TLS certificate.
    http_client:
        Pre-built :class:`httpx.Client`, mainly for tests.  When given,
        *timeout* and *verify_ssl* are ignored.
    """

    def __init__(
        self,
        base_url: str,
        token: str,
        *,
        timeout: float = 30.0,
        verify_ssl: bool = False,
        http_client: httpx.Client | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._headers = {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
        }
        self._client = http_client or httpx.Client(timeout=httpx.Timeout(timeout), verify=verify_ssl)

    # -- Lifecycle -----------------------------------------------------------

    def close(self) -> None:
        """Close the underlying HTTP connection pool."""
        self._client.close()

    def __enter__(self) -> ManagementAPIClient:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        self.close()

    # -- Topology & system ---------------------------------------------------

    def get_configuration(self) -> Configuration:
        payload = self._request("GET", "/api/v1/config/getJSON", params={"source": "running"})
        return self._decode(TypeAdapter(Configuration), payload, "configuration")

    def get_system_info(self) -> SystemInfo:
        payload = self._request("GET", "/api/v1/system")
        return self._decode(TypeAdapter(SystemInfo), payload, "system information")

    # -- Metrics -------------------------------------------------------------

    def get_metric_metadata(self) -> list[MetricDescriptor]:
        payload = self._request("GET", "/api/v1/metrics/metadata")
        if isinstance(payload, list):
            payload = [
                {**item, "id": str(item.get("id", "")).removeprefix(_STATS_PREFIX)} if isinstance(item, dict) else item
                for item in payload
            ]
        return self._decode(_DESCRIPTORS, payload, "metric metadata")

    def get_metric_permutations(self, router: str, descriptor: MetricDescriptor) -> list[MetricPermutation]:
        payload = self._request(
            "POST",
            _router_path(router, "metrics/permutations"),
            body={"id": _STATS_PREFIX + descriptor.id},
        )
        return self._decode(_PERMUTATIONS, payload, f"permutations of {descriptor.id}")

    def get_metric(
        self,
        router: str,
        series_id: str,
        window: Window,
        filters: TagSet,
        transform: str = "sum",
    ) -> list[Point]:
        body = {
            "id": _STATS_PREFIX + series_id,
            "transform": transform,
            "window": window.model_dump(),
            "filters": [filters.as_dict()],
        }
        payload = self._request("POST", _router_path(router, "metrics"), body=body)
        return self._decode(_POINTS, payload, f"{series_id}({filters})")

    # -- Audit / alarms ------------------------------------------------------

    def get_audit_events(
        self,
        router: str,
        category_filter: Sequence[str],
        start: datetime,
        end: datetime,
    ) -> list[AuditEvent]:
        params: list[tuple[str, str]] = [
            ("router", router),
            ("start", _format_time(start)),
            ("end", _format_time(end)),
        ]
        params.extend(("filter", category) for category in category_filter)
        payload = self._request("GET", "/api/v1/audit", params=params)
        return self._decode(_AUDIT_EVENTS, payload, f"audit events of {router}")

    def get_legacy_alarm_history(self, router: str, start: datetime, end: datetime) -> list[AuditEvent]:
        params = [
            ("router", router),
            ("start", _format_time(start)),
            ("end", _format_time(end)),
        ]
        payload = self._request("GET", "/api/v1/audit/alarms", params=params)
        alarms = self._decode(_LEGACY_ALARMS, payload, f"legacy alarm history of {router}")
        return [alarm.to_audit_event(router) for alarm in alarms]

    # -- Internal helpers ----------------------------------------------------

    def _request(
        self,
        method: str,
        path: str,
        *,
        params: Any = None,
        body: dict[str, Any] | None = None,
    ) -> Any:
        """Send a request and return the decoded JSON body."""
        url = f"{self._base_url}{path}"
        try:
            response = self._client.request(method, url, headers=self._headers, params=params, json=body)
        except httpx.HTTPError as exc:
            raise ManagementAPIError(f"{method} {path} failed: {exc}") from exc

        if response.status_code != 200:
            raise ManagementAPIError(
                f"{method} {path} returned invalid status code: {response.status_code} {response.reason_phrase}"
            )

        try:
            return response.json()
        except ValueError as exc:
            raise ResponseDecodeError(f"{method} {path} returned a body that is not JSON: {exc}") from exc

    @staticmethod
    def _decode(adapter: TypeAdapter[T], payload: Any, what: str) -> T:
        try:
            return adapter.validate_python(payload)
        except ValidationError as exc:
            raise ResponseDecodeError(f"Unexpected {what} response: {exc.error_count()} validation error(s)") from exc


def get_token(
    base_url: str,
    username: str,
    password: str,
    *,
    timeout: float = 30.0,
    verify_ssl: bool = False,
    http_client: httpx.Client | None = None,
) -> str:
    """Request a JWT from the conductor's login endpoint.

    Raises
    ------
    ManagementAPIError
        If the request fails or the response carries no token.
    """
    client = http_client or httpx.Client(timeout=httpx.Timeout(timeout), verify=verify_ssl)
    url = f"{base_url.rstrip('/')}/api/v1/login"
    try:
        response = client.post(url, json={"username": username, "password": password})
    except httpx.HTTPError as exc:
        raise ManagementAPIError(f"Login request to {url} failed: {exc}") from exc
    finally:
        if http_client is None:
            client.close()

    if response.status_code != 200:
        raise ManagementAPIError(f"Login returned invalid status code: {response.status_code} {response.reason_phrase}")

    try:
        token = response.json().get("token")
    except (ValueError, AttributeError) as exc:
        raise ResponseDecodeError(f"Login returned an unexpected body: {exc}") from exc

    if not token:
        raise ManagementAPIError("request successful but token was empty")
    return str(token)
