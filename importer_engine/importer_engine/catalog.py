"""Built-in metric catalog and helpers for selecting metrics.

The static catalog below covers the statistics most deployments export.
Conductors that expose ``/api/v1/metrics/metadata`` can instead be asked for
their full catalog (``metrics.catalog = "discover"``); both paths produce the
same :class:`MetricDescriptor` objects.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence

from importer_engine.models.metrics import MetricDescriptor

logger = logging.getLogger(__name__)

# Applicability keys, one per topology entity type.
NODE = "node"
DEVICE_INTERFACE = "device-interface"
NETWORK_INTERFACE = "network-interface"
PEER_PATH = "peer-path"
SERVICE = "service"
TENANT = "tenant"
SERVICE_CLASS = "service-class"
SERVICE_ROUTE = "service-route"
SERVICE_GROUP = "service-group"


class CatalogError(Exception):
    """Raised when a configured metric cannot be resolved against the catalog."""


def _metric(metric_id: str, description: str, *keys: str) -> MetricDescriptor:
    return MetricDescriptor(id=metric_id, description=description, keys=frozenset(keys))


METRICS: tuple[MetricDescriptor, ...] = (
    # Node
    _metric("cpu/utilization", "Average CPU utilization of the node", NODE),
    _metric("memory/utilization", "Memory utilization of the node", NODE),
    _metric("disk/utilization", "Disk utilization of the node", NODE),
    _metric("aggregate-session/node/session-count", "Active sessions on the node", NODE),
    _metric("aggregate-session/node/session-arrival-rate", "New sessions per second on the node", NODE),
    _metric("aggregate-session/node/bandwidth", "Total session bandwidth through the node", NODE),
    # Device interface
    _metric("interface/received/bytes", "Bytes received on the device interface", DEVICE_INTERFACE),
    _metric("interface/sent/bytes", "Bytes sent on the device interface", DEVICE_INTERFACE),
    _metric("interface/received/packets", "Packets received on the device interface", DEVICE_INTERFACE),
    _metric("interface/sent/packets", "Packets sent on the device interface", DEVICE_INTERFACE),
    _metric("interface/received/missed", "Packets missed on receive", DEVICE_INTERFACE),
    _metric("interface/sent/error", "Transmit errors on the device interface", DEVICE_INTERFACE),
    # Network interface
    _metric(
        "aggregate-session/network-interface/bandwidth",
        "Session bandwidth through the network interface",
        NETWORK_INTERFACE,
    ),
    _metric(
        "aggregate-session/network-interface/session-count",
        "Active sessions on the network interface",
        NETWORK_INTERFACE,
    ),
    # Peer path
    _metric("bfd/by-peer-path/latency", "BFD measured latency of the peer path", PEER_PATH),
    _metric("bfd/by-peer-path/jitter", "BFD measured jitter of the peer path", PEER_PATH),
    _metric("bfd/by-peer-path/loss", "BFD measured loss of the peer path", PEER_PATH),
    _metric("bfd/by-peer-path/mos", "Mean opinion score of the peer path", PEER_PATH),
    # Service
    _metric("aggregate-session/service/bandwidth", "Session bandwidth of the service", SERVICE),
    _metric("aggregate-session/service/session-count", "Active sessions of the service", SERVICE),
    _metric(
        "aggregate-session/service/tcp-retransmissions",
        "TCP retransmissions observed for the service",
        SERVICE,
    ),
    # Tenant
    _metric("aggregate-session/tenant/bandwidth", "Session bandwidth of the tenant", TENANT),
    _metric("aggregate-session/tenant/session-count", "Active sessions of the tenant", TENANT),
    # Service class
    _metric("aggregate-session/service-class/bandwidth", "Session bandwidth of the service class", SERVICE_CLASS),
    _metric(
        "aggregate-session/service-class/session-count",
        "Active sessions of the service class",
        SERVICE_CLASS,
    ),
    # Service route
    _metric("aggregate-session/service-route/bandwidth", "Session bandwidth of the service route", SERVICE_ROUTE),
    _metric(
        "aggregate-session/service-route/session-count",
        "Active sessions of the service route",
        SERVICE_ROUTE,
    ),
    # Service group
    _metric("aggregate-session/service-group/bandwidth", "Session bandwidth of the service group", SERVICE_GROUP),
    _metric(
        "aggregate-session/service-group/session-count",
        "Active sessions of the service group",
        SERVICE_GROUP,
    ),
)


def find_metric_by_id(metric_id: str, catalog: Iterable[MetricDescriptor] = METRICS) -> MetricDescriptor | None:
    """Return the descriptor whose id matches *metric_id*, if any.

    A leading ``/stats/`` prefix is tolerated so that ids copied from the
    conductor UI resolve as well.
    """
    wanted = metric_id.removeprefix("/stats/")
    for descriptor in catalog:
        if descriptor.id == wanted:
            return descriptor
    return None


def resolve_metrics(metric_ids: Sequence[str], catalog: Iterable[MetricDescriptor] = METRICS) -> list[MetricDescriptor]:
    """Map configured metric ids to descriptors, preserving configured order.

    Raises
    ------
    CatalogError
        If any id is unknown to *catalog*.
    """
    catalog = list(catalog)
    resolved: list[MetricDescriptor] = []
    for metric_id in metric_ids:
        descriptor = find_metric_by_id(metric_id, catalog)
        if descriptor is None:
            raise CatalogError(f"{metric_id} is not a valid metric")
        resolved.append(descriptor)

    logger.debug("Resolved %d metric(s) against a catalog of %d", len(resolved), len(catalog))
    return resolved


def metrics_for(metrics: Iterable[MetricDescriptor], key: str) -> list[MetricDescriptor]:
    """Return the metrics applicable to entities of type *key*."""
    return [metric for metric in metrics if metric.applies_to(key)]
