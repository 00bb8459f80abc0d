"""Derive the (metric, tag set) pairs to extract from a topology snapshot.

The planner walks one router depth-first (node -> device interface ->
network interface -> adjacency), then the logical entities visible to the
router (services, tenants, service classes, its service routes and the
authority's service groups).  At each entity it selects the metrics whose
applicability keys contain the entity type and emits one
:class:`ExtractionTarget` per metric.

Composite tag values are part of the series identity in the sink and must
stay stable across releases:

* device interface  -> ``{node}.{deviceInterfaceID}``
* network interface -> ``{node}.{networkInterfaceName}``
* peer path         -> ``{peer}/{ip}/{node}/{deviceInterfaceID}/{vlan}``
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from importer_engine import catalog
from importer_engine.models.metrics import MetricDescriptor
from importer_engine.models.tags import TagSet
from importer_engine.models.topology import Adjacency, Authority, DeviceInterface, NetworkInterface, Node, Router

logger = logging.getLogger(__name__)

ROUTER_TAG = "router"


@dataclass(frozen=True)
class ExtractionTarget:
    """One metric to fetch for one tagged topology entity."""

    metric: MetricDescriptor
    tags: TagSet

    @property
    def filters(self) -> TagSet:
        """Tags sent upstream; the router is addressed by the request path instead."""
        return self.tags.without(ROUTER_TAG)


# ---------------------------------------------------------------------------
# Composite identifiers
# ---------------------------------------------------------------------------


def device_interface_id(node: Node, device_interface: DeviceInterface) -> str:
    return f"{node.name}.{device_interface.id}"


def network_interface_id(node: Node, network_interface: NetworkInterface) -> str:
    return f"{node.name}.{network_interface.name}"


def peer_path_id(
    node: Node,
    device_interface: DeviceInterface,
    network_interface: NetworkInterface,
    adjacency: Adjacency,
) -> str:
    return f"{adjacency.peer}/{adjacency.ip_address}/{node.name}/{device_interface.id}/{network_interface.vlan}"


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def _targets(metrics: Sequence[MetricDescriptor], key: str, tags: TagSet) -> list[ExtractionTarget]:
    return [ExtractionTarget(metric=metric, tags=tags) for metric in catalog.metrics_for(metrics, key)]


def plan_router_targets(
    authority: Authority,
    router: Router,
    metrics: Sequence[MetricDescriptor],
    service_groups: Iterable[str] | None = None,
) -> list[ExtractionTarget]:
    """Return every extraction target for *router*, in traversal order.

    Parameters
    ----------
    authority:
        Authority owning *router*; supplies services, tenants and service
        classes.
    router:
        The router to plan.
    metrics:
        Metrics selected for extraction.
    service_groups:
        Pre-computed distinct service group names.  Derived from
        *authority* when omitted.
    """
    if service_groups is None:
        service_groups = authority.service_groups()

    targets: list[ExtractionTarget] = []
    router_tags = TagSet([(ROUTER_TAG, router.name)])

    for node in router.nodes:
        node_tags = router_tags.with_tag("node", node.name)
        targets += _targets(metrics, catalog.NODE, node_tags)

        for device_interface in node.device_interfaces:
            targets += _targets(
                metrics,
                catalog.DEVICE_INTERFACE,
                node_tags.with_tag("device_interface", device_interface_id(node, device_interface)),
            )

            for network_interface in device_interface.network_interfaces:
                targets += _targets(
                    metrics,
                    catalog.NETWORK_INTERFACE,
                    node_tags.with_tag("network_interface", network_interface_id(node, network_interface)),
                )

                for adjacency in network_interface.adjacencies:
                    peer_path = peer_path_id(node, device_interface, network_interface, adjacency)
                    targets += _targets(metrics, catalog.PEER_PATH, node_tags.with_tag("peer_path", peer_path))

    for service in authority.services:
        targets += _targets(metrics, catalog.SERVICE, router_tags.with_tag("service", service.name))

    for tenant in authority.tenants:
        targets += _targets(metrics, catalog.TENANT, router_tags.with_tag("tenant", tenant.name))

    for service_class in authority.service_classes:
        targets += _targets(metrics, catalog.SERVICE_CLASS, router_tags.with_tag("service_class", service_class.name))

    for service_route in router.service_routes:
        targets += _targets(metrics, catalog.SERVICE_ROUTE, router_tags.with_tag("service_route", service_route.name))

    for service_group in sorted(set(service_groups)):
        targets += _targets(metrics, catalog.SERVICE_GROUP, router_tags.with_tag("service_group", service_group))

    logger.debug("Planned %d extraction target(s) for router %s", len(targets), router.name)
    return targets
