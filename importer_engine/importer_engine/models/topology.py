"""Topology snapshot models for the running conductor configuration.

The snapshot is fetched once per run from ``/api/v1/config/getJSON`` and is
treated as immutable for the remainder of the run.  Only the attributes the
extraction planner and the alarm synchroniser need are modelled; every other
key in the configuration document is ignored.
"""

from __future__ import annotations

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class _TopologyModel(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")


class Adjacency(_TopologyModel):
    """A peer adjacency reachable through a network interface."""

    peer: str = ""
    ip_address: str = Field(default="", alias="ipAddress")


class NetworkInterface(_TopologyModel):
    """A logical interface on top of a device interface."""

    name: str
    vlan: int = 0
    adjacencies: list[Adjacency] = Field(default_factory=list, alias="adjacency")


class DeviceInterface(_TopologyModel):
    """A physical (or virtual) port on a node."""

    id: int
    network_interfaces: list[NetworkInterface] = Field(default_factory=list, alias="networkInterface")


class Node(_TopologyModel):
    name: str
    device_interfaces: list[DeviceInterface] = Field(default_factory=list, alias="deviceInterface")


class ServiceRoute(_TopologyModel):
    name: str


class Router(_TopologyModel):
    """A managed router; the unit of concurrency during extraction."""

    name: str
    location: str = ""
    nodes: list[Node] = Field(default_factory=list, alias="node")
    service_routes: list[ServiceRoute] = Field(
        default_factory=list,
        validation_alias=AliasChoices("serviceRoute", "service-route", "service_route"),
    )


class Service(_TopologyModel):
    name: str
    service_group: str = Field(default="", alias="serviceGroup")


class Tenant(_TopologyModel):
    name: str


class ServiceClass(_TopologyModel):
    name: str


class Authority(_TopologyModel):
    """Root of the topology: routers plus authority-wide logical entities."""

    routers: list[Router] = Field(default_factory=list, alias="router")
    services: list[Service] = Field(default_factory=list, alias="service")
    tenants: list[Tenant] = Field(default_factory=list, alias="tenant")
    service_classes: list[ServiceClass] = Field(default_factory=list, alias="serviceClass")

    def service_groups(self) -> list[str]:
        """Return the distinct, non-empty service group names, sorted."""
        return sorted({service.service_group for service in self.services if service.service_group})


class Configuration(_TopologyModel):
    """Top-level container returned by the configuration endpoint."""

    authority: Authority = Field(default_factory=Authority)
