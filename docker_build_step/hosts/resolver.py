"""Resolving the container host an execution node is bound to.

Resolution is a capability query: any node object may expose a
``host_binding()`` method. Nodes without it, or returning None, are simply
not bound to a host. That only becomes an error once an engine connection
is actually needed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol, runtime_checkable

from docker_build_step.hosts.io import load_hosts_file
from docker_build_step.hosts.schema import HostSchema, HostsFileSchema
from docker_build_step.types import HostBinding

logger = logging.getLogger(__name__)


@runtime_checkable
class ExecutionNode(Protocol):
    """Execution node that may be bound to a container host."""

    name: str

    def host_binding(self) -> HostBinding | None:
        """Return the node's host binding, if any."""
        ...


@dataclass(frozen=True)
class Node:
    """A named execution node with an optional host binding."""

    name: str
    binding: HostBinding | None = None

    def host_binding(self) -> HostBinding | None:
        return self.binding


def resolve_host(node: object | None) -> HostBinding | None:
    """Return the host binding exposed by an execution node.

    Args:
        node: Any execution node object, or None.

    Returns:
        The node's HostBinding, or None when it exposes none.
    """
    if node is None:
        return None
    query = getattr(node, "host_binding", None)
    if not callable(query):
        return None
    binding = query()
    if binding is None:
        logger.debug("Node %s is not bound to a container host", node)
    return binding


class HostRegistry:
    """Known container hosts and the nodes bound to them."""

    def __init__(self, hosts: list[HostSchema] | None = None) -> None:
        self._hosts: dict[str, HostSchema] = {}
        self._node_hosts: dict[str, str] = {}
        for host in hosts or []:
            self._hosts[host.host_id] = host
            for node_name in host.nodes:
                self._node_hosts[node_name] = host.host_id

    @classmethod
    def from_file(cls, path: Path | None) -> HostRegistry:
        """Load a registry from a hosts file; None gives an empty registry."""
        if path is None:
            return cls()
        schema: HostsFileSchema = load_hosts_file(path)
        logger.debug("Loaded %d host(s) from %s", len(schema.hosts), path)
        return cls(schema.hosts)

    @property
    def hosts(self) -> list[HostSchema]:
        """All declared hosts."""
        return list(self._hosts.values())

    def host(self, host_id: str) -> HostSchema | None:
        """Look up a host declaration by id."""
        return self._hosts.get(host_id)

    def find_by_endpoint(self, endpoint_url: str) -> HostSchema | None:
        """Look up a host declaration by endpoint URL."""
        for host in self._hosts.values():
            if host.endpoint_url == endpoint_url:
                return host
        return None

    def binding_for(self, node_name: str) -> HostBinding | None:
        """Return the binding for a node name, if it is bound."""
        host_id = self._node_hosts.get(node_name)
        if host_id is None:
            return None
        host = self._hosts[host_id]
        return HostBinding(host_id=host.host_id, endpoint_url=host.endpoint_url)

    def node(self, name: str) -> Node:
        """Return an execution node for a name, bound if the registry knows it."""
        return Node(name=name, binding=self.binding_for(name))


__all__ = ["ExecutionNode", "HostRegistry", "Node", "resolve_host"]
