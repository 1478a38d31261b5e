"""Container host module.

This module handles:
- Host declarations loaded from a YAML registry file
- Resolving the host an execution node is bound to
"""

from docker_build_step.hosts.resolver import HostRegistry, Node, resolve_host
from docker_build_step.hosts.schema import HostSchema

__all__ = ["HostRegistry", "HostSchema", "Node", "resolve_host"]
