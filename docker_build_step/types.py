"""Shared type definitions for docker_build_step.

This module contains enums and dataclasses shared across subpackages to
avoid circular imports.
"""

from dataclasses import dataclass, field
from enum import Enum


class RunStatus(str, Enum):
    """Status of a step run."""

    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True)
class HostBinding:
    """Association between an execution node and a container host.

    Attributes:
        host_id: Identifier of the container host.
        endpoint_url: Engine endpoint, e.g. ``tcp://docker.example:2376``.
    """

    host_id: str
    endpoint_url: str


@dataclass
class OperationResult:
    """Result of a check or operation surfaced to a frontend."""

    success: bool
    message: str
    code: str | None = None
    details: dict[str, object] = field(default_factory=dict)


__all__ = ["HostBinding", "OperationResult", "RunStatus"]
