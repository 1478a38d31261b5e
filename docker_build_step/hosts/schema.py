"""Pydantic models for container host declarations.

A hosts file looks like::

    hosts:
      - host_id: build-farm-1
        endpoint_url: tcp://docker1.example.com:2376
        tls_verify: true
        ca_cert: /etc/docker-build-step/ca.pem
        client_cert: /etc/docker-build-step/cert.pem
        client_key: /etc/docker-build-step/key.pem
        nodes: [agent-1, agent-2]
"""

import re

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

HOST_ID_PATTERN = re.compile(r"^[a-zA-Z0-9_.\-]+$")
_ENDPOINT_SCHEMES = ("tcp://", "unix://", "npipe://", "ssh://", "http://", "https://")


class HostSchema(BaseModel):
    """Declaration of one container host.

    Attributes:
        host_id: Unique identifier of the host.
        endpoint_url: Engine endpoint URL.
        tls_verify: Verify the daemon certificate (TLS endpoints).
        ca_cert: Path to the CA certificate.
        client_cert: Path to the client certificate.
        client_key: Path to the client key.
        api_version: Engine API version override.
        timeout: Transport timeout override in seconds.
        nodes: Names of execution nodes bound to this host.
    """

    model_config = ConfigDict(extra="forbid")

    host_id: str = Field(description="Unique host identifier")
    endpoint_url: str = Field(description="Engine endpoint URL")
    tls_verify: bool = Field(default=False)
    ca_cert: str | None = Field(default=None)
    client_cert: str | None = Field(default=None)
    client_key: str | None = Field(default=None)
    api_version: str | None = Field(default=None)
    timeout: int | None = Field(default=None, ge=1)
    nodes: list[str] = Field(default_factory=list)

    @field_validator("host_id")
    @classmethod
    def validate_host_id(cls, v: str) -> str:
        """Validate host_id format."""
        if not HOST_ID_PATTERN.match(v):
            raise ValueError(
                f"host_id must match pattern {HOST_ID_PATTERN.pattern}, got '{v}'"
            )
        return v

    @field_validator("endpoint_url")
    @classmethod
    def validate_endpoint_url(cls, v: str) -> str:
        """Validate the endpoint has a known scheme."""
        if not v.startswith(_ENDPOINT_SCHEMES):
            raise ValueError(
                f"endpoint_url must start with one of {_ENDPOINT_SCHEMES}, got '{v}'"
            )
        return v

    @model_validator(mode="after")
    def validate_client_pair(self) -> "HostSchema":
        """Client certificate and key must be given together."""
        if (self.client_cert is None) != (self.client_key is None):
            raise ValueError("client_cert and client_key must be set together")
        return self

    @property
    def uses_tls(self) -> bool:
        """Whether connections to this host use TLS."""
        return self.tls_verify or self.client_cert is not None


class HostsFileSchema(BaseModel):
    """Top-level hosts file."""

    model_config = ConfigDict(extra="forbid")

    hosts: list[HostSchema] = Field(default_factory=list)

    @model_validator(mode="after")
    def validate_unique(self) -> "HostsFileSchema":
        """Host ids must be unique and a node may be bound to one host only."""
        seen_hosts: set[str] = set()
        seen_nodes: dict[str, str] = {}
        for host in self.hosts:
            if host.host_id in seen_hosts:
                raise ValueError(f"Duplicate host_id: {host.host_id}")
            seen_hosts.add(host.host_id)
            for node in host.nodes:
                if node in seen_nodes:
                    raise ValueError(
                        f"Node {node} is bound to both {seen_nodes[node]} "
                        f"and {host.host_id}"
                    )
                seen_nodes[node] = host.host_id
        return self


__all__ = ["HOST_ID_PATTERN", "HostSchema", "HostsFileSchema"]
