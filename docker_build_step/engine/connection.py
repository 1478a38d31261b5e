"""Engine connection construction.

Connection parameters are a pure function of the host binding and the
host declaration. They are plain data, so they can travel inside a
StepRequest. The Docker client itself is only created on first use and
then cached for the rest of the run.
"""

from __future__ import annotations

import logging

import docker
from docker.errors import DockerException
from docker.tls import TLSConfig
from pydantic import BaseModel, Field

from docker_build_step.config import Settings, get_settings
from docker_build_step.errors import ConfigurationError, RunAbortedError
from docker_build_step.hosts.schema import HostSchema
from docker_build_step.types import HostBinding

logger = logging.getLogger(__name__)

NO_HOST_MESSAGE = (
    "Could not get client because we could not find the host that the run "
    "was built on. Did this run execute on a bound container host?"
)


class TransportConfig(BaseModel):
    """Endpoint and TLS settings."""

    base_url: str
    tls_verify: bool = False
    ca_cert: str | None = None
    client_cert: str | None = None
    client_key: str | None = None

    @property
    def uses_tls(self) -> bool:
        return self.tls_verify or self.client_cert is not None


class ExecConfig(BaseModel):
    """Command execution settings."""

    api_version: str = "auto"
    timeout: int = Field(default=120, ge=1)
    max_pool_size: int = Field(default=10, ge=1)


class ConnectionParams(BaseModel):
    """Everything needed to create an engine client for one host."""

    host_id: str
    transport: TransportConfig
    execution: ExecConfig = Field(default_factory=ExecConfig)


def build_connection_params(
    binding: HostBinding | None,
    host: HostSchema | None = None,
    settings: Settings | None = None,
) -> ConnectionParams:
    """Derive connection parameters from a host binding.

    Args:
        binding: Host binding of the execution node.
        host: Full host declaration, if the registry has one.
        settings: Application settings for defaults.

    Returns:
        ConnectionParams for the bound host.

    Raises:
        ConfigurationError: If there is no binding.
    """
    if binding is None:
        raise ConfigurationError(NO_HOST_MESSAGE)
    if settings is None:
        settings = get_settings()

    transport = TransportConfig(base_url=binding.endpoint_url)
    execution = ExecConfig(
        api_version=settings.docker_api_version,
        timeout=settings.docker_timeout,
        max_pool_size=settings.docker_max_pool_size,
    )
    if host is not None:
        transport = TransportConfig(
            base_url=binding.endpoint_url,
            tls_verify=host.tls_verify,
            ca_cert=host.ca_cert,
            client_cert=host.client_cert,
            client_key=host.client_key,
        )
        if host.api_version is not None:
            execution.api_version = host.api_version
        if host.timeout is not None:
            execution.timeout = host.timeout

    return ConnectionParams(
        host_id=binding.host_id, transport=transport, execution=execution
    )


def create_client(params: ConnectionParams) -> docker.DockerClient:
    """Create a Docker client for connection parameters."""
    transport = params.transport
    tls: TLSConfig | bool = False
    if transport.uses_tls:
        client_cert = None
        if transport.client_cert and transport.client_key:
            client_cert = (transport.client_cert, transport.client_key)
        tls = TLSConfig(
            client_cert=client_cert,
            ca_cert=transport.ca_cert,
            verify=transport.tls_verify,
        )

    logger.debug(
        "Creating engine client for host %s at %s", params.host_id, transport.base_url
    )
    return docker.DockerClient(
        base_url=transport.base_url,
        version=params.execution.api_version,
        timeout=params.execution.timeout,
        tls=tls,
        max_pool_size=params.execution.max_pool_size,
    )


class Connection:
    """Lazily created engine client, owned by exactly one run."""

    def __init__(self, params: ConnectionParams | None) -> None:
        self.params = params
        self._client: docker.DockerClient | None = None
        self._closed = False

    @property
    def client(self) -> docker.DockerClient:
        """The engine client, created on first access."""
        if self._closed:
            raise RunAbortedError("Connection closed")
        if self._client is None:
            if self.params is None:
                raise ConfigurationError(NO_HOST_MESSAGE)
            try:
                self._client = create_client(self.params)
            except DockerException as e:
                raise ConfigurationError(
                    f"Could not connect to host {self.params.host_id}: {e}"
                ) from e
        return self._client

    @property
    def is_open(self) -> bool:
        """Whether a client has been created and not closed."""
        return self._client is not None and not self._closed

    def close(self) -> None:
        """Close the client; later accesses raise RunAbortedError."""
        self._closed = True
        if self._client is not None:
            self._client.close()


__all__ = [
    "Connection",
    "ConnectionParams",
    "ExecConfig",
    "TransportConfig",
    "build_connection_params",
    "create_client",
]
