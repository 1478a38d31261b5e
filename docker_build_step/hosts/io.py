"""Loading host declarations from YAML."""

from pathlib import Path
from typing import Any

import yaml

from docker_build_step.hosts.schema import HostsFileSchema


def load_yaml(path: Path) -> dict[str, Any]:
    """Load a YAML file and return its contents as a dict.

    Args:
        path: Path to the YAML file.

    Returns:
        Parsed YAML content as a dictionary.

    Raises:
        FileNotFoundError: If the file does not exist.
        yaml.YAMLError: If the file is not valid YAML.
    """
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"Expected a YAML mapping, got {type(data).__name__}")
    return data


def load_hosts_file(path: Path) -> HostsFileSchema:
    """Load and validate a hosts file.

    Raises:
        pydantic.ValidationError: If the content is invalid.
    """
    return HostsFileSchema.model_validate(load_yaml(path))


__all__ = ["load_hosts_file", "load_yaml"]
