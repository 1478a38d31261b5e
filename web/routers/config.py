"""Configuration endpoints."""

from typing import Any

from fastapi import APIRouter

from docker_build_step.config import get_settings

router = APIRouter()


@router.get("")
def get_config() -> dict[str, Any]:
    """Get effective configuration.

    Returns:
        Current configuration as JSON.
    """
    settings = get_settings()
    return {
        "db_url": settings.db_url,
        "logs_dir": str(settings.logs_dir),
        "hosts_file": str(settings.hosts_file) if settings.hosts_file else None,
        "log_level": settings.log_level,
        "docker_api_version": settings.docker_api_version,
        "docker_timeout": settings.docker_timeout,
        "docker_max_pool_size": settings.docker_max_pool_size,
        "default_push_tag": settings.default_push_tag,
        "fail_on_empty_tags": settings.fail_on_empty_tags,
    }
