"""Configuration settings for docker_build_step.

Uses pydantic-settings for config parsing from environment variables
and defaults. Configuration precedence: CLI flags > env vars > defaults.
"""

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _default_logs_dir() -> Path:
    """Return the default directory for run logs."""
    return Path.home() / ".local" / "share" / "docker-build-step" / "logs"


def _default_db_url() -> str:
    """Return the default database URL (SQLite)."""
    db_path = Path.home() / ".local" / "share" / "docker-build-step" / "db.sqlite"
    return f"sqlite:///{db_path}"


class Settings(BaseSettings):
    """Application settings.

    Settings are loaded from environment variables with the DBS_ prefix.
    CLI flags can override these at runtime.
    """

    model_config = SettingsConfigDict(
        env_prefix="DBS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Paths
    db_url: str = Field(
        default_factory=_default_db_url,
        description="Database connection URL for job history",
    )
    logs_dir: Path = Field(
        default_factory=_default_logs_dir,
        description="Root directory for per-run log files",
    )
    hosts_file: Path | None = Field(
        default=None,
        description="YAML file declaring container hosts and their bound nodes",
    )

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )

    # Engine transport
    docker_api_version: str = Field(
        default="auto",
        description="Docker API version, or 'auto' to negotiate with the daemon",
    )
    docker_timeout: int = Field(
        default=120,
        ge=1,
        description="Transport timeout for engine calls in seconds",
    )
    docker_max_pool_size: int = Field(
        default=10,
        ge=1,
        le=100,
        description="Maximum HTTP connection pool size per client",
    )

    # Step behavior
    default_push_tag: str = Field(
        default="latest",
        description="Tag pushed when a tag string has no explicit ':tag' part",
    )
    fail_on_empty_tags: bool = Field(
        default=False,
        description="Fail the run when no tag template could be resolved",
    )


def get_settings() -> Settings:
    """Get the application settings singleton.

    Returns:
        Settings instance loaded from environment.
    """
    return Settings()


def print_settings_json(settings: Settings | None = None) -> str:
    """Render effective settings as JSON.

    Args:
        settings: Optional settings instance; uses default if not provided.

    Returns:
        JSON string of effective settings.
    """
    if settings is None:
        settings = get_settings()
    return settings.model_dump_json(indent=2)


__all__ = ["Settings", "get_settings", "print_settings_json"]
