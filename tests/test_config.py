"""Tests for configuration module."""

import json
import os
from pathlib import Path
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from docker_build_step.config import Settings, get_settings, print_settings_json


class TestSettings:
    """Test Settings class."""

    def test_default_settings(self) -> None:
        """Settings should have sensible defaults."""
        settings = Settings()

        assert (
            settings.logs_dir
            == Path.home() / ".local" / "share" / "docker-build-step" / "logs"
        )
        assert "sqlite" in settings.db_url
        assert settings.hosts_file is None
        assert settings.log_level == "INFO"
        assert settings.docker_api_version == "auto"
        assert settings.docker_timeout == 120
        assert settings.default_push_tag == "latest"
        assert settings.fail_on_empty_tags is False

    def test_settings_from_env(self) -> None:
        """Settings should be loadable from environment variables."""
        with patch.dict(
            os.environ,
            {
                "DBS_LOG_LEVEL": "DEBUG",
                "DBS_DOCKER_TIMEOUT": "30",
                "DBS_FAIL_ON_EMPTY_TAGS": "true",
                "DBS_HOSTS_FILE": "/etc/dbs/hosts.yaml",
            },
        ):
            settings = Settings()
            assert settings.log_level == "DEBUG"
            assert settings.docker_timeout == 30
            assert settings.fail_on_empty_tags is True
            assert settings.hosts_file == Path("/etc/dbs/hosts.yaml")

    def test_invalid_timeout(self) -> None:
        """Timeouts must be positive."""
        with pytest.raises(ValidationError):
            Settings(docker_timeout=0)


class TestGetSettings:
    """Test get_settings function."""

    def test_returns_settings(self) -> None:
        """get_settings should return a Settings instance."""
        assert isinstance(get_settings(), Settings)


class TestPrintSettingsJson:
    """Test print_settings_json function."""

    def test_valid_json(self) -> None:
        """Output should be valid JSON with all fields."""
        data = json.loads(print_settings_json(Settings(docker_timeout=45)))
        assert data["docker_timeout"] == 45
        assert "db_url" in data
        assert "logs_dir" in data
