"""Tests for the CLI.

Commands that touch history use a temporary SQLite database; the engine
client is a MagicMock.
"""

import json
from collections.abc import Iterator
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
from typer.testing import CliRunner

from docker_build_step import __version__
from docker_build_step.cli import app
from docker_build_step.engine.connection import ConnectionParams, TransportConfig
from docker_build_step.execution import StepRequest

runner = CliRunner()


@pytest.fixture
def env(tmp_path: Path) -> dict[str, str]:
    """Environment pointing history and logs at tmp_path."""
    return {
        "DBS_DB_URL": f"sqlite:///{tmp_path}/test.db",
        "DBS_LOGS_DIR": str(tmp_path / "logs"),
    }


@pytest.fixture
def client() -> Iterator[MagicMock]:
    """Patched engine client that builds every tag as IMG."""
    client = MagicMock()
    client.api.build.side_effect = lambda path, tag, rm, decode: iter(
        [{"aux": {"ID": "IMG"}}]
    )
    client.api.push.side_effect = lambda repository, tag, stream, decode: iter(
        [{"status": "Pushed"}]
    )
    with patch(
        "docker_build_step.engine.connection.create_client", return_value=client
    ):
        yield client


class TestCLIHelp:
    """Test CLI help and version commands."""

    def test_help_returns_zero(self) -> None:
        """CLI --help should return exit code 0."""
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        assert "Docker Build Step" in result.stdout

    def test_version_flag(self) -> None:
        """CLI --version should print version and exit 0."""
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.stdout

    def test_short_version_flag(self) -> None:
        """CLI -V should print version and exit 0."""
        result = runner.invoke(app, ["-V"])
        assert result.exit_code == 0
        assert __version__ in result.stdout


class TestCLIConfig:
    """Test CLI config command."""

    def test_config_command(self) -> None:
        """CLI config should show configuration."""
        result = runner.invoke(app, ["config"])
        assert result.exit_code == 0
        assert "Logs directory" in result.stdout
        assert "Default push tag" in result.stdout

    def test_config_json(self) -> None:
        """CLI config --json should output valid JSON."""
        result = runner.invoke(app, ["config", "--json"], env={"DBS_DOCKER_TIMEOUT": "9"})
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["docker_timeout"] == 9


class TestCLITags:
    """Test tags check."""

    def test_ok(self) -> None:
        """Valid tags exit 0."""
        result = runner.invoke(app, ["tags", "check", "a\nb-${BUILD_NUMBER}"])
        assert result.exit_code == 0
        assert "2 tag(s) OK" in result.stdout

    def test_offender_json(self) -> None:
        """Invalid tags exit 1 and name the offender."""
        result = runner.invoke(app, ["tags", "check", "good\nBad", "--json"])
        assert result.exit_code == 1
        data = json.loads(result.stdout)
        assert data["ok"] is False
        assert data["offending_tag"] == "Bad"

    def test_from_file(self, tmp_path: Path) -> None:
        """Tags can be read from a file."""
        path = tmp_path / "tags.txt"
        path.write_text("a\n\nb\n")
        result = runner.invoke(app, ["tags", "check", "--file", str(path)])
        assert result.exit_code == 0


class TestCLIHosts:
    """Test hosts list."""

    def test_list_json(self, tmp_path: Path) -> None:
        """Declared hosts are listed."""
        path = tmp_path / "hosts.yaml"
        path.write_text(
            "hosts:\n"
            "  - host_id: farm-1\n"
            "    endpoint_url: tcp://docker1:2375\n"
            "    nodes: [agent-1]\n"
        )
        result = runner.invoke(app, ["hosts", "list", "--hosts-file", str(path), "--json"])
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data[0]["host_id"] == "farm-1"
        assert data[0]["nodes"] == ["agent-1"]

    def test_invalid_file(self, tmp_path: Path) -> None:
        """An invalid hosts file exits 1."""
        path = tmp_path / "hosts.yaml"
        path.write_text("hosts:\n  - host_id: x\n    endpoint_url: ftp://nope\n")
        result = runner.invoke(app, ["hosts", "list", "--hosts-file", str(path)])
        assert result.exit_code == 1

    def test_none_declared(self) -> None:
        """No hosts file lists nothing."""
        result = runner.invoke(app, ["hosts", "list"])
        assert result.exit_code == 0
        assert "No hosts declared" in result.stdout


class TestCLIRun:
    """Test run, runs and jobs commands."""

    def test_run_and_inspect(
        self, tmp_path: Path, env: dict[str, str], client: MagicMock
    ) -> None:
        """A run is executed, recorded and can be inspected."""
        result = runner.invoke(
            app,
            [
                "run",
                "web",
                "--context",
                str(tmp_path),
                "--tag",
                "web-${BUILD_NUMBER}",
                "--tag",
                "web-${BRANCH}",
                "--var",
                "BRANCH=main",
                "--push",
                "--docker-host",
                "tcp://docker1:2375",
                "--json",
            ],
            env=env,
        )
        assert result.exit_code == 0, result.stdout
        data = json.loads(result.stdout)
        assert data["success"] is True
        assert data["image_id"] == "IMG"
        assert data["number"] == 1
        assert list(data["pushed"]) == ["web-1", "web-main"]

        listed = runner.invoke(app, ["runs", "list", "--job", "web", "--json"], env=env)
        assert listed.exit_code == 0
        runs = json.loads(listed.stdout)
        assert len(runs) == 1
        assert runs[0]["outcome"]["tags"] == ["web-1", "web-main"]

        shown = runner.invoke(app, ["runs", "show", str(data["run_id"])], env=env)
        assert shown.exit_code == 0
        assert "web-1, web-main" in shown.stdout

    def test_run_invalid_tag(self, env: dict[str, str]) -> None:
        """An invalid tag is rejected before anything runs."""
        result = runner.invoke(app, ["run", "web", "--tag", "Bad"], env=env)
        assert result.exit_code == 1
        assert "Invalid step configuration" in result.stdout

    def test_run_invalid_var(self, env: dict[str, str]) -> None:
        """Variables must be KEY=VALUE."""
        result = runner.invoke(
            app, ["run", "web", "--tag", "a", "--var", "novalue"], env=env
        )
        assert result.exit_code == 1

    def test_run_without_host_fails(self, tmp_path: Path, env: dict[str, str]) -> None:
        """Building without a host binding exits 1."""
        result = runner.invoke(
            app, ["run", "web", "--context", str(tmp_path), "--tag", "a"], env=env
        )
        assert result.exit_code == 1
        assert "failed" in result.stdout

    def test_runs_list_empty(self, env: dict[str, str]) -> None:
        """No runs gives an empty JSON list."""
        result = runner.invoke(app, ["runs", "list", "--json"], env=env)
        assert result.exit_code == 0
        assert json.loads(result.stdout) == []

    def test_runs_list_bad_status(self, env: dict[str, str]) -> None:
        """Unknown statuses are rejected."""
        result = runner.invoke(app, ["runs", "list", "--status", "weird"], env=env)
        assert result.exit_code == 1

    def test_runs_show_missing(self, env: dict[str, str]) -> None:
        """Showing an unknown run exits 1."""
        result = runner.invoke(app, ["runs", "show", "42"], env=env)
        assert result.exit_code == 1
        assert "Run not found" in result.stdout

    def test_jobs_delete(
        self, tmp_path: Path, env: dict[str, str], client: MagicMock
    ) -> None:
        """Deleting a job removes images flagged for cleanup."""
        runner.invoke(
            app,
            [
                "run",
                "web",
                "--context",
                str(tmp_path),
                "--tag",
                "a",
                "--clean-on-delete",
                "--docker-host",
                "tcp://docker1:2375",
            ],
            env=env,
        )
        result = runner.invoke(app, ["jobs", "delete", "web", "--json"], env=env)
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["runs_deleted"] == 1
        assert data["images_cleaned"] == ["IMG"]
        client.api.remove_image.assert_called_once_with("IMG", force=True)

        again = runner.invoke(app, ["jobs", "delete", "web"], env=env)
        assert again.exit_code == 1

    def test_jobs_delete_invalid_hosts_file(
        self, tmp_path: Path, env: dict[str, str]
    ) -> None:
        """A broken hosts file exits 1 instead of raising."""
        path = tmp_path / "hosts.yaml"
        path.write_text("hosts:\n  - host_id: x\n    endpoint_url: ftp://nope\n")
        result = runner.invoke(
            app, ["jobs", "delete", "web", "--hosts-file", str(path)], env=env
        )
        assert result.exit_code == 1
        assert not isinstance(result.exception, ValueError)
        assert "Could not load hosts file" in result.stdout


class TestCLIWorker:
    """Test the worker command."""

    def test_worker_streams_events(self, tmp_path: Path, client: MagicMock) -> None:
        """The worker emits log, built and result events."""
        request = StepRequest(
            context_dir=str(tmp_path),
            tags=["a"],
            connection=ConnectionParams(
                host_id="h", transport=TransportConfig(base_url="tcp://h:2375")
            ),
        )
        result = runner.invoke(app, ["worker"], input=request.model_dump_json())
        assert result.exit_code == 0
        events = [json.loads(line) for line in result.stdout.splitlines()]
        kinds = [e["event"] for e in events]
        assert kinds[0] == "log"
        assert {"event": "built", "image_id": "IMG"} in events
        assert events[-1]["event"] == "result"
        assert events[-1]["success"] is True

    def test_worker_bad_request(self) -> None:
        """Malformed input yields a failed result."""
        result = runner.invoke(app, ["worker"], input="{not json")
        assert result.exit_code == 1
        event = json.loads(result.stdout.splitlines()[-1])
        assert event["event"] == "result"
        assert event["success"] is False
