"""Tests for FastAPI web API.

Uses TestClient to test all endpoints.
"""

import uuid
from collections.abc import Iterator
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from docker_build_step import __version__
from docker_build_step.db import Base
from docker_build_step.runs import models  # noqa: F401 - registers tables
from web.routers import config, health, jobs, runs, validation


def create_test_app() -> FastAPI:
    """Create a minimal FastAPI app for testing without lifespan."""
    application = FastAPI(title="Docker Build Step API", version=__version__)
    application.include_router(health.router, tags=["health"])
    application.include_router(config.router, prefix="/config", tags=["config"])
    application.include_router(
        validation.router, prefix="/validation", tags=["validation"]
    )
    application.include_router(jobs.router, prefix="/jobs", tags=["jobs"])
    application.include_router(runs.router, prefix="/runs", tags=["runs"])
    return application


@pytest.fixture
def client(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[TestClient]:
    """Create a test client with a fresh SQLite database in tmp_path."""
    db_file = tmp_path / f"test_{uuid.uuid4().hex[:8]}.db"
    engine = create_engine(f"sqlite:///{db_file}", echo=False)
    Base.metadata.create_all(engine)
    monkeypatch.setenv("DBS_LOGS_DIR", str(tmp_path / "logs"))

    app = create_test_app()
    app.state.session_factory = sessionmaker(bind=engine, expire_on_commit=False)

    with TestClient(app) as test_client:
        yield test_client

    engine.dispose()


@pytest.fixture
def engine_client() -> Iterator[MagicMock]:
    """Patched engine client that builds every tag as IMG."""
    client = MagicMock()
    client.api.build.side_effect = lambda path, tag, rm, decode: iter(
        [{"aux": {"ID": "IMG"}}]
    )
    with patch(
        "docker_build_step.engine.connection.create_client", return_value=client
    ):
        yield client


def run_body(context: Path, **step) -> dict:
    return {
        "step": {"context_dir": str(context), **step},
        "docker_host": "tcp://docker1:2375",
    }


class TestHealth:
    """Test health endpoints."""

    def test_health(self, client: TestClient) -> None:
        """GET /health returns ok and version."""
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok", "version": __version__}

    def test_root(self, client: TestClient) -> None:
        """GET / returns API name."""
        response = client.get("/")
        assert response.json()["name"] == "Docker Build Step API"


class TestConfig:
    """Test config endpoint."""

    def test_get_config(self, client: TestClient) -> None:
        """GET /config returns effective settings."""
        response = client.get("/config")
        assert response.status_code == 200
        data = response.json()
        assert data["default_push_tag"] == "latest"
        assert data["logs_dir"].endswith("logs")


class TestValidation:
    """Test tag validation endpoint."""

    def test_ok(self, client: TestClient) -> None:
        """Valid tags report ok."""
        response = client.post("/validation/tags", json={"tags": "a\nb"})
        assert response.status_code == 200
        assert response.json() == {
            "ok": True,
            "message": "2 tag(s) OK",
            "offending_tag": None,
        }

    def test_offender(self, client: TestClient) -> None:
        """Invalid tags name the offender."""
        response = client.post("/validation/tags", json={"tags": "a\nNope"})
        data = response.json()
        assert data["ok"] is False
        assert data["offending_tag"] == "Nope"


class TestJobsAndRuns:
    """Test job and run endpoints."""

    def test_run_step(
        self, client: TestClient, tmp_path: Path, engine_client: MagicMock
    ) -> None:
        """POST /jobs/{name}/runs executes and records a run."""
        response = client.post(
            "/jobs/web/runs",
            json=run_body(tmp_path, tags=["web-${BUILD_NUMBER}"]),
        )
        assert response.status_code == 200
        data = response.json()
        assert data["result"]["success"] is True
        assert data["run"]["status"] == "succeeded"
        assert data["run"]["outcome"]["tags"] == ["web-1"]

        run_id = data["run"]["id"]
        shown = client.get(f"/runs/{run_id}")
        assert shown.status_code == 200
        assert shown.json()["image_id"] == "IMG"

        listed = client.get("/jobs/web/runs")
        assert [r["id"] for r in listed.json()] == [run_id]

    def test_run_invalid_tag(self, client: TestClient, tmp_path: Path) -> None:
        """Invalid tags are rejected with 422."""
        response = client.post("/jobs/web/runs", json=run_body(tmp_path, tags=["Bad"]))
        assert response.status_code == 422

    def test_failed_run_is_not_http_error(
        self, client: TestClient, tmp_path: Path
    ) -> None:
        """A failed step still answers 200 with the failure recorded."""
        response = client.post(
            "/jobs/web/runs",
            json={"step": {"context_dir": str(tmp_path), "tags": ["a"]}},
        )
        assert response.status_code == 200
        data = response.json()
        assert data["result"]["success"] is False
        assert data["run"]["error_type"] == "configuration"

    def test_runs_for_unknown_job(self, client: TestClient) -> None:
        """Unknown jobs answer 404."""
        response = client.get("/jobs/nope/runs")
        assert response.status_code == 404
        assert response.json()["detail"]["code"] == "job_not_found"

    def test_runs_bad_status(
        self, client: TestClient, tmp_path: Path, engine_client: MagicMock
    ) -> None:
        """Unknown status filters answer 400."""
        client.post("/jobs/web/runs", json=run_body(tmp_path, tags=["a"]))
        response = client.get("/jobs/web/runs?status=weird")
        assert response.status_code == 400

    def test_unknown_run(self, client: TestClient) -> None:
        """Unknown runs answer 404."""
        response = client.get("/runs/999")
        assert response.status_code == 404
        assert response.json()["detail"]["code"] == "run_not_found"

    def test_delete_job(
        self, client: TestClient, tmp_path: Path, engine_client: MagicMock
    ) -> None:
        """DELETE /jobs/{name} removes flagged images and history."""
        client.post(
            "/jobs/web/runs",
            json=run_body(tmp_path, tags=["a"], clean_on_job_delete=True),
        )
        response = client.delete("/jobs/web")
        assert response.status_code == 200
        assert response.json()["images_cleaned"] == ["IMG"]
        engine_client.api.remove_image.assert_called_once_with("IMG", force=True)

        assert client.get("/jobs/web/runs").status_code == 404
        assert client.delete("/jobs/web").status_code == 404
