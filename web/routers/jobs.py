"""Job endpoints.

- GET /jobs/{name}/runs - List a job's runs
- POST /jobs/{name}/runs - Execute the build step for a job
- DELETE /jobs/{name} - Delete a job, removing images flagged for cleanup
"""

from pathlib import Path
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi import status as http_status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from docker_build_step.config import Settings, get_settings
from docker_build_step.errors import JOB_NOT_FOUND, JobNotFoundError
from docker_build_step.hosts.resolver import HostRegistry, Node
from docker_build_step.runs.service import delete_job, get_job, list_runs, run_step
from docker_build_step.step import StepConfig
from docker_build_step.types import HostBinding, RunStatus
from web.deps import get_db, get_registry
from web.routers.runs import run_to_dict

router = APIRouter()


class RunRequest(BaseModel):
    """Request body for executing a build step."""

    step: StepConfig = Field(default_factory=StepConfig)
    node: str | None = None
    docker_host: str | None = None
    workspace: str | None = None
    env: dict[str, str] = Field(default_factory=dict)


def _job_not_found(job_name: str) -> HTTPException:
    return HTTPException(
        status_code=http_status.HTTP_404_NOT_FOUND,
        detail={"code": JOB_NOT_FOUND, "message": f"Job not found: {job_name}"},
    )


@router.get("/{job_name}/runs")
def list_job_runs_endpoint(
    job_name: str,
    status: str | None = Query(None, description="Filter by status"),
    limit: int = Query(100, ge=1, le=1000, description="Maximum results"),
    db: Session = Depends(get_db),
) -> list[dict[str, Any]]:
    """List a job's runs, newest first."""
    status_filter: RunStatus | None = None
    if status:
        try:
            status_filter = RunStatus(status)
        except ValueError:
            raise HTTPException(
                status_code=http_status.HTTP_400_BAD_REQUEST,
                detail={
                    "code": "invalid_status",
                    "message": f"Invalid status: {status}. Valid values: pending, running, succeeded, failed",
                },
            ) from None

    try:
        get_job(db, job_name)
    except JobNotFoundError:
        raise _job_not_found(job_name) from None

    runs = list_runs(db, job_name=job_name, status=status_filter, limit=limit)
    return [run_to_dict(r) for r in runs]


@router.post("/{job_name}/runs")
def run_step_endpoint(
    job_name: str,
    request: RunRequest,
    db: Session = Depends(get_db),
    registry: HostRegistry = Depends(get_registry),
    settings: Settings = Depends(get_settings),
) -> dict[str, Any]:
    """Execute the build step synchronously and return the finished run.

    A failed step is not an HTTP error; the run and result carry it.
    """
    node = None
    if request.docker_host is not None:
        name = request.node or "local"
        node = Node(
            name=name,
            binding=HostBinding(host_id=name, endpoint_url=request.docker_host),
        )
    elif request.node is not None:
        node = registry.node(request.node)

    run, result = run_step(
        db,
        job_name,
        request.step,
        node=node,
        registry=registry,
        settings=settings,
        workspace=Path(request.workspace) if request.workspace else None,
        env=request.env,
    )
    return {"run": run_to_dict(run), "result": result.model_dump()}


@router.delete("/{job_name}")
def delete_job_endpoint(
    job_name: str,
    db: Session = Depends(get_db),
    registry: HostRegistry = Depends(get_registry),
    settings: Settings = Depends(get_settings),
) -> dict[str, Any]:
    """Delete a job and its history."""
    try:
        result = delete_job(db, job_name, registry=registry, settings=settings)
    except JobNotFoundError:
        raise _job_not_found(job_name) from None
    return {
        "job": result.job_name,
        "runs_deleted": result.runs_deleted,
        "images_cleaned": result.images_cleaned,
        "images_failed": result.images_failed,
    }
