"""Run history endpoints.

- GET /runs/{id} - Get a run with its build outcome
"""

from typing import Any

from fastapi import APIRouter, Depends, HTTPException
from fastapi import status as http_status
from sqlalchemy.orm import Session

from docker_build_step.errors import RUN_NOT_FOUND, RunNotFoundError
from docker_build_step.runs.models import JobRun
from docker_build_step.runs.service import get_run
from web.deps import get_db

router = APIRouter()


def run_to_dict(run: JobRun) -> dict[str, Any]:
    """Convert a run record to a dictionary."""
    return {
        "id": run.id,
        "job": run.job.name if run.job else None,
        "number": run.number,
        "status": run.status,
        "node_name": run.node_name,
        "image_id": run.image_id,
        "requested_at": run.requested_at.isoformat() if run.requested_at else None,
        "started_at": run.started_at.isoformat() if run.started_at else None,
        "finished_at": run.finished_at.isoformat() if run.finished_at else None,
        "log_path": run.log_path,
        "error_type": run.error_type,
        "error_message": run.error_message,
        "outcome": run.outcome.to_dict() if run.outcome else None,
    }


@router.get("/{run_id}")
def get_run_endpoint(
    run_id: int,
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    """Get a run record by ID.

    Raises:
        HTTPException: If the run is not found.
    """
    try:
        return run_to_dict(get_run(db, run_id))
    except RunNotFoundError as e:
        raise HTTPException(
            status_code=http_status.HTTP_404_NOT_FOUND,
            detail={"code": RUN_NOT_FOUND, "message": str(e)},
        ) from None
