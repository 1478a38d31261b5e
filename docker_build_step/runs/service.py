"""Build step run service.

This module provides the high-level run API:
- run_step(): Main entry point - resolve host, expand tags, execute, record
- Job and run history lookups
- delete_job(): delete a job's history, removing images flagged for it

Run state machine::

    Init -> HostResolved -> TagsExpanded -> Building -> {Built | BuildFailed}
    Built -> OutcomeRecorded -> [Publishing -> {Published | PublishFailed}]
          -> [Cleaning] -> Done
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from docker_build_step.config import get_settings
from docker_build_step.engine.cleaner import ImageCleaner
from docker_build_step.engine.connection import Connection, build_connection_params
from docker_build_step.engine.logsink import (
    FileLogSink,
    LogSink,
    MemoryLogSink,
    TeeLogSink,
)
from docker_build_step.errors import JobNotFoundError, RunNotFoundError
from docker_build_step.execution import StepExecutor, StepRequest, StepResult
from docker_build_step.hosts.resolver import ExecutionNode, HostRegistry, resolve_host
from docker_build_step.runs.models import Job, JobRun
from docker_build_step.runs.recorder import BuildOutcome, OutcomeRecorder
from docker_build_step.tags.expander import BuildContext, MacroExpander, expand_tags
from docker_build_step.types import HostBinding, RunStatus

if TYPE_CHECKING:
    from docker_build_step.config import Settings
    from docker_build_step.engine.connection import ConnectionParams
    from docker_build_step.step import StepConfig

logger = logging.getLogger(__name__)


@dataclass
class DeleteJobResult:
    """Result of deleting a job.

    Attributes:
        job_name: Name of the deleted job.
        runs_deleted: Number of runs removed from history.
        images_cleaned: Image ids removed from their hosts.
        images_failed: Image ids whose removal failed.
    """

    job_name: str
    runs_deleted: int
    images_cleaned: list[str]
    images_failed: list[str]


def _get_or_create_job(session: Session, job_name: str) -> Job:
    job = session.execute(select(Job).where(Job.name == job_name)).scalar_one_or_none()
    if job is None:
        job = Job(name=job_name)
        session.add(job)
        session.flush()
    return job


def _create_run(session: Session, job: Job, node_name: str | None) -> JobRun:
    last = session.execute(
        select(func.max(JobRun.number)).where(JobRun.job_id == job.id)
    ).scalar()
    run = JobRun(
        job_id=job.id,
        number=(last or 0) + 1,
        node_name=node_name,
        status=RunStatus.PENDING.value,
    )
    session.add(run)
    session.flush()
    return run


def run_step(
    session: Session,
    job_name: str,
    config: StepConfig,
    node: ExecutionNode | None = None,
    registry: HostRegistry | None = None,
    settings: Settings | None = None,
    workspace: Path | None = None,
    env: dict[str, str] | None = None,
    sink: LogSink | None = None,
    expander: MacroExpander | None = None,
    abort: threading.Event | None = None,
) -> tuple[JobRun, StepResult]:
    """Run a build step and record it in the job's history.

    This is the main entry point. It:
    1. Creates a run record and its log file
    2. Resolves the host the execution node is bound to
    3. Expands and validates the tag templates
    4. Executes build, push and cleanup, recording the outcome right after
       a successful build
    5. Marks the run succeeded or failed

    Args:
        session: Database session.
        job_name: Job the step belongs to (created on first run).
        config: Validated step configuration.
        node: Execution node the run happens on.
        registry: Known hosts. Loaded from settings if not provided.
        settings: Application settings.
        workspace: Directory the context directory is relative to.
        env: Extra build variables for tag templates.
        sink: Extra sink mirroring the run log (e.g. the console).
        expander: Macro expansion service.
        abort: Event that aborts the run when set.

    Returns:
        Tuple of (JobRun, StepResult).
    """
    if settings is None:
        settings = get_settings()
    if registry is None:
        registry = HostRegistry.from_file(settings.hosts_file)
    if workspace is None:
        workspace = Path.cwd()

    node_name = getattr(node, "name", None)
    job = _get_or_create_job(session, job_name)
    run = _create_run(session, job, node_name)
    log_path = settings.logs_dir / job_name / f"{run.number}.log"
    run.log_path = str(log_path)
    run.mark_running()
    session.commit()
    logger.info("Started run %s #%d on %s", job_name, run.number, node_name)

    with FileLogSink(log_path) as file_sink:
        run_sink: LogSink = TeeLogSink(file_sink, sink) if sink else file_sink

        binding = resolve_host(node)
        params: ConnectionParams | None = None
        if binding is not None:
            params = build_connection_params(
                binding, registry.host(binding.host_id), settings
            )

        context = BuildContext(
            job_name=job_name,
            run_number=run.number,
            node_name=node_name,
            workspace=str(workspace),
            env=dict(env or {}),
        )
        tags = expand_tags(config.tags, context, run_sink, expander)

        request = StepRequest(
            context_dir=str(workspace / config.context_dir),
            tags=tags,
            publish_on_success=config.publish_on_success,
            clean_local_images=config.clean_local_images,
            connection=params,
            default_push_tag=settings.default_push_tag,
            fail_on_empty_tags=settings.fail_on_empty_tags,
        )
        recorder = OutcomeRecorder(session, run)

        def record_outcome(image_id: str) -> None:
            recorder.record(
                BuildOutcome(
                    source_url=binding.endpoint_url if binding else None,
                    image_id=image_id,
                    tags=tuple(tags),
                    cleanup_on_job_delete=config.clean_on_job_delete,
                    publish_on_success=config.publish_on_success,
                )
            )

        executor = StepExecutor(request, run_sink, on_built=record_outcome, abort=abort)
        result = executor.execute()

    run.image_id = result.image_id
    if result.success:
        run.mark_succeeded()
        logger.info("Run %s #%d succeeded", job_name, run.number)
    else:
        run.mark_failed(error_type=result.error_type, message=result.error_message)
        logger.error(
            "Run %s #%d failed: %s", job_name, run.number, result.error_message
        )
    session.commit()
    return run, result


def get_job(session: Session, job_name: str) -> Job:
    """Get a job by name.

    Raises:
        JobNotFoundError: If the job does not exist.
    """
    job = session.execute(select(Job).where(Job.name == job_name)).scalar_one_or_none()
    if job is None:
        raise JobNotFoundError(job_name)
    return job


def list_jobs(session: Session) -> list[Job]:
    """List all jobs ordered by name."""
    return list(session.execute(select(Job).order_by(Job.name)).scalars().all())


def get_run(session: Session, run_id: int) -> JobRun:
    """Get a run by ID.

    Raises:
        RunNotFoundError: If the run does not exist.
    """
    run = session.get(JobRun, run_id)
    if run is None:
        raise RunNotFoundError(run_id)
    return run


def list_runs(
    session: Session,
    job_name: str | None = None,
    status: RunStatus | None = None,
    limit: int = 100,
) -> list[JobRun]:
    """List runs with optional filters, newest first.

    Args:
        session: Database session.
        job_name: Filter by job name.
        status: Filter by status.
        limit: Maximum results to return.

    Returns:
        List of JobRun instances.
    """
    stmt = select(JobRun)

    if job_name is not None:
        stmt = stmt.join(Job).where(Job.name == job_name)
    if status is not None:
        stmt = stmt.where(JobRun.status == status.value)

    stmt = stmt.order_by(JobRun.id.desc()).limit(limit)

    return list(session.execute(stmt).scalars().all())


def delete_job(
    session: Session,
    job_name: str,
    registry: HostRegistry | None = None,
    settings: Settings | None = None,
    sink: LogSink | None = None,
) -> DeleteJobResult:
    """Delete a job and its history.

    Images of runs whose outcome asks for cleanup on job delete are
    force-removed from the host they were built on first. Removal is
    best-effort and never prevents the deletion.

    Raises:
        JobNotFoundError: If the job does not exist.
    """
    if settings is None:
        settings = get_settings()
    if registry is None:
        registry = HostRegistry.from_file(settings.hosts_file)
    if sink is None:
        sink = MemoryLogSink()

    job = get_job(session, job_name)
    cleaned: list[str] = []
    failed: list[str] = []

    for run in job.runs:
        outcome = run.outcome
        if outcome is None or not outcome.cleanup_on_job_delete or not outcome.image_id:
            continue

        params: ConnectionParams | None = None
        if outcome.source_url:
            host = registry.find_by_endpoint(outcome.source_url)
            binding = HostBinding(
                host_id=host.host_id if host else outcome.source_url,
                endpoint_url=outcome.source_url,
            )
            params = build_connection_params(binding, host, settings)

        connection = Connection(params)
        try:
            if ImageCleaner(connection, sink).clean(outcome.image_id):
                cleaned.append(outcome.image_id)
            else:
                failed.append(outcome.image_id)
        finally:
            connection.close()

    runs_deleted = len(job.runs)
    session.delete(job)
    session.flush()
    logger.info(
        "Deleted job %s (%d runs, %d images removed)",
        job_name,
        runs_deleted,
        len(cleaned),
    )
    return DeleteJobResult(
        job_name=job_name,
        runs_deleted=runs_deleted,
        images_cleaned=cleaned,
        images_failed=failed,
    )


__all__ = [
    "DeleteJobResult",
    "delete_job",
    "get_job",
    "get_run",
    "list_jobs",
    "list_runs",
    "run_step",
]
