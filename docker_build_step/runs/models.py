"""Job history ORM models.

This module defines Job, JobRun and BuildOutcomeRecord for storing the
history of build step runs and what each run produced.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import (
    JSON,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from docker_build_step.db import Base
from docker_build_step.types import RunStatus


class Job(Base):
    """ORM model for a pipeline job owning build step runs.

    Attributes:
        id: Primary key.
        name: Unique job name.
        created_at: Timestamp when the job was first seen.
    """

    __tablename__ = "jobs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, server_default=func.now()
    )

    runs: Mapped[list["JobRun"]] = relationship(
        "JobRun",
        back_populates="job",
        cascade="all, delete-orphan",
        order_by="JobRun.number",
    )

    def __repr__(self) -> str:
        """Return string representation of Job."""
        return f"<Job(id={self.id}, name='{self.name}')>"


class JobRun(Base):
    """ORM model for one execution of a build step.

    Attributes:
        id: Primary key.
        job_id: Foreign key to Job.
        number: Run number within the job, starting at 1.
        status: Run status (pending, running, succeeded, failed).
        node_name: Execution node the run happened on.
        requested_at: Timestamp when the run was requested.
        started_at: Timestamp when the run started executing.
        finished_at: Timestamp when the run finished.
        log_path: Path to the run log file.
        image_id: Final image id, if any tag was built.
        error_type: Error code if the run failed.
        error_message: Error message if the run failed.
    """

    __tablename__ = "job_runs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    job_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("jobs.id"), nullable=False, index=True
    )
    number: Mapped[int] = mapped_column(Integer, nullable=False)

    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=RunStatus.PENDING.value, index=True
    )
    node_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    requested_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, server_default=func.now()
    )
    started_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    finished_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    log_path: Mapped[str | None] = mapped_column(String(500), nullable=True)
    image_id: Mapped[str | None] = mapped_column(String(128), nullable=True)

    error_type: Mapped[str | None] = mapped_column(String(100), nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)

    job: Mapped["Job"] = relationship("Job", back_populates="runs")
    outcome: Mapped["BuildOutcomeRecord | None"] = relationship(
        "BuildOutcomeRecord",
        back_populates="run",
        uselist=False,
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        UniqueConstraint("job_id", "number", name="uq_job_runs_job_number"),
        Index("ix_job_runs_job_status", "job_id", "status"),
    )

    def __repr__(self) -> str:
        """Return string representation of JobRun."""
        return (
            f"<JobRun(id={self.id}, job_id={self.job_id}, number={self.number}, "
            f"status='{self.status}')>"
        )

    def mark_running(self) -> None:
        """Mark this run as running."""
        self.status = RunStatus.RUNNING.value
        self.started_at = datetime.now()

    def mark_succeeded(self) -> None:
        """Mark this run as succeeded."""
        self.status = RunStatus.SUCCEEDED.value
        self.finished_at = datetime.now()

    def mark_failed(
        self, error_type: str | None = None, message: str | None = None
    ) -> None:
        """Mark this run as failed.

        Args:
            error_type: Type/category of the error.
            message: Error message details.
        """
        self.status = RunStatus.FAILED.value
        self.finished_at = datetime.now()
        if error_type:
            self.error_type = error_type
        if message:
            self.error_message = message


class BuildOutcomeRecord(Base):
    """ORM model for what a run built, attached to the run's history.

    At most one record exists per run. It is written as soon as the build
    phase produced an image, before any push or cleanup is attempted.

    Attributes:
        id: Primary key.
        run_id: Foreign key to JobRun (unique).
        source_url: Endpoint of the host the image was built on.
        image_id: Id of the last successfully built image.
        tags: Full expanded tag list, not only the tags that built.
        cleanup_on_job_delete: Remove the image when the job is deleted.
        publish_on_success: Whether the step was configured to push.
        recorded_at: Timestamp when the record was written.
    """

    __tablename__ = "build_outcomes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    run_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("job_runs.id"), nullable=False, unique=True
    )

    source_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    image_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    tags: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    cleanup_on_job_delete: Mapped[bool] = mapped_column(nullable=False, default=False)
    publish_on_success: Mapped[bool] = mapped_column(nullable=False, default=False)
    recorded_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, server_default=func.now()
    )

    run: Mapped["JobRun"] = relationship("JobRun", back_populates="outcome")

    def __repr__(self) -> str:
        """Return string representation of BuildOutcomeRecord."""
        return (
            f"<BuildOutcomeRecord(id={self.id}, run_id={self.run_id}, "
            f"image_id='{self.image_id}', tags={self.tags})>"
        )

    def to_dict(self) -> dict[str, Any]:
        """Return the persisted outcome format."""
        return {
            "sourceUrl": self.source_url,
            "imageId": self.image_id,
            "tags": list(self.tags or []),
            "cleanupOnJobDelete": self.cleanup_on_job_delete,
            "publishOnSuccess": self.publish_on_success,
        }


__all__ = ["BuildOutcomeRecord", "Job", "JobRun"]
