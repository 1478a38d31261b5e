"""Recording build outcomes into job history.

The outcome is committed synchronously, right after the build phase and
before push or cleanup, so what was built is never lost if a later step
fails.
"""

import logging
from dataclasses import dataclass
from typing import Any

from sqlalchemy.orm import Session

from docker_build_step.errors import StepError
from docker_build_step.runs.models import BuildOutcomeRecord, JobRun

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BuildOutcome:
    """What a run produced.

    Attributes:
        source_url: Endpoint of the host the image was built on.
        image_id: Id of the last successfully built image.
        tags: Full expanded tag list.
        cleanup_on_job_delete: Remove the image when the job is deleted.
        publish_on_success: Whether the step pushes its tags.
    """

    source_url: str | None
    image_id: str | None
    tags: tuple[str, ...]
    cleanup_on_job_delete: bool
    publish_on_success: bool

    def to_dict(self) -> dict[str, Any]:
        """Return the persisted outcome format."""
        return {
            "sourceUrl": self.source_url,
            "imageId": self.image_id,
            "tags": list(self.tags),
            "cleanupOnJobDelete": self.cleanup_on_job_delete,
            "publishOnSuccess": self.publish_on_success,
        }


class OutcomeRecorder:
    """Attaches exactly one outcome to a run."""

    def __init__(self, session: Session, run: JobRun) -> None:
        self.session = session
        self.run = run

    def record(self, outcome: BuildOutcome) -> BuildOutcomeRecord:
        """Persist and commit the outcome.

        Raises:
            StepError: If the run already has an outcome.
        """
        if self.run.outcome is not None:
            raise StepError(
                f"Outcome already recorded for run {self.run.id}",
                code="outcome_exists",
            )

        record = BuildOutcomeRecord(
            run_id=self.run.id,
            source_url=outcome.source_url,
            image_id=outcome.image_id,
            tags=list(outcome.tags),
            cleanup_on_job_delete=outcome.cleanup_on_job_delete,
            publish_on_success=outcome.publish_on_success,
        )
        self.run.outcome = record
        self.run.image_id = outcome.image_id
        self.session.add(record)
        self.session.commit()
        logger.info("Recorded outcome for run %d: %s", self.run.id, outcome.image_id)
        return record


__all__ = ["BuildOutcome", "OutcomeRecorder"]
