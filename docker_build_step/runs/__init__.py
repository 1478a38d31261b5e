"""Run orchestration and job history module.

This module handles:
- Job, run and build outcome records
- Recording the outcome before push and cleanup
- Running a build step end to end
"""

from docker_build_step.runs.models import BuildOutcomeRecord, Job, JobRun

__all__ = ["BuildOutcomeRecord", "Job", "JobRun"]

# Submodules (service, recorder) are imported directly to avoid import cycles
