"""Error taxonomy for docker_build_step.

Every error carries a stable ``code`` that is persisted as the run's
``error_type`` and surfaced by the CLI and HTTP API.

Fatal kinds (propagate to the top of the run):
    ConfigurationError, BuildContextError, PushError, RunAbortedError

Non-fatal kinds (caught where they occur, logged, loop continues):
    TagExpansionError, ImageBuildError, CleanupError

TagValidationError is raised before any run starts.
"""

# Error code constants
VALIDATION_ERROR = "validation"
CONFIGURATION_ERROR = "configuration"
TAG_EXPANSION_ERROR = "tag_expansion"
BUILD_ERROR = "build_failed"
BUILD_CONTEXT_ERROR = "build_context"
PUSH_ERROR = "push_failed"
CLEANUP_ERROR = "cleanup_failed"
ABORTED = "aborted"
JOB_NOT_FOUND = "job_not_found"
RUN_NOT_FOUND = "run_not_found"


class StepError(Exception):
    """Base error for build step operations."""

    def __init__(self, message: str, code: str = "step_error") -> None:
        super().__init__(message)
        self.code = code


class TagValidationError(StepError, ValueError):
    """Raised when a tag does not match the naming grammar."""

    def __init__(self, tag: str, pattern: str) -> None:
        super().__init__(f"Tag {tag} doesn't match {pattern}", code=VALIDATION_ERROR)
        self.tag = tag


class ConfigurationError(StepError):
    """Raised when the step cannot talk to an engine (no host binding)."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code=CONFIGURATION_ERROR)


class TagExpansionError(StepError):
    """Raised when a tag template cannot be macro-expanded."""

    def __init__(self, template: str, reason: str) -> None:
        super().__init__(
            f"Couldn't macro expand tag {template}: {reason}",
            code=TAG_EXPANSION_ERROR,
        )
        self.template = template


class ImageBuildError(StepError):
    """Raised when the engine fails to build one tag."""

    def __init__(self, tag: str, message: str) -> None:
        super().__init__(message, code=BUILD_ERROR)
        self.tag = tag


class BuildContextError(StepError):
    """Raised when the build context directory cannot be read."""

    def __init__(self, context_dir: str, message: str) -> None:
        super().__init__(message, code=BUILD_CONTEXT_ERROR)
        self.context_dir = context_dir


class PushError(StepError):
    """Raised when the engine fails to push a tag."""

    def __init__(self, tag: str, message: str) -> None:
        super().__init__(f"Failed to push {tag}: {message}", code=PUSH_ERROR)
        self.tag = tag


class CleanupError(StepError):
    """Raised when the engine fails to remove an image."""

    def __init__(self, image_id: str, message: str) -> None:
        super().__init__(
            f"Failed to remove image {image_id}: {message}", code=CLEANUP_ERROR
        )
        self.image_id = image_id


class RunAbortedError(StepError):
    """Raised when a run is cancelled from outside."""

    def __init__(self, message: str = "Run aborted") -> None:
        super().__init__(message, code=ABORTED)


class JobNotFoundError(StepError):
    """Raised when a job is not found."""

    def __init__(self, job_name: str) -> None:
        super().__init__(f"Job not found: {job_name}", code=JOB_NOT_FOUND)
        self.job_name = job_name


class RunNotFoundError(StepError):
    """Raised when a run is not found."""

    def __init__(self, run_id: int) -> None:
        super().__init__(f"Run not found: {run_id}", code=RUN_NOT_FOUND)
        self.run_id = run_id


__all__ = [
    "ABORTED",
    "BUILD_CONTEXT_ERROR",
    "BUILD_ERROR",
    "BuildContextError",
    "CLEANUP_ERROR",
    "CONFIGURATION_ERROR",
    "CleanupError",
    "ConfigurationError",
    "ImageBuildError",
    "JOB_NOT_FOUND",
    "JobNotFoundError",
    "PUSH_ERROR",
    "PushError",
    "RUN_NOT_FOUND",
    "RunAbortedError",
    "RunNotFoundError",
    "StepError",
    "TAG_EXPANSION_ERROR",
    "TagExpansionError",
    "TagValidationError",
    "VALIDATION_ERROR",
]
