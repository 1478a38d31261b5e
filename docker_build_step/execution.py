"""Execution of a build step request.

A StepRequest is the explicit, serializable contract sent to the place a
step executes: the context directory, the resolved tags, the step flags
and the connection parameters. StepExecutor performs build, push and
cleanup locally over one lazily created Connection and reports lines to a
LogSink. Nothing else crosses the execution boundary.

Run phases::

    build -> (built callback) -> [push] -> [clean] -> done

The built callback is where the caller records the outcome; it runs
before any push or cleanup. Cleanup runs after a failed push as well, and
never changes the result.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable

from pydantic import BaseModel, Field

from docker_build_step.engine.builder import ImageBuilder
from docker_build_step.engine.cleaner import ImageCleaner
from docker_build_step.engine.connection import Connection, ConnectionParams
from docker_build_step.engine.logsink import LogSink
from docker_build_step.engine.publisher import ImagePublisher
from docker_build_step.errors import BUILD_ERROR, ConfigurationError, StepError

logger = logging.getLogger(__name__)


class StepRequest(BaseModel):
    """Everything an execution context needs to run one step."""

    context_dir: str
    tags: list[str] = Field(default_factory=list)
    publish_on_success: bool = False
    clean_local_images: bool = False
    connection: ConnectionParams | None = None
    default_push_tag: str = "latest"
    fail_on_empty_tags: bool = False


class StepResult(BaseModel):
    """Outcome of executing a StepRequest."""

    success: bool
    image_id: str | None = None
    pushed: dict[str, str | None] = Field(default_factory=dict)
    cleaned: bool | None = None
    error_type: str | None = None
    error_message: str | None = None


class StepExecutor:
    """Executes one StepRequest; owns the run's Connection."""

    def __init__(
        self,
        request: StepRequest,
        sink: LogSink,
        on_built: Callable[[str], None] | None = None,
        abort: threading.Event | None = None,
    ) -> None:
        self.request = request
        self.sink = sink
        self.on_built = on_built
        self.connection = Connection(request.connection)
        self._abort = abort if abort is not None else threading.Event()
        self._partial = StepResult(success=False)

    def abort(self) -> None:
        """Abort the run from another thread.

        Closing the connection makes a blocked engine call return.
        """
        logger.info("Aborting run")
        self._abort.set()
        self.connection.close()

    def execute(self) -> StepResult:
        """Run build, push and cleanup.

        Fatal step errors are reported in the result rather than raised.
        """
        try:
            return self._execute()
        except StepError as e:
            logger.error("Run failed (%s): %s", e.code, e)
            self.sink.append(f"Docker Build failed: {e}")
            result = self._partial.model_copy()
            result.success = False
            result.error_type = e.code
            result.error_message = str(e)
            return result
        finally:
            self.connection.close()

    def _execute(self) -> StepResult:
        request = self.request
        self.sink.append("Docker Build")

        if not request.tags and request.fail_on_empty_tags:
            raise ConfigurationError("No tags resolved")

        builder = ImageBuilder(self.connection, self.sink, self._abort)
        image_id = builder.build(request.context_dir, request.tags)

        if image_id is None:
            if not request.tags:
                self.sink.append("Docker Build : no tags resolved, nothing to build")
                self.sink.append("Docker Build Done")
                return StepResult(success=True)
            message = "No tag was built successfully"
            self.sink.append(f"Docker Build failed: {message}")
            return StepResult(
                success=False, error_type=BUILD_ERROR, error_message=message
            )

        self.sink.append(f"Docker Build Response : {image_id}")
        if self.on_built is not None:
            self.on_built(image_id)

        result = self._partial
        result.image_id = image_id
        try:
            if request.publish_on_success:
                self.sink.append(f"Pushing {request.tags}")
                publisher = ImagePublisher(
                    self.connection,
                    self.sink,
                    self._abort,
                    default_tag=request.default_push_tag,
                )
                result.pushed = publisher.pushed
                publisher.publish(request.tags)
        finally:
            if request.clean_local_images:
                result.cleaned = ImageCleaner(self.connection, self.sink).clean(
                    image_id
                )

        self.sink.append("Docker Build Done")
        result.success = True
        return result


__all__ = ["StepExecutor", "StepRequest", "StepResult"]
