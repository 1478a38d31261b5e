"""Best-effort removal of the locally built image."""

from __future__ import annotations

import logging

from docker.errors import DockerException

from docker_build_step.engine.connection import Connection
from docker_build_step.engine.logsink import LogSink
from docker_build_step.errors import CleanupError, StepError

logger = logging.getLogger(__name__)


class ImageCleaner:
    """Removes images; never raises."""

    def __init__(self, connection: Connection, sink: LogSink) -> None:
        self.connection = connection
        self.sink = sink

    def clean(self, image_id: str) -> bool:
        """Force-remove an image.

        The engine may still leave other tagged references behind even
        with force; that is logged and ignored like any other failure.

        Args:
            image_id: Image to remove.

        Returns:
            True if the engine reported success.
        """
        self.sink.append(f"Cleaning local images [{image_id}]")
        try:
            self.connection.client.api.remove_image(image_id, force=True)
        except (DockerException, OSError, StepError) as e:
            error = CleanupError(image_id, str(e))
            logger.warning("%s", error)
            self.sink.append("Error attempting to clean images")
            return False
        return True


__all__ = ["ImageCleaner"]
