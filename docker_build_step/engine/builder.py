"""Image building.

Builds the image from the context directory once per tag, streaming every
build log line to the run's sink. A failing tag is logged and skipped; the
loop moves on to the next tag. An unreadable context directory is fatal.
"""

from __future__ import annotations

import logging
import os
import re
import threading
from collections.abc import Iterable, Iterator
from pathlib import Path
from typing import Any

import docker
from docker.errors import DockerException

from docker_build_step.engine._abort import check_abort
from docker_build_step.engine.connection import Connection
from docker_build_step.engine.logsink import LogSink
from docker_build_step.errors import BuildContextError, ImageBuildError

logger = logging.getLogger(__name__)

# Same detection the Docker SDK uses for the legacy builder output
_BUILT_RE = re.compile(r"(^Successfully built |sha256:)([0-9a-f]+)$")


def validate_context_dir(context_dir: Path) -> None:
    """Check that the build context directory can be read.

    Raises:
        BuildContextError: If it is missing, not a directory or unreadable.
    """
    if not context_dir.exists():
        raise BuildContextError(
            str(context_dir), f"Build context does not exist: {context_dir}"
        )
    if not context_dir.is_dir():
        raise BuildContextError(
            str(context_dir), f"Build context is not a directory: {context_dir}"
        )
    if not os.access(context_dir, os.R_OK | os.X_OK):
        raise BuildContextError(
            str(context_dir), f"Build context is not readable: {context_dir}"
        )


def _stream_lines(text: str) -> Iterator[str]:
    for line in text.splitlines():
        if line.strip():
            yield line.rstrip()


class ImageBuilder:
    """Builds one image per tag over a run's connection."""

    def __init__(
        self,
        connection: Connection,
        sink: LogSink,
        abort: threading.Event | None = None,
    ) -> None:
        self.connection = connection
        self.sink = sink
        self.abort = abort

    def build(self, context_dir: str | Path, tags: list[str]) -> str | None:
        """Build the context directory once per tag.

        Args:
            context_dir: Build context directory.
            tags: Tags in build order.

        Returns:
            Image id of the last successful build, or None if none succeeded.

        Raises:
            BuildContextError: If the context directory cannot be read.
            ConfigurationError: If no engine connection can be made.
            RunAbortedError: If the run is aborted.
        """
        path = Path(context_dir)
        validate_context_dir(path)

        self.sink.append(
            f"Docker Build : build with tags {tags} at path {path.resolve()}"
        )

        image_id: str | None = None
        for tag in tags:
            check_abort(self.abort)
            self.sink.append(f"Docker Build : building tag {tag}")
            client = self.connection.client

            try:
                image_id = self._build_tag(client, path, tag)
            except (DockerException, OSError, ImageBuildError) as e:
                logger.warning("Build of tag %s failed: %s", tag, e)
                # A closed connection during abort surfaces as an engine error
                check_abort(self.abort)
                self.sink.append(str(e))
                self.sink.append(f"Error attempting to tag {tag}. Continuing anyway.")

        check_abort(self.abort)
        return image_id

    def _build_tag(self, client: docker.DockerClient, path: Path, tag: str) -> str:
        stream = client.api.build(path=str(path), tag=tag, rm=True, decode=True)
        image_id = self._consume(tag, stream)
        logger.info("Built tag %s as %s", tag, image_id)
        return image_id

    def _consume(self, tag: str, stream: Iterable[dict[str, Any]]) -> str:
        image_id: str | None = None
        for chunk in stream:
            check_abort(self.abort)

            text = chunk.get("stream")
            if text:
                for line in _stream_lines(text):
                    self.sink.append(line)
                match = _BUILT_RE.search(text.strip())
                if match:
                    image_id = match.group(2)

            if "error" in chunk:
                raise ImageBuildError(tag, str(chunk["error"]).strip())

            aux = chunk.get("aux")
            if isinstance(aux, dict) and aux.get("ID"):
                image_id = aux["ID"]

        if image_id is None:
            raise ImageBuildError(tag, f"Build of {tag} did not report an image id")
        return image_id


__all__ = ["ImageBuilder", "validate_context_dir"]
