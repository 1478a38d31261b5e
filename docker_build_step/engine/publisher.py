"""Image publishing.

Pushes each tag to its registry in order, streaming progress events to
the run's sink. Unlike building, any push failure is fatal: the remaining
tags are not pushed and earlier pushes are not rolled back.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable
from typing import Any

from docker.errors import DockerException
from docker.utils import parse_repository_tag

from docker_build_step.engine._abort import check_abort
from docker_build_step.engine.connection import Connection
from docker_build_step.engine.logsink import LogSink
from docker_build_step.errors import PushError

logger = logging.getLogger(__name__)


def parse_identifier(tag: str, default_tag: str = "latest") -> tuple[str, str]:
    """Split a tag string into repository and tag.

    Args:
        tag: Tag string, optionally ``repository:tag``.
        default_tag: Tag used when none is given.

    Returns:
        Tuple of (repository, tag).
    """
    repository, explicit_tag = parse_repository_tag(tag)
    return repository, explicit_tag or default_tag


def format_progress(event: dict[str, Any]) -> str:
    """Render one push progress event as a log line."""
    parts = []
    if event.get("id"):
        parts.append(f"{event['id']}:")
    if event.get("status"):
        parts.append(str(event["status"]))
    if event.get("progress"):
        parts.append(str(event["progress"]))
    if not parts:
        return str(event)
    return " ".join(parts)


class ImagePublisher:
    """Pushes tags over a run's connection."""

    def __init__(
        self,
        connection: Connection,
        sink: LogSink,
        abort: threading.Event | None = None,
        default_tag: str = "latest",
    ) -> None:
        self.connection = connection
        self.sink = sink
        self.abort = abort
        self.default_tag = default_tag
        self.pushed: dict[str, str | None] = {}

    def publish(self, tags: list[str]) -> dict[str, str | None]:
        """Push every tag in order.

        Args:
            tags: Tags in push order.

        Returns:
            Mapping of tag to pushed digest (None if the engine reported none).
            Also kept in ``pushed``, which holds the tags pushed before a
            failure in the latest call.

        Raises:
            PushError: On the first tag that fails to push.
            ConfigurationError: If no engine connection can be made.
            RunAbortedError: If the run is aborted.
        """
        self.pushed = {}
        for tag in tags:
            check_abort(self.abort)
            repository, push_tag = parse_identifier(tag, self.default_tag)
            self.sink.append(f"Docker Push : pushing {repository}:{push_tag}")
            client = self.connection.client

            try:
                stream = client.api.push(
                    repository, tag=push_tag, stream=True, decode=True
                )
                digest = self._await_completion(tag, stream)
            except (DockerException, OSError) as e:
                raise PushError(tag, str(e)) from e

            self.pushed[tag] = digest
            logger.info("Pushed %s:%s", repository, push_tag)
        return self.pushed

    def _await_completion(
        self, tag: str, stream: Iterable[dict[str, Any]]
    ) -> str | None:
        digest: str | None = None
        for event in stream:
            check_abort(self.abort)
            if "error" in event:
                raise PushError(tag, str(event["error"]).strip())
            self.sink.append(format_progress(event))
            aux = event.get("aux")
            if isinstance(aux, dict) and aux.get("Digest"):
                digest = aux["Digest"]
        return digest


__all__ = ["ImagePublisher", "format_progress", "parse_identifier"]
