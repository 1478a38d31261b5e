"""Abort flag checks shared by the engine operations."""

import threading

from docker_build_step.errors import RunAbortedError


def check_abort(abort: threading.Event | None) -> None:
    """Raise RunAbortedError if the run has been aborted."""
    if abort is not None and abort.is_set():
        raise RunAbortedError()
