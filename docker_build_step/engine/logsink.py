"""Run log sinks.

A LogSink is the single append-only stream of user-visible log lines for
one run. The same instance is handed to expansion, build, push and cleanup
so lines land in the order the operations were issued.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import IO, Any, Protocol

from rich.console import Console
from rich.markup import escape


class LogSink(Protocol):
    """Append-only line sink."""

    def append(self, line: str) -> None:
        """Append one line (without trailing newline)."""
        ...


class MemoryLogSink:
    """Collects lines in memory."""

    def __init__(self) -> None:
        self.lines: list[str] = []

    def append(self, line: str) -> None:
        self.lines.append(line)

    def text(self) -> str:
        """Return the collected log as text."""
        return "\n".join(self.lines)


class FileLogSink:
    """Writes lines to a run log file, flushing after each line."""

    def __init__(self, path: Path) -> None:
        self.path = path
        path.parent.mkdir(parents=True, exist_ok=True)
        self._file: IO[str] = path.open("a", encoding="utf-8")

    def append(self, line: str) -> None:
        self._file.write(line + "\n")
        self._file.flush()

    def close(self) -> None:
        """Close the underlying file."""
        self._file.close()

    def __enter__(self) -> FileLogSink:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


class ConsoleLogSink:
    """Mirrors lines to a Rich console."""

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()

    def append(self, line: str) -> None:
        self.console.print(escape(line), highlight=False)


class TeeLogSink:
    """Fans each line out to several sinks."""

    def __init__(self, *sinks: LogSink) -> None:
        self.sinks = sinks

    def append(self, line: str) -> None:
        for sink in self.sinks:
            sink.append(line)


class ChannelLogSink:
    """Streams events as JSON lines over an explicit channel.

    Log lines become ``{"event": "log", "line": ...}``; other events are
    emitted with ``emit``. Used by the worker to send a run's output back
    to the caller.
    """

    def __init__(self, stream: IO[str]) -> None:
        self.stream = stream

    def append(self, line: str) -> None:
        self.emit("log", line=line)

    def emit(self, event: str, **payload: Any) -> None:
        """Write one event."""
        record = {"event": event, **payload}
        self.stream.write(json.dumps(record) + "\n")
        self.stream.flush()


__all__ = [
    "ChannelLogSink",
    "ConsoleLogSink",
    "FileLogSink",
    "LogSink",
    "MemoryLogSink",
    "TeeLogSink",
]
