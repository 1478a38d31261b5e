"""Tests for engine/logsink.py module."""

import io
import json
from pathlib import Path

from rich.console import Console

from docker_build_step.engine.logsink import (
    ChannelLogSink,
    ConsoleLogSink,
    FileLogSink,
    MemoryLogSink,
    TeeLogSink,
)


class TestMemoryLogSink:
    """Tests for MemoryLogSink."""

    def test_collects_lines(self) -> None:
        """Lines are kept in order."""
        sink = MemoryLogSink()
        sink.append("one")
        sink.append("two")
        assert sink.lines == ["one", "two"]
        assert sink.text() == "one\ntwo"


class TestFileLogSink:
    """Tests for FileLogSink."""

    def test_writes_and_creates_parent(self, tmp_path: Path) -> None:
        """Lines are appended to the file; parents are created."""
        path = tmp_path / "job" / "1.log"
        with FileLogSink(path) as sink:
            sink.append("one")
            assert path.read_text() == "one\n"
            sink.append("two")
        assert path.read_text() == "one\ntwo\n"

    def test_appends_to_existing(self, tmp_path: Path) -> None:
        """Reopening appends rather than truncating."""
        path = tmp_path / "run.log"
        path.write_text("before\n")
        with FileLogSink(path) as sink:
            sink.append("after")
        assert path.read_text() == "before\nafter\n"


class TestConsoleLogSink:
    """Tests for ConsoleLogSink."""

    def test_markup_is_escaped(self) -> None:
        """Build output containing brackets prints literally."""
        buffer = io.StringIO()
        sink = ConsoleLogSink(Console(file=buffer, width=200))
        sink.append("Cleaning local images [sha256:abc]")
        assert "Cleaning local images [sha256:abc]" in buffer.getvalue()


class TestTeeLogSink:
    """Tests for TeeLogSink."""

    def test_fans_out(self) -> None:
        """Every sink receives every line."""
        a, b = MemoryLogSink(), MemoryLogSink()
        tee = TeeLogSink(a, b)
        tee.append("x")
        assert a.lines == ["x"]
        assert b.lines == ["x"]


class TestChannelLogSink:
    """Tests for ChannelLogSink."""

    def test_json_lines(self) -> None:
        """Log lines and events are written as JSON lines."""
        stream = io.StringIO()
        sink = ChannelLogSink(stream)
        sink.append("Docker Build")
        sink.emit("built", image_id="Y")

        records = [json.loads(line) for line in stream.getvalue().splitlines()]
        assert records == [
            {"event": "log", "line": "Docker Build"},
            {"event": "built", "image_id": "Y"},
        ]
