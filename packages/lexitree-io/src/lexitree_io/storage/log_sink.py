"""Log sink adapters for sync and membership events."""

from __future__ import annotations

import asyncio
import sys
from collections.abc import Iterable
from pathlib import Path
from typing import TextIO

from lexitree_core.ports.observability import LogSinkProtocol
from lexitree_schemas.config import LoggingConfig
from lexitree_schemas.logs import LogEntry
from lexitree_schemas.primitives import LogSinkType


class FileLogSink(LogSinkProtocol):
    """Log sink that appends JSONL entries to a file."""

    def __init__(self, path: str | Path) -> None:
        """Initialize the file log sink with a JSONL path."""
        self._path = Path(path)

    @property
    def path(self) -> Path:
        """Return the JSONL log file path."""
        return self._path

    async def emit_log(self, entry: LogEntry) -> None:
        """Append a log entry to the JSONL file."""
        await asyncio.to_thread(_append_jsonl, self._path, entry)


class InMemoryLogSink(LogSinkProtocol):
    """Log sink that keeps entries in memory."""

    def __init__(self) -> None:
        """Initialize the in-memory log sink."""
        self._entries: list[LogEntry] = []

    @property
    def entries(self) -> list[LogEntry]:
        """Return a copy of stored log entries."""
        return list(self._entries)

    async def emit_log(self, entry: LogEntry) -> None:
        """Store a log entry in memory."""
        self._entries.append(entry)


class CompositeLogSink(LogSinkProtocol):
    """Log sink that forwards entries to multiple sinks."""

    def __init__(self, sinks: Iterable[LogSinkProtocol]) -> None:
        """Initialize the composite log sink."""
        self._sinks = list(sinks)

    async def emit_log(self, entry: LogEntry) -> None:
        """Forward log entries to each sink."""
        for sink in self._sinks:
            await sink.emit_log(entry)


class ConsoleLogSink(LogSinkProtocol):
    """Log sink that writes JSONL entries to stderr."""

    def __init__(self, stream: TextIO | None = None) -> None:
        """Initialize the console log sink.

        Args:
            stream: Output stream to write JSONL log entries.
        """
        self._stream = stream or sys.stderr

    async def emit_log(self, entry: LogEntry) -> None:
        """Write log entry JSONL to the output stream."""
        payload = entry.model_dump_json(exclude_none=False)
        self._stream.write(payload + "\n")
        self._stream.flush()


class NoopLogSink(LogSinkProtocol):
    """Log sink that drops all log entries."""

    async def emit_log(self, entry: LogEntry) -> None:
        """Ignore log entries."""
        return None


def build_log_sink(
    logging_config: LoggingConfig,
    log_path: str | Path | None = None,
    *,
    stream: TextIO | None = None,
) -> LogSinkProtocol:
    """Build a log sink from configuration.

    Args:
        logging_config: Event log configuration.
        log_path: JSONL file for the file sink.
        stream: Optional stream for console logging.

    Returns:
        LogSinkProtocol: Configured log sink.

    Raises:
        ValueError: If a file sink has no path or a sink type is unsupported.
    """
    sinks: list[LogSinkProtocol] = []
    for sink_config in logging_config.sinks:
        if sink_config.type == LogSinkType.FILE:
            if log_path is None:
                raise ValueError("A file log sink requires a log path")
            sinks.append(FileLogSink(log_path))
        elif sink_config.type == LogSinkType.CONSOLE:
            sinks.append(ConsoleLogSink(stream=stream))
        elif sink_config.type == LogSinkType.NOOP:
            sinks.append(NoopLogSink())
        else:
            raise ValueError(f"Unsupported log sink type: {sink_config.type}")

    if len(sinks) == 1:
        return sinks[0]
    return CompositeLogSink(sinks)


def _append_jsonl(path: Path, entry: LogEntry) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "a", encoding="utf-8") as handle:
        handle.write(entry.model_dump_json(exclude_none=True) + "\n")
