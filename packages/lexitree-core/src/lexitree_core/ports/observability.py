"""Protocol definition for structured log sinks."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from lexitree_schemas.logs import LogEntry


@runtime_checkable
class LogSinkProtocol(Protocol):
    """Protocol for emitting JSONL log entries."""

    async def emit_log(self, entry: LogEntry) -> None:
        """Emit a log entry."""
        raise NotImplementedError
