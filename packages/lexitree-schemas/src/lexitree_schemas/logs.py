"""JSONL log entry schema for sync and membership events."""

from __future__ import annotations

from pydantic import Field

from lexitree_schemas.base import BaseSchema
from lexitree_schemas.primitives import (
    EventName,
    JsonValue,
    LogLevel,
    ProjectId,
    Timestamp,
)


class LogEntry(BaseSchema):
    """Single log line in JSONL format."""

    timestamp: Timestamp = Field(
        ..., description="ISO-8601 timestamp for the log entry"
    )
    level: LogLevel = Field(..., description="Log level")
    event: EventName = Field(..., description="Event name")
    project_id: ProjectId | None = Field(None, description="Project if applicable")
    message: str = Field(..., min_length=1, description="Log message")
    data: dict[str, JsonValue] | None = Field(None, description="Structured event data")
