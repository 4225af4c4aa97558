"""Logging configuration schemas."""

from __future__ import annotations

from pydantic import Field, field_validator, model_validator

from lexitree_schemas.base import BaseSchema
from lexitree_schemas.primitives import LogSinkType


class LogSinkConfig(BaseSchema):
    """Configuration for a single log sink."""

    type: LogSinkType = Field(..., description="Log sink type (console|file|noop)")

    @field_validator("type", mode="before")
    @classmethod
    def _coerce_type(cls, value: object) -> LogSinkType:
        if isinstance(value, LogSinkType):
            return value
        if isinstance(value, str):
            return LogSinkType(value)
        return value  # type: ignore[return-value]


class LoggingConfig(BaseSchema):
    """Event log configuration for CLI commands."""

    sinks: list[LogSinkConfig] = Field(
        ..., min_length=1, description="Log sinks to enable"
    )

    @model_validator(mode="after")
    def validate_sink_types(self) -> LoggingConfig:
        """Ensure log sink types are unique.

        Returns:
            LoggingConfig: Validated logging configuration.

        Raises:
            ValueError: If sink types are duplicated.
        """
        sink_types = [sink.type for sink in self.sinks]
        if len(set(sink_types)) != len(sink_types):
            raise ValueError("log sinks must not contain duplicates")
        return self
