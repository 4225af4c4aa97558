"""Primitive types and enums shared across lexitree schemas."""

from __future__ import annotations

from enum import StrEnum
from typing import Annotated

from pydantic import Field

ISO_8601_PATTERN = (
    r"^\d{4}-\d{2}-\d{2}T"
    r"\d{2}:\d{2}:\d{2}"
    r"(?:\.\d+)?"
    r"(?:Z|[+-]\d{2}:\d{2})$"
)
LANGUAGE_CODE_PATTERN = r"^[a-z]{2,3}(?:[-_][a-z0-9]{2,8})*$"
INVITE_CODE_PATTERN = r"^[A-Z0-9]{8}$"
EVENT_NAME_PATTERN = r"^[a-z][a-z0-9_]*$"

type RecordId = Annotated[str, Field(min_length=1)]
type ProjectId = RecordId
type UserId = RecordId
type Timestamp = Annotated[str, Field(pattern=ISO_8601_PATTERN)]
type LanguageCode = Annotated[str, Field(pattern=LANGUAGE_CODE_PATTERN)]
type InviteCodeValue = Annotated[str, Field(pattern=INVITE_CODE_PATTERN)]
type EventName = Annotated[str, Field(pattern=EVENT_NAME_PATTERN)]

type JsonPrimitive = str | int | float | bool | None
type JsonValue = JsonPrimitive | list["JsonValue"] | dict[str, "JsonValue"]
type JsonObject = dict[str, JsonValue]


class ProjectRole(StrEnum):
    """Role a user holds on a shared project."""

    OWNER = "owner"
    EDITOR = "editor"
    VIEWER = "viewer"


ROLE_RANK: dict[str, int] = {
    ProjectRole.VIEWER: 0,
    ProjectRole.EDITOR: 1,
    ProjectRole.OWNER: 2,
}


def role_at_least(role: ProjectRole | str, minimum: ProjectRole | str) -> bool:
    """Return True when ``role`` grants at least the rights of ``minimum``.

    Args:
        role: Role held by the caller.
        minimum: Lowest acceptable role.

    Returns:
        bool: Whether the role satisfies the minimum.
    """
    return ROLE_RANK[ProjectRole(role)] >= ROLE_RANK[ProjectRole(minimum)]


def can_edit(role: ProjectRole | str) -> bool:
    """Return True when the role may mutate project content."""
    return role_at_least(role, ProjectRole.EDITOR)


def can_manage_invites(role: ProjectRole | str) -> bool:
    """Return True when the role may create or delete invite codes."""
    return role_at_least(role, ProjectRole.OWNER)


class ProjectRefKind(StrEnum):
    """Which store a project reference points at."""

    LOCAL = "local"
    SHARED = "shared"


class LeafStatus(StrEnum):
    """Translation completeness of a single leaf key."""

    COMPLETE = "complete"
    PARTIAL = "partial"
    MISSING = "missing"


class InviteCodeState(StrEnum):
    """Lifecycle state of an invite code."""

    ACTIVE = "active"
    EXPIRED = "expired"
    EXHAUSTED = "exhausted"


class LogLevel(StrEnum):
    """Log level values for JSONL logs."""

    DEBUG = "debug"
    INFO = "info"
    WARN = "warn"
    ERROR = "error"


class LogSinkType(StrEnum):
    """Supported log sink types."""

    CONSOLE = "console"
    FILE = "file"
    NOOP = "noop"
