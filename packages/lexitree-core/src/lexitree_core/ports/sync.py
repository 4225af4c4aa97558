"""Errors and log builders for dual-store synchronization."""

from __future__ import annotations

from enum import StrEnum

from pydantic import Field

from lexitree_core.ports.storage import StorageErrorInfo
from lexitree_schemas.base import BaseSchema
from lexitree_schemas.events import (
    LocalCleanupFailedData,
    PersistedData,
    PromotedData,
    RoleFallbackData,
    SyncEvent,
)
from lexitree_schemas.logs import LogEntry
from lexitree_schemas.primitives import (
    LogLevel,
    ProjectId,
    ProjectRole,
    Timestamp,
    UserId,
)
from lexitree_schemas.responses import ErrorDetails, ErrorResponse


class SyncErrorCode(StrEnum):
    """Categorized error codes for sync operations."""

    PROMOTION_DENIED = "promotion_denied"
    ALREADY_PROMOTED = "already_promoted"
    NOT_FOUND = "not_found"


class SyncErrorDetails(BaseSchema):
    """Detailed sync error context."""

    project_id: ProjectId | None = Field(None, description="Project identifier")
    store: str | None = Field(None, description="Store involved (local|shared)")
    reason: str | None = Field(None, description="Additional error context")


class SyncErrorInfo(BaseSchema):
    """Structured sync error data."""

    code: SyncErrorCode = Field(..., description="Sync error code")
    message: str = Field(..., min_length=1, description="Error message")
    details: SyncErrorDetails | None = Field(None, description="Error details")

    def to_error_response(self) -> ErrorResponse:
        """Convert sync error info to the standard error response schema.

        Returns:
            ErrorResponse: Standard response error payload.
        """
        details: ErrorDetails | None = None
        if self.details is not None and self.details.project_id is not None:
            details = ErrorDetails(
                field="project_id",
                provided=self.details.project_id,
                valid_options=None,
            )
        return ErrorResponse(code=str(self.code), message=self.message, details=details)


class SyncError(Exception):
    """Sync error with structured details."""

    def __init__(self, info: SyncErrorInfo) -> None:
        """Initialize the sync error.

        Args:
            info: Structured sync error information.
        """
        super().__init__(info.message)
        self.info = info


def build_promoted_log(
    timestamp: Timestamp,
    local_project_id: ProjectId,
    shared_project_id: ProjectId,
    owner_id: UserId,
) -> LogEntry:
    """Build a log entry for a successful promotion.

    Args:
        timestamp: ISO-8601 timestamp.
        local_project_id: Identifier of the promoted local project.
        shared_project_id: Identifier of the new shared project.
        owner_id: Owner user identifier.

    Returns:
        LogEntry: Structured sync log entry.
    """
    data = PromotedData(
        local_project_id=local_project_id,
        shared_project_id=shared_project_id,
        owner_id=owner_id,
    ).model_dump()
    return LogEntry(
        timestamp=timestamp,
        level=LogLevel.INFO,
        event=SyncEvent.PROMOTED,
        project_id=shared_project_id,
        message="Project promoted to shared storage",
        data=data,
    )


def build_promotion_denied_log(
    timestamp: Timestamp, local_project_id: ProjectId
) -> LogEntry:
    """Build a log entry for a promotion attempted without a profile.

    Args:
        timestamp: ISO-8601 timestamp.
        local_project_id: Identifier of the local project.

    Returns:
        LogEntry: Structured sync log entry.
    """
    return LogEntry(
        timestamp=timestamp,
        level=LogLevel.WARN,
        event=SyncEvent.PROMOTION_DENIED,
        project_id=local_project_id,
        message="Promotion denied: no user profile",
        data=None,
    )


def build_persisted_log(
    timestamp: Timestamp,
    project_id: ProjectId,
    role: ProjectRole,
    shared_written: bool,
    shared_project_id: ProjectId | None = None,
    shared_version: int | None = None,
) -> LogEntry:
    """Build a log entry for a persist.

    Args:
        timestamp: ISO-8601 timestamp.
        project_id: Local project identifier.
        role: Caller role at persist time.
        shared_written: Whether the shared copy was written.
        shared_project_id: Shared project identifier if promoted.
        shared_version: Shared version after the write.

    Returns:
        LogEntry: Structured sync log entry.
    """
    data = PersistedData(
        role=role,
        shared_written=shared_written,
        shared_project_id=shared_project_id,
        shared_version=shared_version,
    ).model_dump(exclude_none=True)
    event = SyncEvent.PERSISTED
    message = "Project persisted"
    if shared_project_id is not None and not shared_written:
        event = SyncEvent.SHARED_WRITE_SKIPPED
        message = "Project persisted locally; shared write skipped for role"
    return LogEntry(
        timestamp=timestamp,
        level=LogLevel.INFO,
        event=event,
        project_id=project_id,
        message=message,
        data=data,
    )


def build_loaded_log(
    timestamp: Timestamp, project_id: ProjectId, role: ProjectRole, store: str
) -> LogEntry:
    """Build a log entry for a project loaded for editing.

    Args:
        timestamp: ISO-8601 timestamp.
        project_id: Project identifier.
        role: Resolved caller role.
        store: Store the project came from.

    Returns:
        LogEntry: Structured sync log entry.
    """
    return LogEntry(
        timestamp=timestamp,
        level=LogLevel.DEBUG,
        event=SyncEvent.LOADED,
        project_id=project_id,
        message=f"Project loaded from {store} store",
        data={"role": str(role), "store": store},
    )


def build_local_cleanup_failed_log(
    timestamp: Timestamp, local_project_id: ProjectId, error: BaseException
) -> LogEntry:
    """Build a log entry for a local record that could not be removed.

    Args:
        timestamp: ISO-8601 timestamp.
        local_project_id: Local project identifier.
        error: Failure raised by the local store.

    Returns:
        LogEntry: Structured sync log entry.
    """
    info = getattr(error, "info", None)
    data = LocalCleanupFailedData(
        local_project_id=local_project_id,
        error_code=str(info.code) if info is not None else type(error).__name__,
        error_message=str(error) or type(error).__name__,
    ).model_dump()
    return LogEntry(
        timestamp=timestamp,
        level=LogLevel.WARN,
        event=SyncEvent.LOCAL_CLEANUP_FAILED,
        project_id=local_project_id,
        message="Local copy could not be removed; shared copy is authoritative",
        data=data,
    )


def build_local_shadowed_log(timestamp: Timestamp, project_id: ProjectId) -> LogEntry:
    """Build a log entry for a local copy hidden by its shared counterpart.

    Args:
        timestamp: ISO-8601 timestamp.
        project_id: Project identifier present in both stores.

    Returns:
        LogEntry: Structured sync log entry.
    """
    return LogEntry(
        timestamp=timestamp,
        level=LogLevel.INFO,
        event=SyncEvent.LOCAL_SHADOWED,
        project_id=project_id,
        message="Local copy is shadowed by the shared project",
        data=None,
    )


def build_shared_unreachable_log(
    timestamp: Timestamp, error: StorageErrorInfo, project_id: ProjectId | None = None
) -> LogEntry:
    """Build a log entry for a shared store lookup that failed.

    Args:
        timestamp: ISO-8601 timestamp.
        error: Storage failure information.
        project_id: Project being looked up, if any.

    Returns:
        LogEntry: Structured sync log entry.
    """
    return LogEntry(
        timestamp=timestamp,
        level=LogLevel.WARN,
        event=SyncEvent.SHARED_UNREACHABLE,
        project_id=project_id,
        message="Shared store unreachable; continuing with local data",
        data={"error_code": str(error.code), "error_message": error.message},
    )


def build_role_fallback_log(
    timestamp: Timestamp, project_id: ProjectId, user_id: UserId
) -> LogEntry:
    """Build a log entry for role resolution falling back to viewer.

    Args:
        timestamp: ISO-8601 timestamp.
        project_id: Shared project identifier.
        user_id: User without owner or member rights.

    Returns:
        LogEntry: Structured sync log entry.
    """
    return LogEntry(
        timestamp=timestamp,
        level=LogLevel.WARN,
        event=SyncEvent.ROLE_FALLBACK,
        project_id=project_id,
        message="No owner or membership record; treating caller as viewer",
        data=RoleFallbackData(user_id=user_id).model_dump(),
    )
