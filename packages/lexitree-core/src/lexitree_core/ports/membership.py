"""Errors and log builders for invite codes and membership joins."""

from __future__ import annotations

from enum import StrEnum

from pydantic import Field

from lexitree_schemas.base import BaseSchema
from lexitree_schemas.events import (
    InviteCreatedData,
    JoinedData,
    JoinRejectedData,
    MembershipEvent,
)
from lexitree_schemas.logs import LogEntry
from lexitree_schemas.membership import InviteCode, Membership
from lexitree_schemas.primitives import LogLevel, ProjectId, Timestamp, UserId
from lexitree_schemas.responses import ErrorDetails, ErrorResponse


class MembershipErrorCode(StrEnum):
    """Categorized error codes for invite codes and joins."""

    INVALID_CODE = "invalid_code"
    CODE_EXPIRED = "code_expired"
    CODE_EXHAUSTED = "code_exhausted"
    ALREADY_OWNER = "already_owner"
    ALREADY_MEMBER = "already_member"
    CODE_SPACE_EXHAUSTED = "code_space_exhausted"
    NOT_OWNER = "not_owner"


class MembershipErrorDetails(BaseSchema):
    """Detailed membership error context."""

    code: str | None = Field(None, description="Invite code value as provided")
    project_id: ProjectId | None = Field(None, description="Project identifier")
    user_id: UserId | None = Field(None, description="Caller user identifier")
    attempts: int | None = Field(None, ge=1, description="Attempts made")


class MembershipErrorInfo(BaseSchema):
    """Structured membership error data."""

    code: MembershipErrorCode = Field(..., description="Membership error code")
    message: str = Field(..., min_length=1, description="Error message")
    details: MembershipErrorDetails | None = Field(None, description="Error details")

    def to_error_response(self) -> ErrorResponse:
        """Convert membership error info to the standard error response schema.

        Returns:
            ErrorResponse: Standard response error payload.
        """
        details: ErrorDetails | None = None
        if self.details is not None and self.details.code is not None:
            details = ErrorDetails(
                field="code", provided=self.details.code, valid_options=None
            )
        return ErrorResponse(code=str(self.code), message=self.message, details=details)


class MembershipError(Exception):
    """Membership error with structured details."""

    def __init__(self, info: MembershipErrorInfo) -> None:
        """Initialize the membership error.

        Args:
            info: Structured membership error information.
        """
        super().__init__(info.message)
        self.info = info


def build_invite_created_log(timestamp: Timestamp, invite: InviteCode) -> LogEntry:
    """Build a log entry for a created invite code.

    The code value itself is not logged.

    Args:
        timestamp: ISO-8601 timestamp.
        invite: Created invite code record.

    Returns:
        LogEntry: Structured membership log entry.
    """
    data = InviteCreatedData(
        invite_id=invite.id,
        role=invite.role,
        max_uses=invite.max_uses,
        expires_at=invite.expires_at,
    ).model_dump(exclude_none=True)
    return LogEntry(
        timestamp=timestamp,
        level=LogLevel.INFO,
        event=MembershipEvent.INVITE_CREATED,
        project_id=invite.project_id,
        message="Invite code created",
        data=data,
    )


def build_invite_deleted_log(
    timestamp: Timestamp, project_id: ProjectId, invite_id: str
) -> LogEntry:
    """Build a log entry for a deleted invite code.

    Args:
        timestamp: ISO-8601 timestamp.
        project_id: Shared project identifier.
        invite_id: Deleted invite record identifier.

    Returns:
        LogEntry: Structured membership log entry.
    """
    return LogEntry(
        timestamp=timestamp,
        level=LogLevel.INFO,
        event=MembershipEvent.INVITE_DELETED,
        project_id=project_id,
        message="Invite code deleted",
        data={"invite_id": invite_id},
    )


def build_joined_log(
    timestamp: Timestamp, membership: Membership, invite_id: str, attempts: int
) -> LogEntry:
    """Build a log entry for a successful join.

    Args:
        timestamp: ISO-8601 timestamp.
        membership: Created membership.
        invite_id: Consumed invite code record.
        attempts: Redeem attempts used.

    Returns:
        LogEntry: Structured membership log entry.
    """
    data = JoinedData(
        user_id=membership.user_id,
        role=membership.role,
        invite_id=invite_id,
        attempts=attempts,
    ).model_dump()
    return LogEntry(
        timestamp=timestamp,
        level=LogLevel.INFO,
        event=MembershipEvent.JOINED,
        project_id=membership.project_id,
        message="User joined project",
        data=data,
    )


def build_join_rejected_log(
    timestamp: Timestamp,
    user_id: UserId,
    error: MembershipErrorInfo,
    project_id: ProjectId | None = None,
) -> LogEntry:
    """Build a log entry for a rejected join.

    Args:
        timestamp: ISO-8601 timestamp.
        user_id: Joining user identifier.
        error: Rejection error information.
        project_id: Project the code belongs to, when known.

    Returns:
        LogEntry: Structured membership log entry.
    """
    data = JoinRejectedData(user_id=user_id, error_code=str(error.code)).model_dump()
    return LogEntry(
        timestamp=timestamp,
        level=LogLevel.WARN,
        event=MembershipEvent.JOIN_REJECTED,
        project_id=project_id,
        message=error.message,
        data=data,
    )


def build_join_retried_log(
    timestamp: Timestamp, project_id: ProjectId, user_id: UserId, attempt: int
) -> LogEntry:
    """Build a log entry for a join retried after a concurrent redeem.

    Args:
        timestamp: ISO-8601 timestamp.
        project_id: Shared project identifier.
        user_id: Joining user identifier.
        attempt: Attempt number that hit the conflict.

    Returns:
        LogEntry: Structured membership log entry.
    """
    return LogEntry(
        timestamp=timestamp,
        level=LogLevel.DEBUG,
        event=MembershipEvent.JOIN_RETRIED,
        project_id=project_id,
        message="Invite code changed concurrently; retrying join",
        data={"user_id": user_id, "attempt": attempt},
    )
