"""Event taxonomy and structured payloads for sync and membership logs."""

from __future__ import annotations

from enum import StrEnum

from pydantic import Field, field_validator

from lexitree_schemas.base import BaseSchema
from lexitree_schemas.primitives import ProjectId, ProjectRole, UserId


class SyncEvent(StrEnum):
    """Event names for dual-store synchronization."""

    PROMOTED = "project_promoted"
    PROMOTION_DENIED = "project_promotion_denied"
    PERSISTED = "project_persisted"
    SHARED_WRITE_SKIPPED = "shared_write_skipped"
    LOADED = "project_loaded"
    LOCAL_CLEANUP_FAILED = "local_cleanup_failed"
    LOCAL_SHADOWED = "local_copy_shadowed"
    SHARED_UNREACHABLE = "shared_store_unreachable"
    ROLE_FALLBACK = "role_fallback"


class MembershipEvent(StrEnum):
    """Event names for invite codes and joins."""

    INVITE_CREATED = "invite_created"
    INVITE_DELETED = "invite_deleted"
    JOINED = "project_joined"
    JOIN_REJECTED = "join_rejected"
    JOIN_RETRIED = "join_retried"


class _RolePayload(BaseSchema):
    """Payload base carrying a project role."""

    role: ProjectRole = Field(..., description="Project role")

    @field_validator("role", mode="before")
    @classmethod
    def _coerce_role(cls, value: object) -> ProjectRole:
        if isinstance(value, ProjectRole):
            return value
        if isinstance(value, str):
            return ProjectRole(value)
        return value  # type: ignore[return-value]


class PromotedData(BaseSchema):
    """Payload for project promotion events."""

    local_project_id: ProjectId = Field(..., description="Local project identifier")
    shared_project_id: ProjectId = Field(..., description="Shared project identifier")
    owner_id: UserId = Field(..., description="Owner user identifier")


class PersistedData(_RolePayload):
    """Payload for persist events."""

    shared_written: bool = Field(..., description="Whether the shared copy was written")
    shared_project_id: ProjectId | None = Field(
        None, description="Shared project identifier if promoted"
    )
    shared_version: int | None = Field(
        None, ge=1, description="Shared version after the write"
    )


class LocalCleanupFailedData(BaseSchema):
    """Payload for failed local deletions after promotion."""

    local_project_id: ProjectId = Field(..., description="Local project identifier")
    error_code: str = Field(..., min_length=1, description="Error code")
    error_message: str = Field(..., min_length=1, description="Error message")


class RoleFallbackData(BaseSchema):
    """Payload for role resolution falling back to viewer."""

    user_id: UserId = Field(..., description="User without owner or member rights")


class InviteCreatedData(_RolePayload):
    """Payload for invite creation events."""

    invite_id: str = Field(..., min_length=1, description="Invite record identifier")
    max_uses: int | None = Field(None, ge=1, description="Use limit if any")
    expires_at: str | None = Field(None, description="Expiry timestamp if any")


class JoinedData(_RolePayload):
    """Payload for successful join events."""

    user_id: UserId = Field(..., description="Joining user identifier")
    invite_id: str = Field(..., min_length=1, description="Consumed invite code record")
    attempts: int = Field(..., ge=1, description="Redeem attempts used")


class JoinRejectedData(BaseSchema):
    """Payload for rejected join events."""

    user_id: UserId = Field(..., description="Joining user identifier")
    error_code: str = Field(..., min_length=1, description="Rejection error code")
