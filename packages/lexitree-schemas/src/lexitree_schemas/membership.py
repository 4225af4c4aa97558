"""Membership and invite code schemas."""

from __future__ import annotations

from pydantic import Field, field_validator, model_validator

from lexitree_schemas.base import BaseSchema
from lexitree_schemas.primitives import (
    InviteCodeValue,
    ProjectId,
    ProjectRole,
    RecordId,
    Timestamp,
    UserId,
)
from lexitree_schemas.project import Project


def _coerce_member_role(value: object) -> ProjectRole:
    if isinstance(value, str) and not isinstance(value, ProjectRole):
        value = ProjectRole(value)
    if value == ProjectRole.OWNER:
        raise ValueError("owner is not a grantable membership role")
    return value  # type: ignore[return-value]


class Membership(BaseSchema):
    """Grant of a non-owner role on a shared project."""

    id: RecordId = Field(..., description="Membership identifier")
    project_id: ProjectId = Field(..., description="Shared project identifier")
    user_id: UserId = Field(..., description="Member user identifier")
    role: ProjectRole = Field(..., description="Granted role (editor or viewer)")
    joined_at: Timestamp = Field(..., description="Join timestamp")

    @field_validator("role", mode="before")
    @classmethod
    def _coerce_role(cls, value: object) -> ProjectRole:
        return _coerce_member_role(value)


class InviteCode(BaseSchema):
    """Invite code granting a role on a shared project."""

    id: RecordId = Field(..., description="Invite code record identifier")
    code: InviteCodeValue = Field(..., description="Eight character join code")
    role: ProjectRole = Field(
        ProjectRole.EDITOR, description="Role granted on join (editor or viewer)"
    )
    max_uses: int | None = Field(
        None, ge=1, description="Use limit, None for unlimited"
    )
    uses: int = Field(0, ge=0, description="Number of successful joins")
    expires_at: Timestamp | None = Field(None, description="Expiry timestamp")
    project_id: ProjectId = Field(..., description="Shared project identifier")
    created_by_id: UserId = Field(..., description="Creator user identifier")
    created_at: Timestamp = Field(..., description="Creation timestamp")

    @field_validator("role", mode="before")
    @classmethod
    def _coerce_role(cls, value: object) -> ProjectRole:
        return _coerce_member_role(value)

    @model_validator(mode="after")
    def validate_uses(self) -> InviteCode:
        """Ensure the use counter never exceeds the limit.

        Returns:
            InviteCode: Validated invite code.

        Raises:
            ValueError: If uses exceeds max_uses.
        """
        if self.max_uses is not None and self.uses > self.max_uses:
            raise ValueError("uses must not exceed max_uses")
        return self


class JoinResult(BaseSchema):
    """Outcome of a successful invite code join."""

    project: Project = Field(..., description="Joined project in unified shape")
    membership: Membership = Field(..., description="Created membership")
    role: ProjectRole = Field(..., description="Role granted by the join")

    @field_validator("role", mode="before")
    @classmethod
    def _coerce_role(cls, value: object) -> ProjectRole:
        return _coerce_member_role(value)
