"""Identity and user profile schemas."""

from __future__ import annotations

from pydantic import Field

from lexitree_schemas.base import BaseSchema
from lexitree_schemas.primitives import Timestamp, UserId


class Identity(BaseSchema):
    """Caller identity handed to sync and membership operations."""

    user_id: UserId = Field(..., description="Stable user identifier")
    email: str | None = Field(None, min_length=1, description="Profile email")
    name: str | None = Field(None, min_length=1, description="Profile display name")

    @property
    def has_profile(self) -> bool:
        """Whether a profile (an email address) has been recorded."""
        return self.email is not None


class UserProfile(BaseSchema):
    """User row held by the shared store."""

    id: UserId = Field(..., description="User identifier")
    email: str = Field(..., min_length=1, description="User email")
    name: str | None = Field(None, description="User display name")
    created_at: Timestamp = Field(..., description="Creation timestamp")
