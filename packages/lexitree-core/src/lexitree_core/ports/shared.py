"""Protocol definition for the shared multi-user project store.

Every method is one atomic remote operation. Failures surface as
``StorageError`` from :mod:`lexitree_core.ports.storage`.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from lexitree_schemas.identity import Identity, UserProfile
from lexitree_schemas.membership import InviteCode, Membership
from lexitree_schemas.primitives import ProjectId, RecordId, UserId
from lexitree_schemas.project import (
    SharedProject,
    SharedProjectDraft,
    SharedProjectUpdate,
)


@runtime_checkable
class SharedStoreProtocol(Protocol):
    """Protocol for the shared store holding promoted projects."""

    async def ensure_user(self, identity: Identity) -> UserProfile:
        """Get or create the user row for an identity (email required to create)."""
        raise NotImplementedError

    async def create_project(
        self, draft: SharedProjectDraft, owner_id: UserId
    ) -> SharedProject:
        """Create a shared project owned by ``owner_id``."""
        raise NotImplementedError

    async def get_project(
        self, project_id: ProjectId, user_id: UserId
    ) -> SharedProject | None:
        """Fetch a project visible to the user (owner or member)."""
        raise NotImplementedError

    async def list_projects(self, user_id: UserId) -> list[SharedProject]:
        """List projects the user owns or belongs to, most recently updated first."""
        raise NotImplementedError

    async def update_project(
        self,
        project_id: ProjectId,
        update: SharedProjectUpdate,
        user_id: UserId,
        expected_version: int | None = None,
    ) -> SharedProject:
        """Apply a partial update after re-verifying the writer's role.

        Raises ``forbidden`` for viewers, ``not_found`` when the project is
        invisible and ``conflict`` when ``expected_version`` is stale.
        """
        raise NotImplementedError

    async def delete_project(self, project_id: ProjectId, user_id: UserId) -> None:
        """Delete a project and its members and invite codes (owner only)."""
        raise NotImplementedError

    async def get_project_owner_id(self, project_id: ProjectId) -> UserId | None:
        """Return the owner of a project, or None if it does not exist."""
        raise NotImplementedError

    async def code_exists(self, code: str) -> bool:
        """Return whether an invite code value is already taken."""
        raise NotImplementedError

    async def create_invite_code(self, invite: InviteCode) -> InviteCode:
        """Insert an invite code record (``duplicate`` if the code is taken)."""
        raise NotImplementedError

    async def find_invite_code(self, code: str) -> InviteCode | None:
        """Look up an invite code by its value."""
        raise NotImplementedError

    async def list_invite_codes(self, project_id: ProjectId) -> list[InviteCode]:
        """List a project's invite codes, newest first."""
        raise NotImplementedError

    async def delete_invite_code(
        self, project_id: ProjectId, invite_id: RecordId
    ) -> None:
        """Delete an invite code; granted memberships are untouched."""
        raise NotImplementedError

    async def find_membership(
        self, user_id: UserId, project_id: ProjectId
    ) -> Membership | None:
        """Look up the membership of a user on a project."""
        raise NotImplementedError

    async def redeem_invite_code(
        self, invite_id: RecordId, user_id: UserId, expected_uses: int
    ) -> Membership:
        """Consume one use of an invite code and create the membership.

        All-or-nothing: ``uses`` is incremented only if it still equals
        ``expected_uses`` and is below ``max_uses``, and the membership row
        is inserted in the same unit. Raises ``conflict`` when the counter
        moved and ``duplicate`` when the membership exists; nothing is
        written in either case.
        """
        raise NotImplementedError
