"""In-memory shared store adapter."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from datetime import UTC, datetime
from uuid import uuid4

from lexitree_core.ports.shared import SharedStoreProtocol
from lexitree_core.ports.storage import StorageErrorCode, build_storage_error
from lexitree_schemas.identity import Identity, UserProfile
from lexitree_schemas.membership import InviteCode, Membership
from lexitree_schemas.primitives import ProjectId, ProjectRole, RecordId, UserId
from lexitree_schemas.project import (
    MemberSummary,
    SharedProject,
    SharedProjectDraft,
    SharedProjectUpdate,
)


class InMemorySharedStore(SharedStoreProtocol):
    """Shared store kept in process memory.

    A single lock serialises every operation, which makes each call one
    atomic unit. Records are copied on the way in and out.
    """

    def __init__(self, *, clock: Callable[[], datetime] | None = None) -> None:
        """Initialize an empty shared store."""
        self._clock = clock or (lambda: datetime.now(UTC))
        self._lock = asyncio.Lock()
        self._users: dict[UserId, UserProfile] = {}
        self._projects: dict[ProjectId, SharedProject] = {}
        self._memberships: dict[RecordId, Membership] = {}
        self._invites: dict[RecordId, InviteCode] = {}

    async def ensure_user(self, identity: Identity) -> UserProfile:
        """Get or create the user row for an identity.

        Raises:
            StorageError: ``validation_error`` when creating without an email,
                ``duplicate`` when the email belongs to another user.
        """
        async with self._lock:
            user = self._users.get(identity.user_id)
            if user is None:
                if identity.email is None:
                    raise build_storage_error(
                        StorageErrorCode.VALIDATION_ERROR,
                        "An email is required to create a user",
                        operation="ensure_user",
                        record_id=identity.user_id,
                    )
                self._require_email_free(identity.email, identity.user_id)
                user = UserProfile(
                    id=identity.user_id,
                    email=identity.email,
                    name=identity.name,
                    created_at=self._now(),
                )
            else:
                if identity.email is not None and identity.email != user.email:
                    self._require_email_free(identity.email, identity.user_id)
                    user = user.model_copy(update={"email": identity.email})
                if identity.name is not None and identity.name != user.name:
                    user = user.model_copy(update={"name": identity.name})
            self._users[user.id] = user
            return user.model_copy()

    async def create_project(
        self, draft: SharedProjectDraft, owner_id: UserId
    ) -> SharedProject:
        """Create a shared project owned by an existing user.

        Raises:
            StorageError: ``not_found`` for an unknown owner, ``duplicate``
                when the requested id is taken.
        """
        async with self._lock:
            if owner_id not in self._users:
                raise build_storage_error(
                    StorageErrorCode.NOT_FOUND,
                    "Owner user does not exist",
                    operation="create_project",
                    record_id=owner_id,
                )
            project_id = draft.id or str(uuid4())
            if project_id in self._projects:
                raise build_storage_error(
                    StorageErrorCode.DUPLICATE,
                    "A shared project with this id already exists",
                    operation="create_project",
                    project_id=project_id,
                )
            now = self._now()
            project = SharedProject(
                id=project_id,
                name=draft.name,
                master_language=draft.master_language,
                target_languages=list(draft.target_languages),
                master_data=draft.master_data,
                translations=draft.translations,
                owner_id=owner_id,
                members=[],
                created_at=now,
                updated_at=now,
                version=1,
            )
            self._projects[project_id] = project
            return self._with_members(project)

    async def get_project(
        self, project_id: ProjectId, user_id: UserId
    ) -> SharedProject | None:
        """Fetch a project if the user owns it or is a member."""
        async with self._lock:
            project = self._projects.get(project_id)
            if project is None or self._role_of(project, user_id) is None:
                return None
            return self._with_members(project)

    async def list_projects(self, user_id: UserId) -> list[SharedProject]:
        """List visible projects, most recently updated first."""
        async with self._lock:
            visible = [
                self._with_members(project)
                for project in self._projects.values()
                if self._role_of(project, user_id) is not None
            ]
        return sorted(visible, key=lambda project: project.updated_at, reverse=True)

    async def update_project(
        self,
        project_id: ProjectId,
        update: SharedProjectUpdate,
        user_id: UserId,
        expected_version: int | None = None,
    ) -> SharedProject:
        """Apply a partial update from an owner or editor.

        Raises:
            StorageError: ``not_found``, ``forbidden`` or ``conflict``.
        """
        async with self._lock:
            project = self._projects.get(project_id)
            role = self._role_of(project, user_id) if project is not None else None
            if project is None or role is None:
                raise build_storage_error(
                    StorageErrorCode.NOT_FOUND,
                    "Shared project not found",
                    operation="update_project",
                    project_id=project_id,
                )
            if role == ProjectRole.VIEWER:
                raise build_storage_error(
                    StorageErrorCode.FORBIDDEN,
                    "Viewers cannot modify this project",
                    operation="update_project",
                    project_id=project_id,
                )
            if expected_version is not None and expected_version != project.version:
                raise build_storage_error(
                    StorageErrorCode.CONFLICT,
                    "Shared project was modified by someone else",
                    operation="update_project",
                    project_id=project_id,
                    reason=(
                        f"expected version {expected_version}, "
                        f"found {project.version}"
                    ),
                )
            changes = {
                field: value
                for field, value in update.model_dump().items()
                if value is not None
            }
            updated = SharedProject.model_validate(
                {
                    **project.model_dump(),
                    **changes,
                    "updated_at": self._now(),
                    "version": project.version + 1,
                }
            )
            self._projects[project_id] = updated
            return self._with_members(updated)

    async def delete_project(self, project_id: ProjectId, user_id: UserId) -> None:
        """Delete a project with its memberships and invite codes (owner only).

        Raises:
            StorageError: ``not_found`` or ``forbidden``.
        """
        async with self._lock:
            project = self._projects.get(project_id)
            if project is None:
                raise build_storage_error(
                    StorageErrorCode.NOT_FOUND,
                    "Shared project not found",
                    operation="delete_project",
                    project_id=project_id,
                )
            if project.owner_id != user_id:
                raise build_storage_error(
                    StorageErrorCode.FORBIDDEN,
                    "Only the owner can delete this project",
                    operation="delete_project",
                    project_id=project_id,
                )
            del self._projects[project_id]
            self._memberships = {
                key: membership
                for key, membership in self._memberships.items()
                if membership.project_id != project_id
            }
            self._invites = {
                key: invite
                for key, invite in self._invites.items()
                if invite.project_id != project_id
            }

    async def get_project_owner_id(self, project_id: ProjectId) -> UserId | None:
        """Return the owner of a project, or None if it does not exist."""
        async with self._lock:
            project = self._projects.get(project_id)
            return project.owner_id if project is not None else None

    async def code_exists(self, code: str) -> bool:
        """Return whether an invite code value is taken."""
        async with self._lock:
            return any(invite.code == code for invite in self._invites.values())

    async def create_invite_code(self, invite: InviteCode) -> InviteCode:
        """Insert an invite code record.

        Raises:
            StorageError: ``not_found`` for an unknown project, ``duplicate``
                when the code is taken.
        """
        async with self._lock:
            if invite.project_id not in self._projects:
                raise build_storage_error(
                    StorageErrorCode.NOT_FOUND,
                    "Shared project not found",
                    operation="create_invite_code",
                    project_id=invite.project_id,
                )
            if any(existing.code == invite.code for existing in self._invites.values()):
                raise build_storage_error(
                    StorageErrorCode.DUPLICATE,
                    "Invite code already exists",
                    operation="create_invite_code",
                    project_id=invite.project_id,
                )
            self._invites[invite.id] = invite.model_copy()
            return invite.model_copy()

    async def find_invite_code(self, code: str) -> InviteCode | None:
        """Look up an invite code by value."""
        async with self._lock:
            for invite in self._invites.values():
                if invite.code == code:
                    return invite.model_copy()
            return None

    async def list_invite_codes(self, project_id: ProjectId) -> list[InviteCode]:
        """List a project's invite codes, newest first."""
        async with self._lock:
            invites = [
                invite.model_copy()
                for invite in self._invites.values()
                if invite.project_id == project_id
            ]
        return sorted(invites, key=lambda invite: invite.created_at, reverse=True)

    async def delete_invite_code(
        self, project_id: ProjectId, invite_id: RecordId
    ) -> None:
        """Delete an invite code of a project.

        Raises:
            StorageError: ``not_found`` when the project has no such code.
        """
        async with self._lock:
            invite = self._invites.get(invite_id)
            if invite is None or invite.project_id != project_id:
                raise build_storage_error(
                    StorageErrorCode.NOT_FOUND,
                    "Invite code not found",
                    operation="delete_invite_code",
                    project_id=project_id,
                    record_id=invite_id,
                )
            del self._invites[invite_id]

    async def find_membership(
        self, user_id: UserId, project_id: ProjectId
    ) -> Membership | None:
        """Look up the membership of a user on a project."""
        async with self._lock:
            membership = self._membership_of(user_id, project_id)
            return membership.model_copy() if membership is not None else None

    async def redeem_invite_code(
        self, invite_id: RecordId, user_id: UserId, expected_uses: int
    ) -> Membership:
        """Consume one use of an invite code and create the membership.

        Raises:
            StorageError: ``not_found`` for an unknown code or user,
                ``conflict`` when the use counter moved or hit its limit,
                ``duplicate`` when the membership already exists.
        """
        async with self._lock:
            invite = self._invites.get(invite_id)
            if invite is None:
                raise build_storage_error(
                    StorageErrorCode.NOT_FOUND,
                    "Invite code not found",
                    operation="redeem_invite_code",
                    record_id=invite_id,
                )
            if invite.uses != expected_uses or (
                invite.max_uses is not None and invite.uses >= invite.max_uses
            ):
                raise build_storage_error(
                    StorageErrorCode.CONFLICT,
                    "Invite code use count changed",
                    operation="redeem_invite_code",
                    project_id=invite.project_id,
                    record_id=invite_id,
                )
            if user_id not in self._users:
                raise build_storage_error(
                    StorageErrorCode.NOT_FOUND,
                    "User does not exist",
                    operation="redeem_invite_code",
                    record_id=user_id,
                )
            if self._membership_of(user_id, invite.project_id) is not None:
                raise build_storage_error(
                    StorageErrorCode.DUPLICATE,
                    "User is already a member of this project",
                    operation="redeem_invite_code",
                    project_id=invite.project_id,
                )
            membership = Membership(
                id=str(uuid4()),
                project_id=invite.project_id,
                user_id=user_id,
                role=invite.role,
                joined_at=self._now(),
            )
            self._invites[invite_id] = invite.model_copy(
                update={"uses": invite.uses + 1}
            )
            self._memberships[membership.id] = membership
            return membership.model_copy()

    def _now(self) -> str:
        return self._clock().isoformat()

    def _require_email_free(self, email: str, user_id: UserId) -> None:
        for user in self._users.values():
            if user.email == email and user.id != user_id:
                raise build_storage_error(
                    StorageErrorCode.DUPLICATE,
                    "Email is already registered to another user",
                    operation="ensure_user",
                    record_id=user_id,
                )

    def _membership_of(
        self, user_id: UserId, project_id: ProjectId
    ) -> Membership | None:
        for membership in self._memberships.values():
            if membership.user_id == user_id and membership.project_id == project_id:
                return membership
        return None

    def _role_of(self, project: SharedProject, user_id: UserId) -> ProjectRole | None:
        if project.owner_id == user_id:
            return ProjectRole.OWNER
        membership = self._membership_of(user_id, project.id)
        if membership is None:
            return None
        return ProjectRole(membership.role)

    def _with_members(self, project: SharedProject) -> SharedProject:
        members = []
        for membership in self._memberships.values():
            if membership.project_id != project.id:
                continue
            user = self._users.get(membership.user_id)
            members.append(
                MemberSummary(
                    user_id=membership.user_id,
                    role=membership.role,
                    email=user.email if user is not None else None,
                    name=user.name if user is not None else None,
                )
            )
        return project.model_copy(update={"members": members}, deep=True)
