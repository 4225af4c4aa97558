"""Dual-store synchronization between the local store and the shared store."""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime

from lexitree_core.ports.observability import LogSinkProtocol
from lexitree_core.ports.shared import SharedStoreProtocol
from lexitree_core.ports.storage import (
    ProjectStoreProtocol,
    StorageError,
    StorageErrorCode,
)
from lexitree_core.ports.sync import (
    SyncError,
    SyncErrorCode,
    SyncErrorDetails,
    SyncErrorInfo,
    build_loaded_log,
    build_local_cleanup_failed_log,
    build_local_shadowed_log,
    build_persisted_log,
    build_promoted_log,
    build_promotion_denied_log,
    build_role_fallback_log,
    build_shared_unreachable_log,
)
from lexitree_schemas.identity import Identity
from lexitree_schemas.logs import LogEntry
from lexitree_schemas.primitives import (
    ProjectId,
    ProjectRefKind,
    ProjectRole,
    UserId,
    can_edit,
)
from lexitree_schemas.project import (
    EditingSession,
    PersistResult,
    Project,
    ProjectRef,
    SharedProject,
    SharedProjectDraft,
    SharedProjectUpdate,
)

type Clock = Callable[[], datetime]


def _utc_now() -> datetime:
    return datetime.now(UTC)


def resolve_role(shared_project: SharedProject, user_id: UserId) -> ProjectRole:
    """Resolve a user's role on a shared project.

    Args:
        shared_project: Shared project with its members.
        user_id: User to resolve.

    Returns:
        ProjectRole: ``owner`` for the owner, the membership role for
        members and ``viewer`` otherwise.
    """
    if shared_project.owner_id == user_id:
        return ProjectRole.OWNER
    for member in shared_project.members:
        if member.user_id == user_id:
            return ProjectRole(member.role)
    return ProjectRole.VIEWER


def shared_to_project(shared_project: SharedProject) -> Project:
    """Convert a shared record to the unified project shape."""
    return Project(
        id=shared_project.id,
        name=shared_project.name,
        master_language=shared_project.master_language,
        target_languages=list(shared_project.target_languages),
        master_data=shared_project.master_data,
        translations=dict(shared_project.translations),
        last_modified=shared_project.updated_at,
    )


class DualStoreSync:
    """Moves projects between the local store and the shared store.

    The local store is the offline working copy. Once promoted, the shared
    record is authoritative; a local record with the same id is only a
    cache and is hidden from local listings.
    """

    def __init__(
        self,
        local_store: ProjectStoreProtocol,
        shared_store: SharedStoreProtocol,
        *,
        log_sink: LogSinkProtocol | None = None,
        clock: Clock | None = None,
    ) -> None:
        """Initialize the sync service.

        Args:
            local_store: Local single-user project store.
            shared_store: Shared multi-user project store.
            log_sink: Optional structured log sink.
            clock: Optional clock used for log timestamps.
        """
        self._local_store = local_store
        self._shared_store = shared_store
        self._log_sink = log_sink
        self._clock = clock or _utc_now
        self._promoted: set[ProjectId] = set()

    def is_promoted(self, project_id: ProjectId) -> bool:
        """Return whether this session has seen the project as shared."""
        return project_id in self._promoted

    async def promote(self, project: Project, identity: Identity) -> SharedProject:
        """Promote a local project to the shared store.

        The shared record reuses the local project id. Promotion is
        irreversible and happens at most once per project.

        Args:
            project: Local project to promote.
            identity: Caller identity; must have a profile.

        Returns:
            SharedProject: Newly created shared record owned by the caller.

        Raises:
            SyncError: ``promotion_denied`` without a profile, or
                ``already_promoted`` when the project is already shared.
            StorageError: When the shared store fails.
        """
        if not identity.has_profile:
            await self._emit(build_promotion_denied_log(self._now(), project.id))
            raise SyncError(
                SyncErrorInfo(
                    code=SyncErrorCode.PROMOTION_DENIED,
                    message="A user profile with an email is required to share",
                    details=SyncErrorDetails(project_id=project.id, store="local"),
                )
            )
        if project.id in self._promoted or (
            await self._shared_store.get_project(project.id, identity.user_id)
            is not None
        ):
            raise _already_promoted(project.id)

        owner = await self._shared_store.ensure_user(identity)
        draft = SharedProjectDraft(
            id=project.id,
            name=project.name,
            master_language=project.master_language,
            target_languages=list(project.target_languages),
            master_data=project.master_data,
            translations=dict(project.translations),
        )
        try:
            shared_project = await self._shared_store.create_project(draft, owner.id)
        except StorageError as exc:
            if exc.info.code == StorageErrorCode.DUPLICATE:
                raise _already_promoted(project.id) from exc
            raise
        self._promoted.add(shared_project.id)

        try:
            await self._local_store.delete(project.id)
        except StorageError as exc:
            await self._emit(
                build_local_cleanup_failed_log(self._now(), project.id, exc)
            )
        await self._emit(
            build_promoted_log(self._now(), project.id, shared_project.id, owner.id)
        )
        return shared_project

    async def persist(
        self,
        project: Project,
        role: ProjectRole,
        *,
        identity: Identity,
        shared_project_id: ProjectId | None = None,
        expected_version: int | None = None,
    ) -> PersistResult:
        """Save a project locally and, when allowed, to the shared store.

        The local write always happens first. The shared write happens only
        for promoted projects and roles that may edit; a viewer's changes
        stay local.

        Args:
            project: Project as edited in the session.
            role: Caller role on the project.
            identity: Caller identity.
            shared_project_id: Shared project id if promoted.
            expected_version: Optional shared version token; a stale token
                makes the shared store reject the write with ``conflict``.

        Returns:
            PersistResult: Locally stored record and shared write outcome.

        Raises:
            StorageError: When either store fails. A shared failure is raised
                after the local write has succeeded.
        """
        stored = await self._local_store.save(project)
        if shared_project_id is None and project.id in self._promoted:
            shared_project_id = project.id

        shared_version: int | None = None
        shared_written = False
        if shared_project_id is not None and can_edit(role):
            update = SharedProjectUpdate(
                name=project.name,
                target_languages=list(project.target_languages),
                master_data=project.master_data,
                translations=dict(project.translations),
            )
            shared_project = await self._shared_store.update_project(
                shared_project_id,
                update,
                identity.user_id,
                expected_version=expected_version,
            )
            shared_written = True
            shared_version = shared_project.version

        await self._emit(
            build_persisted_log(
                self._now(),
                project.id,
                role,
                shared_written,
                shared_project_id=shared_project_id,
                shared_version=shared_version,
            )
        )
        return PersistResult(
            project=stored,
            shared_written=shared_written,
            shared_version=shared_version,
        )

    async def load_for_editing(
        self, ref: ProjectRef, identity: Identity
    ) -> EditingSession:
        """Load a project for editing and resolve the caller's role.

        Args:
            ref: Local or shared project reference.
            identity: Caller identity.

        Returns:
            EditingSession: Project in unified shape with the caller's role.

        Raises:
            SyncError: ``not_found`` when the project does not exist or is
                not visible to the caller.
            StorageError: When a store fails.
        """
        if ref.kind == ProjectRefKind.SHARED:
            shared_project = await self._shared_store.get_project(
                ref.id, identity.user_id
            )
            if shared_project is None:
                raise _not_found(ref.id, "shared")
            return await self._shared_session(shared_project, identity)

        shared_project = await self._find_shared(ref.id, identity)
        if shared_project is not None:
            await self._emit(build_local_shadowed_log(self._now(), ref.id))
            return await self._shared_session(shared_project, identity)

        project = await self._local_store.load(ref.id)
        if project is None:
            raise _not_found(ref.id, "local")
        await self._emit(
            build_loaded_log(self._now(), project.id, ProjectRole.OWNER, "local")
        )
        return EditingSession(project=project, role=ProjectRole.OWNER)

    async def list_local_projects(self, identity: Identity) -> list[Project]:
        """List local-only projects, most recently modified first.

        Local records whose id is visible in the shared store are cached
        copies of shared projects and are left out.
        """
        projects = await self._local_store.list()
        shared_ids = set(self._promoted)
        try:
            shared_projects = await self._shared_store.list_projects(identity.user_id)
        except StorageError as exc:
            await self._emit(build_shared_unreachable_log(self._now(), exc.info))
        else:
            shared_ids.update(shared.id for shared in shared_projects)
        local_only = [project for project in projects if project.id not in shared_ids]
        return sorted(
            local_only, key=lambda project: project.last_modified, reverse=True
        )

    async def list_shared_projects(self, identity: Identity) -> list[SharedProject]:
        """List shared projects the caller owns or belongs to."""
        shared_projects = await self._shared_store.list_projects(identity.user_id)
        self._promoted.update(shared.id for shared in shared_projects)
        return shared_projects

    async def _shared_session(
        self, shared_project: SharedProject, identity: Identity
    ) -> EditingSession:
        self._promoted.add(shared_project.id)
        role = resolve_role(shared_project, identity.user_id)
        if role == ProjectRole.VIEWER and not any(
            member.user_id == identity.user_id for member in shared_project.members
        ):
            await self._emit(
                build_role_fallback_log(
                    self._now(), shared_project.id, identity.user_id
                )
            )
        await self._emit(
            build_loaded_log(self._now(), shared_project.id, role, "shared")
        )
        return EditingSession(
            project=shared_to_project(shared_project),
            role=role,
            shared_project_id=shared_project.id,
            shared_version=shared_project.version,
        )

    async def _find_shared(
        self, project_id: ProjectId, identity: Identity
    ) -> SharedProject | None:
        try:
            return await self._shared_store.get_project(project_id, identity.user_id)
        except StorageError as exc:
            await self._emit(
                build_shared_unreachable_log(self._now(), exc.info, project_id)
            )
            return None

    def _now(self) -> str:
        return self._clock().isoformat()

    async def _emit(self, entry: LogEntry) -> None:
        if self._log_sink is not None:
            await self._log_sink.emit_log(entry)


def _already_promoted(project_id: ProjectId) -> SyncError:
    return SyncError(
        SyncErrorInfo(
            code=SyncErrorCode.ALREADY_PROMOTED,
            message="Project has already been promoted to shared storage",
            details=SyncErrorDetails(project_id=project_id, store="shared"),
        )
    )


def _not_found(project_id: ProjectId, store: str) -> SyncError:
    return SyncError(
        SyncErrorInfo(
            code=SyncErrorCode.NOT_FOUND,
            message=f"Project {project_id} not found in {store} store",
            details=SyncErrorDetails(project_id=project_id, store=store),
        )
    )
