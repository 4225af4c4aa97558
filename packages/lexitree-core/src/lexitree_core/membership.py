"""Invite codes and the atomic membership join."""

from __future__ import annotations

import random
import secrets
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Final
from uuid import uuid4

from lexitree_core.ports.membership import (
    MembershipError,
    MembershipErrorCode,
    MembershipErrorDetails,
    MembershipErrorInfo,
    build_invite_created_log,
    build_invite_deleted_log,
    build_join_rejected_log,
    build_join_retried_log,
    build_joined_log,
)
from lexitree_core.ports.observability import LogSinkProtocol
from lexitree_core.ports.shared import SharedStoreProtocol
from lexitree_core.ports.storage import (
    StorageError,
    StorageErrorCode,
    build_storage_error,
)
from lexitree_core.sync import shared_to_project
from lexitree_schemas.identity import Identity
from lexitree_schemas.logs import LogEntry
from lexitree_schemas.membership import InviteCode, JoinResult
from lexitree_schemas.primitives import (
    InviteCodeState,
    ProjectId,
    ProjectRole,
    RecordId,
    can_manage_invites,
)

INVITE_CODE_ALPHABET: Final = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
INVITE_CODE_LENGTH: Final = 8
MAX_CODE_ATTEMPTS: Final = 10
DEFAULT_MAX_JOIN_ATTEMPTS: Final = 5

type Clock = Callable[[], datetime]

_system_random = secrets.SystemRandom()


def generate_code(rng: random.Random | None = None) -> str:
    """Generate an invite code from the unambiguous alphabet.

    Args:
        rng: Random source; a cryptographic source is used when omitted.

    Returns:
        str: Eight character code.
    """
    source = rng or _system_random
    return "".join(
        source.choice(INVITE_CODE_ALPHABET) for _ in range(INVITE_CODE_LENGTH)
    )


def normalize_code(code: str) -> str:
    """Normalize user input to the stored invite code form."""
    return code.strip().upper()


def invite_code_state(invite: InviteCode, now: datetime) -> InviteCodeState:
    """Return whether an invite code can still be redeemed.

    Args:
        invite: Invite code record.
        now: Current time (timezone aware).

    Returns:
        InviteCodeState: ``expired`` once ``now`` is past ``expires_at``,
        ``exhausted`` once ``uses`` reaches ``max_uses``, else ``active``.
    """
    if invite.expires_at is not None and now > datetime.fromisoformat(
        invite.expires_at
    ):
        return InviteCodeState.EXPIRED
    if invite.max_uses is not None and invite.uses >= invite.max_uses:
        return InviteCodeState.EXHAUSTED
    return InviteCodeState.ACTIVE


def _utc_now() -> datetime:
    return datetime.now(UTC)


class MembershipService:
    """Invite code management and invite-based joins for shared projects."""

    def __init__(
        self,
        shared_store: SharedStoreProtocol,
        *,
        log_sink: LogSinkProtocol | None = None,
        clock: Clock | None = None,
        rng: random.Random | None = None,
        max_join_attempts: int = DEFAULT_MAX_JOIN_ATTEMPTS,
    ) -> None:
        """Initialize the membership service.

        Args:
            shared_store: Shared multi-user project store.
            log_sink: Optional structured log sink.
            clock: Optional clock for timestamps and expiry checks.
            rng: Optional random source for code generation.
            max_join_attempts: Redeem attempts before a contended join gives up.

        Raises:
            ValueError: If max_join_attempts is less than 1.
        """
        if max_join_attempts < 1:
            raise ValueError("max_join_attempts must be at least 1")
        self._shared_store = shared_store
        self._log_sink = log_sink
        self._clock = clock or _utc_now
        self._rng = rng
        self._max_join_attempts = max_join_attempts

    async def create_invite_code(
        self,
        project_id: ProjectId,
        identity: Identity,
        *,
        role: ProjectRole = ProjectRole.EDITOR,
        max_uses: int | None = None,
        expires_in_days: int | None = None,
    ) -> InviteCode:
        """Create an invite code for a shared project.

        Args:
            project_id: Shared project identifier.
            identity: Caller identity; must own the project.
            role: Role granted on join (editor or viewer).
            max_uses: Optional use limit.
            expires_in_days: Optional lifetime in days.

        Returns:
            InviteCode: Stored invite code.

        Raises:
            MembershipError: ``not_owner`` when the caller does not own the
                project, or ``code_space_exhausted`` when no unused code was
                found.
            StorageError: When the shared store fails.
        """
        await self._require_owner(project_id, identity)
        now = self._clock()
        expires_at = (
            (now + timedelta(days=expires_in_days)).isoformat()
            if expires_in_days
            else None
        )
        code = await self._unused_code(project_id)
        invite = InviteCode(
            id=str(uuid4()),
            code=code,
            role=role,
            max_uses=max_uses,
            uses=0,
            expires_at=expires_at,
            project_id=project_id,
            created_by_id=identity.user_id,
            created_at=now.isoformat(),
        )
        stored = await self._shared_store.create_invite_code(invite)
        await self._emit(build_invite_created_log(now.isoformat(), stored))
        return stored

    async def list_invite_codes(
        self, project_id: ProjectId, identity: Identity
    ) -> list[InviteCode]:
        """List a project's invite codes, newest first (owner only)."""
        await self._require_owner(project_id, identity)
        return await self._shared_store.list_invite_codes(project_id)

    async def delete_invite_code(
        self, project_id: ProjectId, invite_id: RecordId, identity: Identity
    ) -> None:
        """Delete an invite code (owner only); granted memberships remain."""
        await self._require_owner(project_id, identity)
        await self._shared_store.delete_invite_code(project_id, invite_id)
        await self._emit(
            build_invite_deleted_log(self._clock().isoformat(), project_id, invite_id)
        )

    async def join(self, code: str, identity: Identity) -> JoinResult:
        """Join a shared project with an invite code.

        The code is validated (exists, caller is not the owner, not expired,
        not exhausted, caller not already a member), then redeemed in one
        all-or-nothing store operation conditioned on the observed use
        count. A concurrent redeem makes the store report a conflict; the
        code is then re-read and re-validated.

        Args:
            code: Invite code as typed by the user.
            identity: Joining identity.

        Returns:
            JoinResult: Joined project, created membership and granted role.

        Raises:
            MembershipError: ``invalid_code``, ``already_owner``,
                ``code_expired``, ``code_exhausted`` or ``already_member``.
            StorageError: ``unavailable`` when the code stays contended for
                every attempt, or any shared store failure.
        """
        normalized = normalize_code(code)
        for attempt in range(1, self._max_join_attempts + 1):
            invite = await self._validated_invite(normalized, identity)
            if attempt == 1:
                await self._shared_store.ensure_user(identity)
            try:
                membership = await self._shared_store.redeem_invite_code(
                    invite.id, identity.user_id, invite.uses
                )
            except StorageError as exc:
                if exc.info.code == StorageErrorCode.CONFLICT:
                    await self._emit(
                        build_join_retried_log(
                            self._clock().isoformat(),
                            invite.project_id,
                            identity.user_id,
                            attempt,
                        )
                    )
                    continue
                if exc.info.code == StorageErrorCode.DUPLICATE:
                    raise await self._reject(
                        MembershipErrorCode.ALREADY_MEMBER,
                        "You are already a member of this project",
                        normalized,
                        identity,
                        invite.project_id,
                    ) from exc
                if exc.info.code == StorageErrorCode.NOT_FOUND:
                    raise await self._reject(
                        MembershipErrorCode.INVALID_CODE,
                        "Invalid invite code",
                        normalized,
                        identity,
                    ) from exc
                raise
            project = await self._shared_store.get_project(
                membership.project_id, identity.user_id
            )
            if project is None:
                raise build_storage_error(
                    StorageErrorCode.NOT_FOUND,
                    "Joined project is no longer available",
                    operation="join",
                    project_id=membership.project_id,
                )
            await self._emit(
                build_joined_log(
                    self._clock().isoformat(), membership, invite.id, attempt
                )
            )
            return JoinResult(
                project=shared_to_project(project),
                membership=membership,
                role=membership.role,
            )
        raise build_storage_error(
            StorageErrorCode.UNAVAILABLE,
            "Invite code is under heavy contention; try again",
            operation="join",
            reason=f"{self._max_join_attempts} redeem attempts conflicted",
        )

    async def _validated_invite(self, code: str, identity: Identity) -> InviteCode:
        invite = await self._shared_store.find_invite_code(code)
        if invite is None:
            raise await self._reject(
                MembershipErrorCode.INVALID_CODE,
                "Invalid invite code",
                code,
                identity,
            )
        owner_id = await self._shared_store.get_project_owner_id(invite.project_id)
        if owner_id is None:
            raise await self._reject(
                MembershipErrorCode.INVALID_CODE,
                "Invalid invite code",
                code,
                identity,
            )
        if owner_id == identity.user_id:
            raise await self._reject(
                MembershipErrorCode.ALREADY_OWNER,
                "You are the owner of this project",
                code,
                identity,
                invite.project_id,
            )
        state = invite_code_state(invite, self._clock())
        if state == InviteCodeState.EXPIRED:
            raise await self._reject(
                MembershipErrorCode.CODE_EXPIRED,
                "This invite code has expired",
                code,
                identity,
                invite.project_id,
            )
        if state == InviteCodeState.EXHAUSTED:
            raise await self._reject(
                MembershipErrorCode.CODE_EXHAUSTED,
                "This invite code has reached its maximum uses",
                code,
                identity,
                invite.project_id,
            )
        existing = await self._shared_store.find_membership(
            identity.user_id, invite.project_id
        )
        if existing is not None:
            raise await self._reject(
                MembershipErrorCode.ALREADY_MEMBER,
                "You are already a member of this project",
                code,
                identity,
                invite.project_id,
            )
        return invite

    async def _unused_code(self, project_id: ProjectId) -> str:
        for _ in range(MAX_CODE_ATTEMPTS):
            candidate = generate_code(self._rng)
            if not await self._shared_store.code_exists(candidate):
                return candidate
        raise MembershipError(
            MembershipErrorInfo(
                code=MembershipErrorCode.CODE_SPACE_EXHAUSTED,
                message="Could not generate an unused invite code",
                details=MembershipErrorDetails(
                    project_id=project_id, attempts=MAX_CODE_ATTEMPTS
                ),
            )
        )

    async def _require_owner(self, project_id: ProjectId, identity: Identity) -> None:
        owner_id = await self._shared_store.get_project_owner_id(project_id)
        role: ProjectRole | None = None
        if owner_id is not None and owner_id == identity.user_id:
            role = ProjectRole.OWNER
        elif owner_id is not None:
            membership = await self._shared_store.find_membership(
                identity.user_id, project_id
            )
            role = ProjectRole(membership.role) if membership is not None else None
        if role is None or not can_manage_invites(role):
            raise MembershipError(
                MembershipErrorInfo(
                    code=MembershipErrorCode.NOT_OWNER,
                    message="Only the project owner can manage invite codes",
                    details=MembershipErrorDetails(
                        project_id=project_id, user_id=identity.user_id
                    ),
                )
            )

    async def _reject(
        self,
        error_code: MembershipErrorCode,
        message: str,
        code: str,
        identity: Identity,
        project_id: ProjectId | None = None,
    ) -> MembershipError:
        info = MembershipErrorInfo(
            code=error_code,
            message=message,
            details=MembershipErrorDetails(
                code=code, project_id=project_id, user_id=identity.user_id
            ),
        )
        await self._emit(
            build_join_rejected_log(
                self._clock().isoformat(), identity.user_id, info, project_id
            )
        )
        return MembershipError(info)

    async def _emit(self, entry: LogEntry) -> None:
        if self._log_sink is not None:
            await self._log_sink.emit_log(entry)
