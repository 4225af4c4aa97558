"""Unit tests for invite codes and membership joins."""

from __future__ import annotations

import asyncio
import random

import pytest
from pydantic import ValidationError

from lexitree_core.membership import (
    INVITE_CODE_ALPHABET,
    INVITE_CODE_LENGTH,
    MembershipService,
    generate_code,
    invite_code_state,
    normalize_code,
)
from lexitree_core.ports.membership import MembershipError, MembershipErrorCode
from lexitree_core.ports.storage import StorageError, StorageErrorCode
from lexitree_io.shared.memory import InMemorySharedStore
from lexitree_io.storage.log_sink import InMemoryLogSink
from lexitree_schemas.events import MembershipEvent
from lexitree_schemas.identity import Identity
from lexitree_schemas.membership import InviteCode, JoinResult, Membership
from lexitree_schemas.primitives import (
    InviteCodeState,
    JsonObject,
    ProjectId,
    ProjectRole,
    RecordId,
    UserId,
)
from lexitree_schemas.project import SharedProjectDraft
from tests.helpers.clock import FrozenClock


class _TakenCodesStore(InMemorySharedStore):
    async def code_exists(self, code: str) -> bool:
        return True


class _ContendedStore(InMemorySharedStore):
    """Loses the redeem race a fixed number of times before succeeding."""

    def __init__(self, conflicts: int) -> None:
        super().__init__()
        self.conflicts = conflicts
        self.redeem_calls = 0

    async def redeem_invite_code(
        self, invite_id: RecordId, user_id: UserId, expected_uses: int
    ) -> Membership:
        self.redeem_calls += 1
        if self.redeem_calls <= self.conflicts:
            expected_uses += 1
        return await super().redeem_invite_code(invite_id, user_id, expected_uses)


@pytest.fixture
def store(clock: FrozenClock) -> InMemorySharedStore:
    """Shared store fixture.

    Returns:
        InMemorySharedStore: Empty shared store on the test clock.
    """
    return InMemorySharedStore(clock=clock)


@pytest.fixture
def log_sink() -> InMemoryLogSink:
    """Log sink fixture.

    Returns:
        InMemoryLogSink: Sink collecting entries.
    """
    return InMemoryLogSink()


@pytest.fixture
def service(
    store: InMemorySharedStore, log_sink: InMemoryLogSink, clock: FrozenClock
) -> MembershipService:
    """Membership service with a seeded code generator.

    Returns:
        MembershipService: Service under test.
    """
    return MembershipService(
        store, log_sink=log_sink, clock=clock, rng=random.Random(7)
    )


async def _share(
    store: InMemorySharedStore, owner: Identity, master_document: JsonObject
) -> ProjectId:
    await store.ensure_user(owner)
    shared = await store.create_project(
        SharedProjectDraft(name="Demo", master_data=master_document), owner.user_id
    )
    return shared.id


def _third_user() -> Identity:
    return Identity(user_id="user-third", email="third@example.com")


class TestCodes:
    """Tests for code generation and state."""

    def test_generate_code_alphabet(self) -> None:
        """Codes use the unambiguous alphabet."""
        for _ in range(50):
            code = generate_code()
            assert len(code) == INVITE_CODE_LENGTH
            assert set(code) <= set(INVITE_CODE_ALPHABET)
        assert not set("01IO") & set(INVITE_CODE_ALPHABET)

    def test_generate_code_seeded(self) -> None:
        """A seeded source yields repeatable codes."""
        assert generate_code(random.Random(3)) == generate_code(random.Random(3))

    def test_normalize_code(self) -> None:
        """User input is trimmed and upper-cased."""
        assert normalize_code("  abcd2345 ") == "ABCD2345"

    def test_invite_code_state(self, clock: FrozenClock) -> None:
        """Expiry is strict and exhaustion compares uses with the limit."""
        invite = InviteCode(
            id="i1",
            code="ABCD2345",
            max_uses=2,
            uses=1,
            expires_at=clock().isoformat(),
            project_id="p1",
            created_by_id="u1",
            created_at=clock().isoformat(),
        )

        assert invite_code_state(invite, clock()) == InviteCodeState.ACTIVE
        clock.advance(seconds=1)
        assert invite_code_state(invite, clock()) == InviteCodeState.EXPIRED
        used_up = invite.model_copy(update={"uses": 2, "expires_at": None})
        assert invite_code_state(used_up, clock()) == InviteCodeState.EXHAUSTED


class TestInviteManagement:
    """Tests for creating, listing and deleting invite codes."""

    @pytest.mark.anyio
    async def test_create_invite_code(
        self,
        service: MembershipService,
        store: InMemorySharedStore,
        log_sink: InMemoryLogSink,
        owner: Identity,
        master_document: JsonObject,
    ) -> None:
        """Owners create codes with the requested limits."""
        project_id = await _share(store, owner, master_document)

        invite = await service.create_invite_code(
            project_id,
            owner,
            role=ProjectRole.VIEWER,
            max_uses=3,
            expires_in_days=7,
        )

        assert invite.role == ProjectRole.VIEWER
        assert invite.max_uses == 3
        assert invite.uses == 0
        assert invite.expires_at == "2026-02-02T00:00:00+00:00"
        assert invite.created_by_id == owner.user_id
        assert await store.code_exists(invite.code)
        entry = log_sink.entries[-1]
        assert entry.event == MembershipEvent.INVITE_CREATED
        assert invite.code not in entry.model_dump_json()

    @pytest.mark.anyio
    async def test_unlimited_defaults(
        self,
        service: MembershipService,
        store: InMemorySharedStore,
        owner: Identity,
        master_document: JsonObject,
    ) -> None:
        """Missing limits mean unlimited and never expiring."""
        project_id = await _share(store, owner, master_document)

        invite = await service.create_invite_code(project_id, owner, expires_in_days=0)

        assert invite.role == ProjectRole.EDITOR
        assert invite.max_uses is None
        assert invite.expires_at is None

    @pytest.mark.anyio
    async def test_rejects_zero_use_limit(
        self,
        service: MembershipService,
        store: InMemorySharedStore,
        owner: Identity,
        master_document: JsonObject,
    ) -> None:
        """A use limit of zero is invalid rather than unlimited."""
        project_id = await _share(store, owner, master_document)

        with pytest.raises(ValidationError):
            await service.create_invite_code(project_id, owner, max_uses=0)

        assert await service.list_invite_codes(project_id, owner) == []

    @pytest.mark.anyio
    async def test_only_owner_manages_codes(
        self,
        service: MembershipService,
        store: InMemorySharedStore,
        owner: Identity,
        guest: Identity,
        master_document: JsonObject,
    ) -> None:
        """Non-owners and unknown projects are refused."""
        project_id = await _share(store, owner, master_document)
        invite = await service.create_invite_code(project_id, owner)

        attempts = [
            service.create_invite_code(project_id, guest),
            service.create_invite_code("missing", owner),
            service.list_invite_codes(project_id, guest),
            service.delete_invite_code(project_id, invite.id, guest),
        ]
        for attempt in attempts:
            with pytest.raises(MembershipError) as exc_info:
                await attempt
            assert exc_info.value.info.code == MembershipErrorCode.NOT_OWNER

    @pytest.mark.anyio
    async def test_members_cannot_manage_codes(
        self,
        service: MembershipService,
        store: InMemorySharedStore,
        owner: Identity,
        guest: Identity,
        master_document: JsonObject,
    ) -> None:
        """Joined editors still cannot create or list codes."""
        project_id = await _share(store, owner, master_document)
        invite = await service.create_invite_code(project_id, owner)
        await service.join(invite.code, guest)

        for attempt in (
            service.create_invite_code(project_id, guest),
            service.list_invite_codes(project_id, guest),
        ):
            with pytest.raises(MembershipError) as exc_info:
                await attempt
            assert exc_info.value.info.code == MembershipErrorCode.NOT_OWNER

    @pytest.mark.anyio
    async def test_code_space_exhausted(
        self, clock: FrozenClock, owner: Identity, master_document: JsonObject
    ) -> None:
        """Generation gives up when every candidate is taken."""
        store = _TakenCodesStore(clock=clock)
        service = MembershipService(store, clock=clock)
        project_id = await _share(store, owner, master_document)

        with pytest.raises(MembershipError) as exc_info:
            await service.create_invite_code(project_id, owner)

        assert exc_info.value.info.code == MembershipErrorCode.CODE_SPACE_EXHAUSTED
        assert await store.list_invite_codes(project_id) == []

    @pytest.mark.anyio
    async def test_list_newest_first(
        self,
        service: MembershipService,
        store: InMemorySharedStore,
        clock: FrozenClock,
        owner: Identity,
        master_document: JsonObject,
    ) -> None:
        """Codes are listed newest first."""
        project_id = await _share(store, owner, master_document)
        first = await service.create_invite_code(project_id, owner)
        clock.advance(minutes=5)
        second = await service.create_invite_code(project_id, owner)

        listed = await service.list_invite_codes(project_id, owner)

        assert [invite.id for invite in listed] == [second.id, first.id]

    @pytest.mark.anyio
    async def test_delete_keeps_memberships(
        self,
        service: MembershipService,
        store: InMemorySharedStore,
        owner: Identity,
        guest: Identity,
        master_document: JsonObject,
    ) -> None:
        """Deleting a code leaves granted memberships in place."""
        project_id = await _share(store, owner, master_document)
        invite = await service.create_invite_code(project_id, owner)
        await service.join(invite.code, guest)

        await service.delete_invite_code(project_id, invite.id, owner)

        assert await service.list_invite_codes(project_id, owner) == []
        assert await store.find_membership(guest.user_id, project_id) is not None
        with pytest.raises(StorageError) as exc_info:
            await service.delete_invite_code(project_id, invite.id, owner)
        assert exc_info.value.info.code == StorageErrorCode.NOT_FOUND


class TestJoin:
    """Tests for joining with an invite code."""

    @pytest.mark.anyio
    async def test_join(
        self,
        service: MembershipService,
        store: InMemorySharedStore,
        log_sink: InMemoryLogSink,
        owner: Identity,
        guest: Identity,
        master_document: JsonObject,
    ) -> None:
        """Joining grants the code's role and consumes one use."""
        project_id = await _share(store, owner, master_document)
        invite = await service.create_invite_code(project_id, owner, max_uses=2)

        result = await service.join(f"  {invite.code.lower()} ", guest)

        assert result.role == ProjectRole.EDITOR
        assert result.project.id == project_id
        assert result.project.master_data == master_document
        assert result.membership.user_id == guest.user_id
        stored = await store.find_invite_code(invite.code)
        assert stored is not None
        assert stored.uses == 1
        visible = await store.get_project(project_id, guest.user_id)
        assert visible is not None
        assert [member.user_id for member in visible.members] == [guest.user_id]
        assert log_sink.entries[-1].event == MembershipEvent.JOINED

    @pytest.mark.anyio
    async def test_invalid_code(
        self,
        service: MembershipService,
        log_sink: InMemoryLogSink,
        guest: Identity,
    ) -> None:
        """Unknown codes are rejected and logged."""
        with pytest.raises(MembershipError) as exc_info:
            await service.join("NOPE2345", guest)

        assert exc_info.value.info.code == MembershipErrorCode.INVALID_CODE
        assert log_sink.entries[-1].event == MembershipEvent.JOIN_REJECTED

    @pytest.mark.anyio
    async def test_owner_check_comes_first(
        self,
        service: MembershipService,
        store: InMemorySharedStore,
        clock: FrozenClock,
        owner: Identity,
        master_document: JsonObject,
    ) -> None:
        """Owners are told they own the project even for a dead code."""
        project_id = await _share(store, owner, master_document)
        invite = await service.create_invite_code(project_id, owner, expires_in_days=1)
        clock.advance(days=2)

        with pytest.raises(MembershipError) as exc_info:
            await service.join(invite.code, owner)

        assert exc_info.value.info.code == MembershipErrorCode.ALREADY_OWNER

    @pytest.mark.anyio
    async def test_expired_code(
        self,
        service: MembershipService,
        store: InMemorySharedStore,
        clock: FrozenClock,
        owner: Identity,
        guest: Identity,
        master_document: JsonObject,
    ) -> None:
        """Codes past their expiry are rejected without consuming a use."""
        project_id = await _share(store, owner, master_document)
        invite = await service.create_invite_code(project_id, owner, expires_in_days=7)
        clock.advance(days=8)

        with pytest.raises(MembershipError) as exc_info:
            await service.join(invite.code, guest)

        assert exc_info.value.info.code == MembershipErrorCode.CODE_EXPIRED
        stored = await store.find_invite_code(invite.code)
        assert stored is not None
        assert stored.uses == 0

    @pytest.mark.anyio
    async def test_exhausted_code(
        self,
        service: MembershipService,
        store: InMemorySharedStore,
        owner: Identity,
        guest: Identity,
        master_document: JsonObject,
    ) -> None:
        """A code at its use limit is rejected."""
        project_id = await _share(store, owner, master_document)
        invite = await service.create_invite_code(project_id, owner, max_uses=1)
        await service.join(invite.code, guest)

        with pytest.raises(MembershipError) as exc_info:
            await service.join(invite.code, _third_user())

        assert exc_info.value.info.code == MembershipErrorCode.CODE_EXHAUSTED

    @pytest.mark.anyio
    async def test_already_member(
        self,
        service: MembershipService,
        store: InMemorySharedStore,
        owner: Identity,
        guest: Identity,
        master_document: JsonObject,
    ) -> None:
        """Joining twice is rejected and does not consume a use."""
        project_id = await _share(store, owner, master_document)
        invite = await service.create_invite_code(project_id, owner)
        await service.join(invite.code, guest)

        with pytest.raises(MembershipError) as exc_info:
            await service.join(invite.code, guest)

        assert exc_info.value.info.code == MembershipErrorCode.ALREADY_MEMBER
        stored = await store.find_invite_code(invite.code)
        assert stored is not None
        assert stored.uses == 1

    @pytest.mark.anyio
    async def test_join_without_profile(
        self,
        service: MembershipService,
        store: InMemorySharedStore,
        owner: Identity,
        anonymous: Identity,
        master_document: JsonObject,
    ) -> None:
        """A caller the shared store cannot register cannot join."""
        project_id = await _share(store, owner, master_document)
        invite = await service.create_invite_code(project_id, owner)

        with pytest.raises(StorageError) as exc_info:
            await service.join(invite.code, anonymous)

        assert exc_info.value.info.code == StorageErrorCode.VALIDATION_ERROR
        stored = await store.find_invite_code(invite.code)
        assert stored is not None
        assert stored.uses == 0

    @pytest.mark.anyio
    async def test_concurrent_joins_respect_limit(
        self,
        service: MembershipService,
        store: InMemorySharedStore,
        owner: Identity,
        guest: Identity,
        master_document: JsonObject,
    ) -> None:
        """Racing joins on a single-use code admit exactly one user."""
        project_id = await _share(store, owner, master_document)
        invite = await service.create_invite_code(project_id, owner, max_uses=1)
        fourth = Identity(user_id="user-fourth", email="fourth@example.com")

        results = await asyncio.gather(
            service.join(invite.code, guest),
            service.join(invite.code, _third_user()),
            service.join(invite.code, fourth),
            return_exceptions=True,
        )

        joined = [result for result in results if isinstance(result, JoinResult)]
        rejected = [
            result for result in results if isinstance(result, MembershipError)
        ]
        assert len(joined) == 1
        assert len(rejected) == 2
        assert all(
            error.info.code == MembershipErrorCode.CODE_EXHAUSTED for error in rejected
        )
        stored = await store.find_invite_code(invite.code)
        assert stored is not None
        assert stored.uses == 1
        project = await store.get_project(project_id, owner.user_id)
        assert project is not None
        assert len(project.members) == 1

    @pytest.mark.anyio
    async def test_retries_after_conflict(
        self,
        clock: FrozenClock,
        owner: Identity,
        guest: Identity,
        master_document: JsonObject,
    ) -> None:
        """A lost redeem race is retried after re-validating the code."""
        store = _ContendedStore(conflicts=2)
        log_sink = InMemoryLogSink()
        service = MembershipService(store, log_sink=log_sink, clock=clock)
        project_id = await _share(store, owner, master_document)
        invite = await service.create_invite_code(project_id, owner)

        result = await service.join(invite.code, guest)

        assert result.role == ProjectRole.EDITOR
        assert store.redeem_calls == 3
        events = [entry.event for entry in log_sink.entries]
        assert events.count(MembershipEvent.JOIN_RETRIED) == 2
        joined = log_sink.entries[-1]
        assert joined.event == MembershipEvent.JOINED
        assert joined.data is not None
        assert joined.data["attempts"] == 3

    @pytest.mark.anyio
    async def test_gives_up_under_contention(
        self,
        clock: FrozenClock,
        owner: Identity,
        guest: Identity,
        master_document: JsonObject,
    ) -> None:
        """Endless conflicts end with an unavailable storage error."""
        store = _ContendedStore(conflicts=100)
        service = MembershipService(store, clock=clock, max_join_attempts=3)
        project_id = await _share(store, owner, master_document)
        invite = await service.create_invite_code(project_id, owner)

        with pytest.raises(StorageError) as exc_info:
            await service.join(invite.code, guest)

        assert exc_info.value.info.code == StorageErrorCode.UNAVAILABLE
        assert store.redeem_calls == 3
        assert await store.find_membership(guest.user_id, project_id) is None

    def test_rejects_zero_attempts(self, store: InMemorySharedStore) -> None:
        """At least one join attempt is required."""
        with pytest.raises(ValueError):
            MembershipService(store, max_join_attempts=0)
