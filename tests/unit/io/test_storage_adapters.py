"""Unit tests for local storage adapters."""

from __future__ import annotations

import asyncio
import json
from datetime import UTC, datetime
from pathlib import Path

import pytest

from lexitree_core.editing import add_target_language, create_project, set_translation
from lexitree_core.ports.identity import IdentityProviderProtocol
from lexitree_core.ports.storage import (
    ProjectStoreProtocol,
    StorageError,
    StorageErrorCode,
)
from lexitree_io.storage import (
    FileSystemIdentityProvider,
    FileSystemProjectStore,
    InMemoryProjectStore,
)
from lexitree_schemas.primitives import JsonObject
from lexitree_schemas.project import Project
from tests.helpers.clock import FrozenClock


@pytest.fixture
def project(master_document: JsonObject) -> Project:
    """Project with a German translation.

    Returns:
        Project: Unsaved project.
    """
    created = add_target_language(create_project("Demo", master_document), "de")
    return set_translation(created, "de", "menu.help", "Hilfe")


@pytest.fixture(params=["filesystem", "memory"])
def project_store(
    request: pytest.FixtureRequest, tmp_path: Path, clock: FrozenClock
) -> ProjectStoreProtocol:
    """Each local store implementation on the test clock.

    Returns:
        ProjectStoreProtocol: Empty store.
    """
    if request.param == "filesystem":
        return FileSystemProjectStore(tmp_path, clock=clock)
    return InMemoryProjectStore(clock=clock)


class TestProjectStores:
    """Behavior shared by every local project store."""

    @pytest.mark.anyio
    async def test_save_and_load(
        self, project_store: ProjectStoreProtocol, project: Project
    ) -> None:
        """Saved projects load back unchanged apart from last_modified."""
        stored = await project_store.save(project)
        loaded = await project_store.load(project.id)

        assert stored.last_modified == "2026-01-26T00:00:00+00:00"
        assert loaded == stored
        assert loaded is not None
        assert loaded.translations["de"] == {"menu": {"help": "Hilfe"}}
        assert list(loaded.master_data) == list(project.master_data)

    @pytest.mark.anyio
    async def test_save_refreshes_last_modified(
        self,
        project_store: ProjectStoreProtocol,
        project: Project,
        clock: FrozenClock,
    ) -> None:
        """Each save stamps the current time."""
        await project_store.save(project)
        clock.advance(hours=1)

        stored = await project_store.save(project)

        assert stored.last_modified == "2026-01-26T01:00:00+00:00"

    @pytest.mark.anyio
    async def test_load_missing(self, project_store: ProjectStoreProtocol) -> None:
        """Unknown ids load as None."""
        assert await project_store.load("missing") is None

    @pytest.mark.anyio
    async def test_list_and_delete(
        self,
        project_store: ProjectStoreProtocol,
        project: Project,
        master_document: JsonObject,
    ) -> None:
        """Listing returns every project and delete is idempotent."""
        other = create_project("Other", master_document)
        await project_store.save(project)
        await project_store.save(other)

        listed = await project_store.list()
        assert {item.id for item in listed} == {project.id, other.id}

        await project_store.delete(project.id)
        await project_store.delete(project.id)
        assert [item.id for item in await project_store.list()] == [other.id]


class TestFileSystemProjectStore:
    """Filesystem specific behavior."""

    @pytest.mark.anyio
    async def test_layout(self, tmp_path: Path, project: Project) -> None:
        """Projects are stored as indented JSON under projects/."""
        store = FileSystemProjectStore(tmp_path)
        await store.save(project)

        path = tmp_path / "projects" / f"{project.id}.json"
        payload = json.loads(path.read_text(encoding="utf-8"))
        assert payload["name"] == "Demo"
        assert not list(path.parent.glob("*.tmp"))

    @pytest.mark.anyio
    async def test_list_empty_dir(self, tmp_path: Path) -> None:
        """A missing projects directory lists as empty."""
        assert await FileSystemProjectStore(tmp_path / "nothing").list() == []

    @pytest.mark.anyio
    @pytest.mark.parametrize("project_id", ["../escape", ".hidden", "a\\b", ""])
    async def test_rejects_unsafe_ids(self, tmp_path: Path, project_id: str) -> None:
        """Ids that would escape the data directory are refused."""
        store = FileSystemProjectStore(tmp_path)

        with pytest.raises(StorageError) as exc_info:
            await store.load(project_id)

        assert exc_info.value.info.code == StorageErrorCode.VALIDATION_ERROR

    @pytest.mark.anyio
    async def test_corrupt_json(self, tmp_path: Path) -> None:
        """Unparseable records raise a serialization error."""
        store = FileSystemProjectStore(tmp_path)
        path = tmp_path / "projects" / "broken.json"
        path.parent.mkdir(parents=True)
        path.write_text("{not json", encoding="utf-8")

        with pytest.raises(StorageError) as exc_info:
            await store.load("broken")

        assert exc_info.value.info.code == StorageErrorCode.SERIALIZATION_ERROR

    @pytest.mark.anyio
    async def test_invalid_record(self, tmp_path: Path) -> None:
        """Records missing required fields raise a validation error."""
        store = FileSystemProjectStore(tmp_path)
        path = tmp_path / "projects" / "partial.json"
        path.parent.mkdir(parents=True)
        path.write_text(json.dumps({"id": "partial"}), encoding="utf-8")

        with pytest.raises(StorageError) as exc_info:
            await store.load("partial")

        assert exc_info.value.info.code == StorageErrorCode.VALIDATION_ERROR
        response = exc_info.value.info.to_error_response()
        assert response.code == "validation_error"


class TestFileSystemIdentityProvider:
    """Tests for the profile file."""

    @pytest.mark.anyio
    async def test_generates_stable_user_id(self, tmp_path: Path) -> None:
        """The user id is created once and reused."""
        provider = FileSystemIdentityProvider(tmp_path / "profile.json")
        assert isinstance(provider, IdentityProviderProtocol)

        first = await provider.get_identity()
        again = await FileSystemIdentityProvider(
            tmp_path / "profile.json"
        ).get_identity()

        assert first.user_id == again.user_id
        assert first.email is None
        assert await provider.has_profile() is False

    @pytest.mark.anyio
    async def test_set_profile(self, tmp_path: Path) -> None:
        """Recording a profile keeps the user id."""
        provider = FileSystemIdentityProvider(tmp_path / "profile.json")
        before = await provider.get_identity()

        updated = await provider.set_profile("me@example.com", "")

        assert updated.user_id == before.user_id
        assert updated.email == "me@example.com"
        assert updated.name is None
        assert await provider.has_profile() is True

    @pytest.mark.anyio
    async def test_corrupt_profile(self, tmp_path: Path) -> None:
        """A broken profile file raises a serialization error."""
        path = tmp_path / "profile.json"
        path.write_text("[]", encoding="utf-8")

        with pytest.raises(StorageError) as exc_info:
            await FileSystemIdentityProvider(path).get_identity()

        assert exc_info.value.info.code == StorageErrorCode.SERIALIZATION_ERROR


def test_in_memory_store_copies(project: Project) -> None:
    """The in-memory store never hands out its own records."""
    store = InMemoryProjectStore(clock=lambda: datetime(2026, 1, 1, tzinfo=UTC))

    async def _scenario() -> None:
        await store.save(project)
        loaded = await store.load(project.id)
        assert loaded is not None
        loaded.translations["de"]["menu"] = "changed"
        reloaded = await store.load(project.id)
        assert reloaded is not None
        assert reloaded.translations["de"] == {"menu": {"help": "Hilfe"}}

    asyncio.run(_scenario())
