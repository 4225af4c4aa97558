"""Unit tests for project, membership and identity schemas."""

import pytest
from pydantic import ValidationError

from lexitree_schemas.identity import Identity
from lexitree_schemas.membership import InviteCode, Membership
from lexitree_schemas.primitives import (
    ProjectRole,
    can_edit,
    can_manage_invites,
    role_at_least,
)
from lexitree_schemas.project import (
    EditingSession,
    KeyNode,
    Project,
    ProjectRef,
    SharedProject,
    SharedProjectUpdate,
)

TIMESTAMP = "2026-01-26T00:00:00+00:00"


def _invite(**overrides: object) -> InviteCode:
    payload: dict[str, object] = {
        "id": "invite-1",
        "code": "ABCD2345",
        "project_id": "project-1",
        "created_by_id": "user-1",
        "created_at": TIMESTAMP,
    }
    payload.update(overrides)
    return InviteCode.model_validate(payload)


def test_project_normalizes_languages() -> None:
    """Language codes are trimmed, lower-cased and de-duplicated."""
    project = Project(
        id="p1",
        name="Demo",
        master_language=" EN ",
        target_languages=["DE", " fr", "de"],
        last_modified=TIMESTAMP,
    )

    assert project.master_language == "en"
    assert project.target_languages == ["de", "fr"]
    assert project.translations == {"de": {}, "fr": {}}


def test_project_keeps_document_whitespace() -> None:
    """Translated text is stored verbatim."""
    project = Project(
        id="p1",
        name="Demo",
        target_languages=["de"],
        translations={"de": {"greeting": "  Hallo  "}},
        last_modified=TIMESTAMP,
    )

    assert project.translations["de"]["greeting"] == "  Hallo  "


def test_translation_keys_follow_language_case() -> None:
    """Stored translation documents are keyed by the normalized language."""
    record = {
        "id": "p1",
        "name": "Demo",
        "target_languages": ["DE"],
        "translations": {"DE": {"greeting": "Hallo"}},
        "last_modified": TIMESTAMP,
    }

    project = Project.model_validate(record)
    shared = SharedProject.model_validate(
        {
            **record,
            "owner_id": "u1",
            "created_at": TIMESTAMP,
            "updated_at": TIMESTAMP,
        }
    )

    assert project.translations == {"de": {"greeting": "Hallo"}}
    assert shared.translations == {"de": {"greeting": "Hallo"}}


def test_key_node_keeps_whitespace() -> None:
    """Key names are stored exactly as they appear in the document."""
    node = KeyNode(name="title ", path=" menu.title ", is_leaf=True)

    assert node.name == "title "
    assert node.path == " menu.title "


def test_project_rejects_bad_timestamp() -> None:
    """Timestamps must be ISO-8601."""
    with pytest.raises(ValidationError):
        Project(id="p1", name="Demo", last_modified="yesterday")


def test_project_ref_kind() -> None:
    """References accept the store kind as a string."""
    assert ProjectRef(kind="shared", id="p1").kind == "shared"
    with pytest.raises(ValidationError):
        ProjectRef(kind="remote", id="p1")


def test_shared_update_leaves_unset_fields() -> None:
    """Unset update fields dump as None."""
    update = SharedProjectUpdate(name="Renamed")
    assert update.model_dump(exclude_none=True) == {"name": "Renamed"}


def test_editing_session_role_from_string() -> None:
    """Roles given as strings are accepted."""
    project = Project(id="p1", name="Demo", last_modified=TIMESTAMP)
    session = EditingSession(project=project, role="editor")
    assert session.role == ProjectRole.EDITOR


def test_role_ranking() -> None:
    """Owners outrank editors who outrank viewers."""
    assert role_at_least(ProjectRole.OWNER, ProjectRole.EDITOR)
    assert not role_at_least("viewer", "editor")
    assert can_edit("editor") and can_edit("owner")
    assert not can_edit("viewer")
    assert can_manage_invites("owner")
    assert not can_manage_invites("editor")


def test_invite_code_defaults() -> None:
    """Invite codes default to unlimited editor grants."""
    invite = _invite()
    assert invite.role == ProjectRole.EDITOR
    assert invite.max_uses is None
    assert invite.uses == 0


@pytest.mark.parametrize(
    "overrides",
    [
        {"code": "abcd2345"},
        {"code": "ABCD234"},
        {"role": "owner"},
        {"max_uses": 0},
        {"max_uses": 1, "uses": 2},
    ],
)
def test_invite_code_rejects_invalid(overrides: dict[str, object]) -> None:
    """Malformed codes, owner grants and over-used codes are rejected."""
    with pytest.raises(ValidationError):
        _invite(**overrides)


def test_membership_rejects_owner_role() -> None:
    """Ownership is never granted through a membership."""
    with pytest.raises(ValidationError):
        Membership(
            id="m1",
            project_id="p1",
            user_id="u1",
            role="owner",
            joined_at=TIMESTAMP,
        )


def test_identity_profile() -> None:
    """Only identities with an email have a profile."""
    assert Identity(user_id="u1", email="a@example.com").has_profile
    assert not Identity(user_id="u1").has_profile
