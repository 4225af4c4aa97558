"""Unit tests for structured log entries and their builders."""

from lexitree_core.ports.membership import (
    MembershipErrorCode,
    MembershipErrorInfo,
    build_join_rejected_log,
)
from lexitree_core.ports.sync import build_persisted_log, build_promoted_log
from lexitree_schemas.events import MembershipEvent, SyncEvent
from lexitree_schemas.logs import LogEntry
from lexitree_schemas.primitives import LogLevel, ProjectRole

TIMESTAMP = "2026-01-26T00:00:00+00:00"


def test_log_entry_accepts_nested_json_data() -> None:
    """Log entries accept nested JSON-serializable data."""
    entry = LogEntry(
        timestamp=TIMESTAMP,
        level=LogLevel.INFO,
        event=SyncEvent.LOADED,
        project_id="project-1",
        message="Project loaded",
        data={"stats": {"count": 3, "items": [1, "two", True]}},
    )

    restored = LogEntry.model_validate_json(entry.model_dump_json())

    assert restored.event == "project_loaded"
    assert restored.data == {"stats": {"count": 3, "items": [1, "two", True]}}


def test_promoted_log() -> None:
    """Promotion entries carry both ids and the owner."""
    entry = build_promoted_log(TIMESTAMP, "project-1", "project-1", "user-1")

    assert entry.event == SyncEvent.PROMOTED
    assert entry.project_id == "project-1"
    assert entry.data == {
        "local_project_id": "project-1",
        "shared_project_id": "project-1",
        "owner_id": "user-1",
    }


def test_persisted_log_for_viewer() -> None:
    """A skipped shared write is reported as its own event."""
    entry = build_persisted_log(
        TIMESTAMP,
        "project-1",
        ProjectRole.VIEWER,
        False,
        shared_project_id="project-1",
    )

    assert entry.event == SyncEvent.SHARED_WRITE_SKIPPED
    assert entry.data == {
        "role": "viewer",
        "shared_written": False,
        "shared_project_id": "project-1",
    }


def test_persisted_log_for_local_project() -> None:
    """Local-only persists omit the shared fields."""
    entry = build_persisted_log(TIMESTAMP, "project-1", ProjectRole.OWNER, False)

    assert entry.event == SyncEvent.PERSISTED
    assert entry.data == {"role": "owner", "shared_written": False}


def test_join_rejected_log() -> None:
    """Rejected joins record the user and the error code."""
    entry = build_join_rejected_log(
        TIMESTAMP,
        "user-2",
        MembershipErrorInfo(
            code=MembershipErrorCode.CODE_EXPIRED,
            message="Invite code has expired",
        ),
    )

    assert entry.event == MembershipEvent.JOIN_REJECTED
    assert entry.level == LogLevel.WARN
    assert entry.data is not None
    assert entry.data["error_code"] == "code_expired"
