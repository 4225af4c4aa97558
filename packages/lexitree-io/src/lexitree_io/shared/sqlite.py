"""SQLite-backed shared store adapter."""

from __future__ import annotations

import asyncio
import json
import logging
import sqlite3
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from pathlib import Path
from uuid import uuid4

import aiosqlite
import anyio

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

logger = logging.getLogger(__name__)

DEFAULT_BUSY_TIMEOUT_MS = 5000

SCHEMA = """
CREATE TABLE IF NOT EXISTS users (
    id TEXT PRIMARY KEY,
    email TEXT NOT NULL UNIQUE,
    name TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS projects (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    master_language TEXT NOT NULL DEFAULT 'en',
    target_languages TEXT NOT NULL DEFAULT '[]',
    master_data TEXT NOT NULL DEFAULT '{}',
    translations TEXT NOT NULL DEFAULT '{}',
    version INTEGER NOT NULL DEFAULT 1,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    owner_id TEXT NOT NULL REFERENCES users (id) ON DELETE CASCADE
);
CREATE TABLE IF NOT EXISTS project_members (
    id TEXT PRIMARY KEY,
    role TEXT NOT NULL DEFAULT 'editor',
    joined_at TEXT NOT NULL,
    user_id TEXT NOT NULL REFERENCES users (id) ON DELETE CASCADE,
    project_id TEXT NOT NULL REFERENCES projects (id) ON DELETE CASCADE,
    UNIQUE (user_id, project_id)
);
CREATE TABLE IF NOT EXISTS invite_codes (
    id TEXT PRIMARY KEY,
    code TEXT NOT NULL UNIQUE,
    role TEXT NOT NULL DEFAULT 'editor',
    max_uses INTEGER,
    uses INTEGER NOT NULL DEFAULT 0,
    expires_at TEXT,
    created_at TEXT NOT NULL,
    created_by_id TEXT NOT NULL REFERENCES users (id) ON DELETE CASCADE,
    project_id TEXT NOT NULL REFERENCES projects (id) ON DELETE CASCADE
);
CREATE INDEX IF NOT EXISTS projects_owner_idx ON projects (owner_id);
CREATE INDEX IF NOT EXISTS project_members_project_idx ON project_members (project_id);
CREATE INDEX IF NOT EXISTS invite_codes_project_idx ON invite_codes (project_id);
"""

_PROJECT_COLUMNS = (
    "p.id, p.name, p.master_language, p.target_languages, p.master_data, "
    "p.translations, p.version, p.created_at, p.updated_at, p.owner_id"
)
_VISIBLE_TO_USER = (
    "(p.owner_id = ? OR EXISTS (SELECT 1 FROM project_members m "
    "WHERE m.project_id = p.id AND m.user_id = ?))"
)


class SqliteSharedStore(SharedStoreProtocol):
    """Shared store backed by a SQLite database file.

    Every operation opens its own connection. Writes run inside
    ``BEGIN IMMEDIATE`` transactions, so concurrent writers (tasks or
    processes) are serialised by SQLite's write lock.
    """

    def __init__(
        self,
        db_path: str | Path,
        *,
        clock: Callable[[], datetime] | None = None,
        busy_timeout_ms: int = DEFAULT_BUSY_TIMEOUT_MS,
    ) -> None:
        """Initialize the SQLite shared store.

        Args:
            db_path: Database file path; created on first use.
            clock: Optional clock for record timestamps.
            busy_timeout_ms: How long to wait for SQLite's write lock.
        """
        self._db_path = Path(db_path)
        self._clock = clock or (lambda: datetime.now(UTC))
        self._busy_timeout_ms = busy_timeout_ms
        self._initialized = False
        self._init_lock = asyncio.Lock()

    async def initialize(self) -> None:
        """Create the database file and tables if needed.

        Raises:
            StorageError: If the database cannot be created.
        """
        async with self._init_lock:
            if self._initialized:
                return
            try:
                await anyio.Path(self._db_path.parent).mkdir(
                    parents=True, exist_ok=True
                )
            except OSError as exc:
                raise build_storage_error(
                    StorageErrorCode.IO_ERROR,
                    str(exc),
                    operation="initialize",
                    path=str(self._db_path),
                ) from exc
            async with self._connect("initialize") as conn:
                await conn.executescript(SCHEMA)
            self._initialized = True

    async def ensure_user(self, identity: Identity) -> UserProfile:
        """Get or create the user row for an identity.

        Raises:
            StorageError: ``validation_error`` when creating without an email,
                ``duplicate`` when the email belongs to another user.
        """
        now = self._now()
        async with self._transaction("ensure_user") as conn:
            row = await _fetch_one(
                conn, "SELECT * FROM users WHERE id = ?", (identity.user_id,)
            )
            try:
                if row is None:
                    if identity.email is None:
                        raise build_storage_error(
                            StorageErrorCode.VALIDATION_ERROR,
                            "An email is required to create a user",
                            operation="ensure_user",
                            record_id=identity.user_id,
                        )
                    await conn.execute(
                        "INSERT INTO users (id, email, name, created_at, updated_at) "
                        "VALUES (?, ?, ?, ?, ?)",
                        (identity.user_id, identity.email, identity.name, now, now),
                    )
                elif _profile_changed(identity, row):
                    await conn.execute(
                        "UPDATE users SET email = ?, name = ?, updated_at = ? "
                        "WHERE id = ?",
                        (
                            identity.email or row["email"],
                            identity.name or row["name"],
                            now,
                            identity.user_id,
                        ),
                    )
            except sqlite3.IntegrityError as exc:
                raise build_storage_error(
                    StorageErrorCode.DUPLICATE,
                    "Email is already registered to another user",
                    operation="ensure_user",
                    record_id=identity.user_id,
                    reason=str(exc),
                ) from exc
            row = await _fetch_one(
                conn, "SELECT * FROM users WHERE id = ?", (identity.user_id,)
            )
        return _user_from_row(row)

    async def create_project(
        self, draft: SharedProjectDraft, owner_id: UserId
    ) -> SharedProject:
        """Create a shared project owned by an existing user.

        Raises:
            StorageError: ``not_found`` for an unknown owner, ``duplicate``
                when the requested id is taken.
        """
        project_id = draft.id or str(uuid4())
        now = self._now()
        async with self._transaction("create_project") as conn:
            owner = await _fetch_one(
                conn, "SELECT id FROM users WHERE id = ?", (owner_id,)
            )
            if owner is None:
                raise build_storage_error(
                    StorageErrorCode.NOT_FOUND,
                    "Owner user does not exist",
                    operation="create_project",
                    record_id=owner_id,
                )
            try:
                await conn.execute(
                    "INSERT INTO projects (id, name, master_language, "
                    "target_languages, master_data, translations, version, "
                    "created_at, updated_at, owner_id) "
                    "VALUES (?, ?, ?, ?, ?, ?, 1, ?, ?, ?)",
                    (
                        project_id,
                        draft.name,
                        draft.master_language,
                        _dump_json(draft.target_languages),
                        _dump_json(draft.master_data),
                        _dump_json(draft.translations),
                        now,
                        now,
                        owner_id,
                    ),
                )
            except sqlite3.IntegrityError as exc:
                raise build_storage_error(
                    StorageErrorCode.DUPLICATE,
                    "A shared project with this id already exists",
                    operation="create_project",
                    project_id=project_id,
                    reason=str(exc),
                ) from exc
            project = await self._load_project(conn, project_id)
        if project is None:
            raise build_storage_error(
                StorageErrorCode.NOT_FOUND,
                "Shared project vanished after creation",
                operation="create_project",
                project_id=project_id,
            )
        return project

    async def get_project(
        self, project_id: ProjectId, user_id: UserId
    ) -> SharedProject | None:
        """Fetch a project if the user owns it or is a member."""
        async with self._read("get_project") as conn:
            row = await _fetch_one(
                conn,
                f"SELECT {_PROJECT_COLUMNS} FROM projects p "
                f"WHERE p.id = ? AND {_VISIBLE_TO_USER}",
                (project_id, user_id, user_id),
            )
            if row is None:
                return None
            return await self._project_from_row(conn, row)

    async def list_projects(self, user_id: UserId) -> list[SharedProject]:
        """List visible projects, most recently updated first."""
        async with self._read("list_projects") as conn:
            rows = await _fetch_all(
                conn,
                f"SELECT {_PROJECT_COLUMNS} FROM projects p "
                f"WHERE {_VISIBLE_TO_USER} ORDER BY p.updated_at DESC",
                (user_id, user_id),
            )
            return [await self._project_from_row(conn, row) for row in rows]

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
        async with self._transaction("update_project") as conn:
            row = await _fetch_one(
                conn,
                "SELECT p.owner_id, p.version, m.role FROM projects p "
                "LEFT JOIN project_members m "
                "ON m.project_id = p.id AND m.user_id = ? WHERE p.id = ?",
                (user_id, project_id),
            )
            if row is None or (row["owner_id"] != user_id and row["role"] is None):
                raise build_storage_error(
                    StorageErrorCode.NOT_FOUND,
                    "Shared project not found",
                    operation="update_project",
                    project_id=project_id,
                )
            if row["owner_id"] != user_id and row["role"] == ProjectRole.VIEWER:
                raise build_storage_error(
                    StorageErrorCode.FORBIDDEN,
                    "Viewers cannot modify this project",
                    operation="update_project",
                    project_id=project_id,
                )
            if expected_version is not None and expected_version != row["version"]:
                raise build_storage_error(
                    StorageErrorCode.CONFLICT,
                    "Shared project was modified by someone else",
                    operation="update_project",
                    project_id=project_id,
                    reason=(
                        f"expected version {expected_version}, found {row['version']}"
                    ),
                )
            assignments = ["updated_at = ?", "version = version + 1"]
            params: list[object] = [self._now()]
            for column, value in _update_columns(update):
                assignments.append(f"{column} = ?")
                params.append(value)
            params.append(project_id)
            await conn.execute(
                f"UPDATE projects SET {', '.join(assignments)} WHERE id = ?",
                params,
            )
            project = await self._load_project(conn, project_id)
        if project is None:
            raise build_storage_error(
                StorageErrorCode.NOT_FOUND,
                "Shared project not found",
                operation="update_project",
                project_id=project_id,
            )
        return project

    async def delete_project(self, project_id: ProjectId, user_id: UserId) -> None:
        """Delete a project with its memberships and invite codes (owner only).

        Raises:
            StorageError: ``not_found`` or ``forbidden``.
        """
        async with self._transaction("delete_project") as conn:
            row = await _fetch_one(
                conn, "SELECT owner_id FROM projects WHERE id = ?", (project_id,)
            )
            if row is None:
                raise build_storage_error(
                    StorageErrorCode.NOT_FOUND,
                    "Shared project not found",
                    operation="delete_project",
                    project_id=project_id,
                )
            if row["owner_id"] != user_id:
                raise build_storage_error(
                    StorageErrorCode.FORBIDDEN,
                    "Only the owner can delete this project",
                    operation="delete_project",
                    project_id=project_id,
                )
            await conn.execute("DELETE FROM projects WHERE id = ?", (project_id,))

    async def get_project_owner_id(self, project_id: ProjectId) -> UserId | None:
        """Return the owner of a project, or None if it does not exist."""
        async with self._read("get_project_owner_id") as conn:
            row = await _fetch_one(
                conn, "SELECT owner_id FROM projects WHERE id = ?", (project_id,)
            )
        return row["owner_id"] if row is not None else None

    async def code_exists(self, code: str) -> bool:
        """Return whether an invite code value is taken."""
        async with self._read("code_exists") as conn:
            row = await _fetch_one(
                conn, "SELECT 1 FROM invite_codes WHERE code = ?", (code,)
            )
        return row is not None

    async def create_invite_code(self, invite: InviteCode) -> InviteCode:
        """Insert an invite code record.

        Raises:
            StorageError: ``not_found`` for an unknown project or creator,
                ``duplicate`` when the code is taken.
        """
        async with self._transaction("create_invite_code") as conn:
            project = await _fetch_one(
                conn, "SELECT id FROM projects WHERE id = ?", (invite.project_id,)
            )
            if project is None:
                raise build_storage_error(
                    StorageErrorCode.NOT_FOUND,
                    "Shared project not found",
                    operation="create_invite_code",
                    project_id=invite.project_id,
                )
            try:
                await conn.execute(
                    "INSERT INTO invite_codes (id, code, role, max_uses, uses, "
                    "expires_at, created_at, created_by_id, project_id) "
                    "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                    (
                        invite.id,
                        invite.code,
                        str(invite.role),
                        invite.max_uses,
                        invite.uses,
                        invite.expires_at,
                        invite.created_at,
                        invite.created_by_id,
                        invite.project_id,
                    ),
                )
            except sqlite3.IntegrityError as exc:
                code = (
                    StorageErrorCode.DUPLICATE
                    if "UNIQUE" in str(exc)
                    else StorageErrorCode.NOT_FOUND
                )
                raise build_storage_error(
                    code,
                    "Invite code could not be stored",
                    operation="create_invite_code",
                    project_id=invite.project_id,
                    reason=str(exc),
                ) from exc
        return invite.model_copy()

    async def find_invite_code(self, code: str) -> InviteCode | None:
        """Look up an invite code by value."""
        async with self._read("find_invite_code") as conn:
            row = await _fetch_one(
                conn, "SELECT * FROM invite_codes WHERE code = ?", (code,)
            )
        return _invite_from_row(row) if row is not None else None

    async def list_invite_codes(self, project_id: ProjectId) -> list[InviteCode]:
        """List a project's invite codes, newest first."""
        async with self._read("list_invite_codes") as conn:
            rows = await _fetch_all(
                conn,
                "SELECT * FROM invite_codes WHERE project_id = ? "
                "ORDER BY created_at DESC",
                (project_id,),
            )
        return [_invite_from_row(row) for row in rows]

    async def delete_invite_code(
        self, project_id: ProjectId, invite_id: RecordId
    ) -> None:
        """Delete an invite code of a project.

        Raises:
            StorageError: ``not_found`` when the project has no such code.
        """
        async with self._transaction("delete_invite_code") as conn:
            cursor = await conn.execute(
                "DELETE FROM invite_codes WHERE id = ? AND project_id = ?",
                (invite_id, project_id),
            )
            deleted = cursor.rowcount
            await cursor.close()
            if deleted == 0:
                raise build_storage_error(
                    StorageErrorCode.NOT_FOUND,
                    "Invite code not found",
                    operation="delete_invite_code",
                    project_id=project_id,
                    record_id=invite_id,
                )

    async def find_membership(
        self, user_id: UserId, project_id: ProjectId
    ) -> Membership | None:
        """Look up the membership of a user on a project."""
        async with self._read("find_membership") as conn:
            row = await _fetch_one(
                conn,
                "SELECT * FROM project_members WHERE user_id = ? AND project_id = ?",
                (user_id, project_id),
            )
        return _membership_from_row(row) if row is not None else None

    async def redeem_invite_code(
        self, invite_id: RecordId, user_id: UserId, expected_uses: int
    ) -> Membership:
        """Consume one use of an invite code and create the membership.

        The conditional increment and the membership insert share one
        transaction; any failure rolls both back.

        Raises:
            StorageError: ``not_found`` for an unknown code or user,
                ``conflict`` when the use counter moved or hit its limit,
                ``duplicate`` when the membership already exists.
        """
        async with self._transaction("redeem_invite_code") as conn:
            invite_row = await _fetch_one(
                conn, "SELECT * FROM invite_codes WHERE id = ?", (invite_id,)
            )
            if invite_row is None:
                raise build_storage_error(
                    StorageErrorCode.NOT_FOUND,
                    "Invite code not found",
                    operation="redeem_invite_code",
                    record_id=invite_id,
                )
            cursor = await conn.execute(
                "UPDATE invite_codes SET uses = uses + 1 "
                "WHERE id = ? AND uses = ? AND (max_uses IS NULL OR uses < max_uses)",
                (invite_id, expected_uses),
            )
            updated = cursor.rowcount
            await cursor.close()
            if updated != 1:
                raise build_storage_error(
                    StorageErrorCode.CONFLICT,
                    "Invite code use count changed",
                    operation="redeem_invite_code",
                    project_id=invite_row["project_id"],
                    record_id=invite_id,
                )
            membership = Membership(
                id=str(uuid4()),
                project_id=invite_row["project_id"],
                user_id=user_id,
                role=invite_row["role"],
                joined_at=self._now(),
            )
            try:
                await conn.execute(
                    "INSERT INTO project_members (id, role, joined_at, user_id, "
                    "project_id) VALUES (?, ?, ?, ?, ?)",
                    (
                        membership.id,
                        str(membership.role),
                        membership.joined_at,
                        membership.user_id,
                        membership.project_id,
                    ),
                )
            except sqlite3.IntegrityError as exc:
                code = (
                    StorageErrorCode.DUPLICATE
                    if "UNIQUE" in str(exc)
                    else StorageErrorCode.NOT_FOUND
                )
                raise build_storage_error(
                    code,
                    "Membership could not be created",
                    operation="redeem_invite_code",
                    project_id=membership.project_id,
                    reason=str(exc),
                ) from exc
        return membership

    @asynccontextmanager
    async def _connect(self, operation: str) -> AsyncIterator[aiosqlite.Connection]:
        try:
            async with aiosqlite.connect(
                self._db_path, isolation_level=None
            ) as conn:
                conn.row_factory = aiosqlite.Row
                await conn.execute("PRAGMA foreign_keys = ON")
                await conn.execute(f"PRAGMA busy_timeout = {self._busy_timeout_ms:d}")
                yield conn
        except sqlite3.OperationalError as exc:
            logger.warning("Shared store %s failed: %s", operation, exc)
            raise build_storage_error(
                StorageErrorCode.UNAVAILABLE,
                "Shared store is unavailable",
                operation=operation,
                path=str(self._db_path),
                reason=str(exc),
            ) from exc
        except sqlite3.DatabaseError as exc:
            raise build_storage_error(
                StorageErrorCode.IO_ERROR,
                str(exc),
                operation=operation,
                path=str(self._db_path),
            ) from exc

    @asynccontextmanager
    async def _read(self, operation: str) -> AsyncIterator[aiosqlite.Connection]:
        await self.initialize()
        async with self._connect(operation) as conn:
            yield conn

    @asynccontextmanager
    async def _transaction(
        self, operation: str
    ) -> AsyncIterator[aiosqlite.Connection]:
        await self.initialize()
        async with self._connect(operation) as conn:
            await conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
            except BaseException:
                await conn.execute("ROLLBACK")
                raise
            await conn.execute("COMMIT")

    async def _load_project(
        self, conn: aiosqlite.Connection, project_id: ProjectId
    ) -> SharedProject | None:
        row = await _fetch_one(
            conn,
            f"SELECT {_PROJECT_COLUMNS} FROM projects p WHERE p.id = ?",
            (project_id,),
        )
        if row is None:
            return None
        return await self._project_from_row(conn, row)

    async def _project_from_row(
        self, conn: aiosqlite.Connection, row: aiosqlite.Row
    ) -> SharedProject:
        member_rows = await _fetch_all(
            conn,
            "SELECT m.user_id, m.role, u.email, u.name FROM project_members m "
            "JOIN users u ON u.id = m.user_id WHERE m.project_id = ? "
            "ORDER BY m.joined_at",
            (row["id"],),
        )
        try:
            return SharedProject(
                id=row["id"],
                name=row["name"],
                master_language=row["master_language"],
                target_languages=json.loads(row["target_languages"]),
                master_data=json.loads(row["master_data"]),
                translations=json.loads(row["translations"]),
                owner_id=row["owner_id"],
                members=[
                    MemberSummary(
                        user_id=member["user_id"],
                        role=member["role"],
                        email=member["email"],
                        name=member["name"],
                    )
                    for member in member_rows
                ],
                created_at=row["created_at"],
                updated_at=row["updated_at"],
                version=row["version"],
            )
        except ValueError as exc:
            raise build_storage_error(
                StorageErrorCode.SERIALIZATION_ERROR,
                "Shared project record could not be parsed",
                operation="load_project",
                project_id=row["id"],
                reason=str(exc),
            ) from exc

    def _now(self) -> str:
        return self._clock().isoformat()


async def _fetch_one(
    conn: aiosqlite.Connection, query: str, params: tuple[object, ...]
) -> aiosqlite.Row | None:
    async with conn.execute(query, params) as cursor:
        return await cursor.fetchone()


async def _fetch_all(
    conn: aiosqlite.Connection, query: str, params: tuple[object, ...]
) -> list[aiosqlite.Row]:
    async with conn.execute(query, params) as cursor:
        return list(await cursor.fetchall())


def _dump_json(value: object) -> str:
    return json.dumps(value, ensure_ascii=False)


def _update_columns(update: SharedProjectUpdate) -> list[tuple[str, object]]:
    columns: list[tuple[str, object]] = []
    if update.name is not None:
        columns.append(("name", update.name))
    if update.master_language is not None:
        columns.append(("master_language", update.master_language))
    if update.target_languages is not None:
        columns.append(("target_languages", _dump_json(update.target_languages)))
    if update.master_data is not None:
        columns.append(("master_data", _dump_json(update.master_data)))
    if update.translations is not None:
        columns.append(("translations", _dump_json(update.translations)))
    return columns


def _user_from_row(row: aiosqlite.Row | None) -> UserProfile:
    if row is None:
        raise build_storage_error(
            StorageErrorCode.NOT_FOUND,
            "User row missing after write",
            operation="ensure_user",
        )
    return UserProfile(
        id=row["id"],
        email=row["email"],
        name=row["name"],
        created_at=row["created_at"],
    )


def _invite_from_row(row: aiosqlite.Row) -> InviteCode:
    return InviteCode(
        id=row["id"],
        code=row["code"],
        role=row["role"],
        max_uses=row["max_uses"],
        uses=row["uses"],
        expires_at=row["expires_at"],
        project_id=row["project_id"],
        created_by_id=row["created_by_id"],
        created_at=row["created_at"],
    )


def _membership_from_row(row: aiosqlite.Row) -> Membership:
    return Membership(
        id=row["id"],
        project_id=row["project_id"],
        user_id=row["user_id"],
        role=row["role"],
        joined_at=row["joined_at"],
    )


def _profile_changed(identity: Identity, row: aiosqlite.Row) -> bool:
    if identity.email is not None and identity.email != row["email"]:
        return True
    return identity.name is not None and identity.name != row["name"]
