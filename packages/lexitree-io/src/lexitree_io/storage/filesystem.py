"""Filesystem-backed local project store."""

from __future__ import annotations

import asyncio
import os
from collections.abc import Callable
from datetime import UTC, datetime
from json import JSONDecodeError
from pathlib import Path

from pydantic import ValidationError

from lexitree_core.ports.storage import (
    ProjectStoreProtocol,
    StorageError,
    StorageErrorCode,
    StorageErrorDetails,
    StorageErrorInfo,
)
from lexitree_schemas.base import BaseSchema
from lexitree_schemas.primitives import ProjectId
from lexitree_schemas.project import Project

_TEMP_SUFFIX = ".tmp"


def _utc_now() -> datetime:
    return datetime.now(UTC)


class FileSystemProjectStore(ProjectStoreProtocol):
    """Project store keeping one JSON file per project.

    Each save is written to a temporary file and moved into place, so a
    record on disk is always either the previous or the new version.
    """

    def __init__(
        self, base_dir: str | Path, *, clock: Callable[[], datetime] | None = None
    ) -> None:
        """Initialize the project store.

        Args:
            base_dir: Data directory; projects live in ``<base_dir>/projects``.
            clock: Optional clock used for ``last_modified``.
        """
        self._base_dir = Path(base_dir)
        self._projects_dir = self._base_dir / "projects"
        self._clock = clock or _utc_now

    async def save(self, project: Project) -> Project:
        """Persist a project, refreshing its last_modified timestamp.

        Returns:
            Project: Stored record.

        Raises:
            StorageError: If the record cannot be written.
        """
        path = self._project_path(project.id, "save")
        record = project.model_copy(
            update={"last_modified": self._clock().isoformat()}
        )
        try:
            await asyncio.to_thread(_write_json_atomic, path, record)
        except OSError as exc:
            raise StorageError(
                StorageErrorInfo(
                    code=StorageErrorCode.IO_ERROR,
                    message=str(exc),
                    details=StorageErrorDetails(
                        operation="save", project_id=project.id, path=str(path)
                    ),
                )
            ) from exc
        return record

    async def load(self, project_id: ProjectId) -> Project | None:
        """Load a project if present.

        Returns:
            Project | None: Stored project if available.

        Raises:
            StorageError: If the record cannot be read or parsed.
        """
        path = self._project_path(project_id, "load")
        if not await asyncio.to_thread(path.exists):
            return None
        try:
            return await asyncio.to_thread(_read_project, path)
        except (ValidationError, JSONDecodeError, ValueError) as exc:
            raise StorageError(
                _build_record_parse_error_info(
                    operation="load", project_id=project_id, path=path, exc=exc
                )
            ) from exc
        except OSError as exc:
            raise StorageError(
                StorageErrorInfo(
                    code=StorageErrorCode.IO_ERROR,
                    message=str(exc),
                    details=StorageErrorDetails(
                        operation="load", project_id=project_id, path=str(path)
                    ),
                )
            ) from exc

    async def list(self) -> list[Project]:
        """List every stored project.

        Returns:
            list[Project]: Stored projects in no particular order.

        Raises:
            StorageError: If a record cannot be read or parsed.
        """
        try:
            paths = await asyncio.to_thread(_list_project_paths, self._projects_dir)
        except OSError as exc:
            raise StorageError(
                StorageErrorInfo(
                    code=StorageErrorCode.IO_ERROR,
                    message=str(exc),
                    details=StorageErrorDetails(
                        operation="list", path=str(self._projects_dir)
                    ),
                )
            ) from exc
        projects: list[Project] = []
        for path in paths:
            project = await self.load(path.stem)
            if project is not None:
                projects.append(project)
        return projects

    async def delete(self, project_id: ProjectId) -> None:
        """Delete a project; absent projects are ignored.

        Raises:
            StorageError: If the record exists but cannot be removed.
        """
        path = self._project_path(project_id, "delete")
        try:
            await asyncio.to_thread(path.unlink, True)
        except OSError as exc:
            raise StorageError(
                StorageErrorInfo(
                    code=StorageErrorCode.IO_ERROR,
                    message=str(exc),
                    details=StorageErrorDetails(
                        operation="delete", project_id=project_id, path=str(path)
                    ),
                )
            ) from exc

    def _project_path(self, project_id: ProjectId, operation: str) -> Path:
        if (
            not project_id
            or project_id.startswith(".")
            or "/" in project_id
            or "\\" in project_id
        ):
            raise StorageError(
                StorageErrorInfo(
                    code=StorageErrorCode.VALIDATION_ERROR,
                    message=f"Invalid project id: {project_id!r}",
                    details=StorageErrorDetails(
                        operation=operation, project_id=project_id or None
                    ),
                )
            )
        return self._projects_dir / f"{project_id}.json"


def _write_json_atomic(path: Path, payload: BaseSchema) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    temp_path = path.with_name(path.name + _TEMP_SUFFIX)
    temp_path.write_text(payload.model_dump_json(indent=2), encoding="utf-8")
    os.replace(temp_path, path)


def _read_project(path: Path) -> Project:
    payload = path.read_text(encoding="utf-8")
    return Project.model_validate_json(payload)


def _list_project_paths(projects_dir: Path) -> list[Path]:
    if not projects_dir.exists():
        return []
    return sorted(projects_dir.glob("*.json"))


def _is_json_validation_error(exc: ValidationError) -> bool:
    for error in exc.errors():
        error_type = str(error.get("type", ""))
        if error_type.startswith("json_"):
            return True
    return False


def _build_record_parse_error_info(
    *,
    operation: str,
    project_id: ProjectId,
    path: Path,
    exc: Exception,
) -> StorageErrorInfo:
    code = StorageErrorCode.VALIDATION_ERROR
    message = "Project record failed schema validation"
    if isinstance(exc, ValidationError):
        if _is_json_validation_error(exc):
            code = StorageErrorCode.SERIALIZATION_ERROR
            message = "Project record JSON could not be parsed"
    elif isinstance(exc, (JSONDecodeError, ValueError)):
        code = StorageErrorCode.SERIALIZATION_ERROR
        message = "Project record JSON could not be parsed"
    return StorageErrorInfo(
        code=code,
        message=message,
        details=StorageErrorDetails(
            operation=operation,
            project_id=project_id,
            path=str(path),
            reason=str(exc),
        ),
    )
