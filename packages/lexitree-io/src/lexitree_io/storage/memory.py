"""In-memory local project store."""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime

from lexitree_core.ports.storage import ProjectStoreProtocol
from lexitree_schemas.primitives import ProjectId
from lexitree_schemas.project import Project


class InMemoryProjectStore(ProjectStoreProtocol):
    """Project store that keeps deep copies of projects in memory."""

    def __init__(self, *, clock: Callable[[], datetime] | None = None) -> None:
        """Initialize the in-memory project store."""
        self._projects: dict[ProjectId, Project] = {}
        self._clock = clock or (lambda: datetime.now(UTC))

    async def save(self, project: Project) -> Project:
        """Store a copy of the project with a refreshed last_modified."""
        record = project.model_copy(
            update={"last_modified": self._clock().isoformat()}, deep=True
        )
        self._projects[record.id] = record
        return record.model_copy(deep=True)

    async def load(self, project_id: ProjectId) -> Project | None:
        """Return a copy of the stored project if present."""
        project = self._projects.get(project_id)
        return project.model_copy(deep=True) if project is not None else None

    async def list(self) -> list[Project]:
        """Return copies of every stored project."""
        return [project.model_copy(deep=True) for project in self._projects.values()]

    async def delete(self, project_id: ProjectId) -> None:
        """Remove a project if present."""
        self._projects.pop(project_id, None)
