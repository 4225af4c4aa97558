"""Protocol definitions and errors for project storage."""

from __future__ import annotations

from enum import StrEnum
from typing import Protocol, runtime_checkable

from pydantic import Field

from lexitree_schemas.base import BaseSchema
from lexitree_schemas.primitives import ProjectId
from lexitree_schemas.project import Project
from lexitree_schemas.responses import ErrorDetails, ErrorResponse


class StorageErrorCode(StrEnum):
    """Categorized error codes for storage operations."""

    NOT_FOUND = "not_found"
    IO_ERROR = "io_error"
    UNAVAILABLE = "unavailable"
    FORBIDDEN = "forbidden"
    CONFLICT = "conflict"
    DUPLICATE = "duplicate"
    SERIALIZATION_ERROR = "serialization_error"
    VALIDATION_ERROR = "validation_error"


class StorageErrorDetails(BaseSchema):
    """Detailed storage error context."""

    operation: str | None = Field(None, description="Storage operation name")
    project_id: ProjectId | None = Field(None, description="Project identifier")
    record_id: str | None = Field(None, description="Other record identifier")
    path: str | None = Field(None, description="Filesystem path")
    reason: str | None = Field(None, description="Additional error context")


class StorageErrorInfo(BaseSchema):
    """Structured storage error data."""

    code: StorageErrorCode = Field(..., description="Storage error code")
    message: str = Field(..., min_length=1, description="Error message")
    details: StorageErrorDetails | None = Field(None, description="Error details")

    def to_error_response(self) -> ErrorResponse:
        """Convert storage error info to the standard error response schema.

        Returns:
            ErrorResponse: Standard response error payload.
        """
        details: ErrorDetails | None = None
        if self.details is not None:
            details = ErrorDetails(
                field=self.details.operation,
                provided=self.details.path
                or self.details.project_id
                or self.details.record_id,
                valid_options=None,
            )
        return ErrorResponse(code=str(self.code), message=self.message, details=details)


class StorageError(Exception):
    """Storage error with structured details."""

    def __init__(self, info: StorageErrorInfo) -> None:
        """Initialize the storage error.

        Args:
            info: Structured storage error information.
        """
        super().__init__(info.message)
        self.info = info


def build_storage_error(
    code: StorageErrorCode,
    message: str,
    *,
    operation: str,
    project_id: str | None = None,
    record_id: str | None = None,
    path: str | None = None,
    reason: str | None = None,
) -> StorageError:
    """Build a storage error with operation context.

    Args:
        code: Storage error code.
        message: Human readable error message.
        operation: Storage operation that failed.
        project_id: Project involved, if any.
        record_id: Other record involved, if any.
        path: Filesystem path involved, if any.
        reason: Additional context, if any.

    Returns:
        StorageError: Error ready to raise.
    """
    return StorageError(
        StorageErrorInfo(
            code=code,
            message=message,
            details=StorageErrorDetails(
                operation=operation,
                project_id=project_id,
                record_id=record_id,
                path=path,
                reason=reason,
            ),
        )
    )


@runtime_checkable
class ProjectStoreProtocol(Protocol):
    """Protocol for the local single-user project store."""

    async def save(self, project: Project) -> Project:
        """Upsert a project, refreshing last_modified, and return the stored record."""
        raise NotImplementedError

    async def load(self, project_id: ProjectId) -> Project | None:
        """Load a project if present."""
        raise NotImplementedError

    async def list(self) -> list[Project]:
        """List every stored project in no particular order."""
        raise NotImplementedError

    async def delete(self, project_id: ProjectId) -> None:
        """Delete a project; deleting an absent project is a no-op."""
        raise NotImplementedError
