"""Filesystem-backed identity provider."""

from __future__ import annotations

import asyncio
import os
from json import JSONDecodeError
from pathlib import Path
from uuid import uuid4

from pydantic import ValidationError

from lexitree_core.ports.identity import IdentityProviderProtocol
from lexitree_core.ports.storage import (
    StorageError,
    StorageErrorCode,
    StorageErrorDetails,
    StorageErrorInfo,
)
from lexitree_schemas.identity import Identity


class FileSystemIdentityProvider(IdentityProviderProtocol):
    """Identity provider persisting the local profile as a JSON file.

    A user id is generated on first use; the profile (email and name) is
    recorded separately with ``set_profile``.
    """

    def __init__(self, path: str | Path) -> None:
        """Initialize the identity provider.

        Args:
            path: Location of the profile JSON file.
        """
        self._path = Path(path)
        self._lock = asyncio.Lock()

    async def get_identity(self) -> Identity:
        """Return the stored identity, creating a user id on first use.

        Raises:
            StorageError: If the profile file cannot be read or written.
        """
        async with self._lock:
            identity = await self._read()
            if identity is None:
                identity = Identity(user_id=str(uuid4()))
                await self._write(identity)
            return identity

    async def has_profile(self) -> bool:
        """Return whether an email has been recorded."""
        identity = await self.get_identity()
        return identity.has_profile

    async def set_profile(self, email: str, name: str | None = None) -> Identity:
        """Record the profile email and display name.

        Returns:
            Identity: Updated identity.

        Raises:
            StorageError: If the profile file cannot be written.
        """
        current = await self.get_identity()
        async with self._lock:
            updated = Identity(
                user_id=current.user_id, email=email, name=name or None
            )
            await self._write(updated)
            return updated

    async def _read(self) -> Identity | None:
        if not await asyncio.to_thread(self._path.exists):
            return None
        try:
            payload = await asyncio.to_thread(self._path.read_text, "utf-8")
            return Identity.model_validate_json(payload)
        except (ValidationError, JSONDecodeError, ValueError) as exc:
            raise StorageError(
                StorageErrorInfo(
                    code=StorageErrorCode.SERIALIZATION_ERROR,
                    message="Profile file could not be parsed",
                    details=StorageErrorDetails(
                        operation="get_identity",
                        path=str(self._path),
                        reason=str(exc),
                    ),
                )
            ) from exc
        except OSError as exc:
            raise _io_error("get_identity", self._path, exc) from exc

    async def _write(self, identity: Identity) -> None:
        try:
            await asyncio.to_thread(_write_identity, self._path, identity)
        except OSError as exc:
            raise _io_error("set_profile", self._path, exc) from exc


def _write_identity(path: Path, identity: Identity) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    temp_path = path.with_name(path.name + ".tmp")
    temp_path.write_text(identity.model_dump_json(indent=2), encoding="utf-8")
    os.replace(temp_path, path)


def _io_error(operation: str, path: Path, exc: OSError) -> StorageError:
    return StorageError(
        StorageErrorInfo(
            code=StorageErrorCode.IO_ERROR,
            message=str(exc),
            details=StorageErrorDetails(operation=operation, path=str(path)),
        )
    )
