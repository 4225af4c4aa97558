"""Protocol definition for the identity provider."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from lexitree_schemas.identity import Identity


@runtime_checkable
class IdentityProviderProtocol(Protocol):
    """Protocol for resolving the current caller identity."""

    async def get_identity(self) -> Identity:
        """Return the current identity, creating a user id on first use."""
        raise NotImplementedError

    async def has_profile(self) -> bool:
        """Return whether a profile (email) has been recorded."""
        raise NotImplementedError
