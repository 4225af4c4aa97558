"""Shared multi-user store adapters."""

from lexitree_io.shared.memory import InMemorySharedStore
from lexitree_io.shared.sqlite import SqliteSharedStore

__all__ = ["InMemorySharedStore", "SqliteSharedStore"]
