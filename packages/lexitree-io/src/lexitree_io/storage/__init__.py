"""Local storage adapters: projects, identity and event logs."""

from lexitree_io.storage.filesystem import FileSystemProjectStore
from lexitree_io.storage.identity import FileSystemIdentityProvider
from lexitree_io.storage.log_sink import (
    CompositeLogSink,
    ConsoleLogSink,
    FileLogSink,
    InMemoryLogSink,
    NoopLogSink,
    build_log_sink,
)
from lexitree_io.storage.memory import InMemoryProjectStore

__all__ = [
    "CompositeLogSink",
    "ConsoleLogSink",
    "FileLogSink",
    "FileSystemIdentityProvider",
    "FileSystemProjectStore",
    "InMemoryLogSink",
    "InMemoryProjectStore",
    "NoopLogSink",
    "build_log_sink",
]
