"""lexitree-io: storage, shared store and translation adapters."""

from lexitree_io.shared import InMemorySharedStore, SqliteSharedStore
from lexitree_io.storage import (
    CompositeLogSink,
    ConsoleLogSink,
    FileLogSink,
    FileSystemIdentityProvider,
    FileSystemProjectStore,
    InMemoryLogSink,
    InMemoryProjectStore,
    NoopLogSink,
    build_log_sink,
)
from lexitree_io.translation import AzureTranslator

__version__ = "0.1.0"

__all__ = [
    "AzureTranslator",
    "CompositeLogSink",
    "ConsoleLogSink",
    "FileLogSink",
    "FileSystemIdentityProvider",
    "FileSystemProjectStore",
    "InMemoryLogSink",
    "InMemoryProjectStore",
    "InMemorySharedStore",
    "NoopLogSink",
    "SqliteSharedStore",
    "build_log_sink",
]
