"""Port protocols and errors for lexitree adapters."""

from lexitree_core.ports.identity import IdentityProviderProtocol
from lexitree_core.ports.membership import (
    MembershipError,
    MembershipErrorCode,
    MembershipErrorDetails,
    MembershipErrorInfo,
)
from lexitree_core.ports.observability import LogSinkProtocol
from lexitree_core.ports.shared import SharedStoreProtocol
from lexitree_core.ports.storage import (
    ProjectStoreProtocol,
    StorageError,
    StorageErrorCode,
    StorageErrorDetails,
    StorageErrorInfo,
    build_storage_error,
)
from lexitree_core.ports.sync import (
    SyncError,
    SyncErrorCode,
    SyncErrorDetails,
    SyncErrorInfo,
)
from lexitree_core.ports.translation import (
    TranslationError,
    TranslationErrorCode,
    TranslationErrorDetails,
    TranslationErrorInfo,
    TranslatorProtocol,
)

__all__ = [
    "IdentityProviderProtocol",
    "LogSinkProtocol",
    "MembershipError",
    "MembershipErrorCode",
    "MembershipErrorDetails",
    "MembershipErrorInfo",
    "ProjectStoreProtocol",
    "SharedStoreProtocol",
    "StorageError",
    "StorageErrorCode",
    "StorageErrorDetails",
    "StorageErrorInfo",
    "SyncError",
    "SyncErrorCode",
    "SyncErrorDetails",
    "SyncErrorInfo",
    "TranslationError",
    "TranslationErrorCode",
    "TranslationErrorDetails",
    "TranslationErrorInfo",
    "TranslatorProtocol",
    "build_storage_error",
]
