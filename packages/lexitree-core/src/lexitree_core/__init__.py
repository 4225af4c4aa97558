"""lexitree-core: Key-path model, completeness and sync logic for lexitree."""

from lexitree_core.completeness import (
    CompletenessCache,
    classify_leaf,
    compute_language_progress,
    compute_stats,
    is_translated,
)
from lexitree_core.keypath import (
    MISSING,
    InvalidDocumentError,
    Missing,
    build_key_tree,
    flatten_keys,
    get_value,
    iter_leaf_paths,
    set_value,
)
from lexitree_core.membership import MembershipService, generate_code
from lexitree_core.sync import DualStoreSync, resolve_role
from lexitree_core.translation import suggest_translation
from lexitree_core.version import VERSION

__version__ = "0.1.0"

__all__ = [
    "MISSING",
    "VERSION",
    "CompletenessCache",
    "DualStoreSync",
    "InvalidDocumentError",
    "MembershipService",
    "Missing",
    "build_key_tree",
    "classify_leaf",
    "compute_language_progress",
    "compute_stats",
    "flatten_keys",
    "generate_code",
    "get_value",
    "is_translated",
    "iter_leaf_paths",
    "resolve_role",
    "set_value",
    "suggest_translation",
]
