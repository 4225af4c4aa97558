"""CLI exit code taxonomy and error-to-exit-code registry.

Exit code ranges:
- 0: Success
- 10-19: Client/input errors (invalid documents, bad arguments)
- 20-29: Domain errors (sync, membership, storage)
- 30-39: External service errors (machine translation)
- 99: Unexpected runtime errors
"""

from __future__ import annotations

from enum import IntEnum


class ExitCode(IntEnum):
    """CLI exit codes by failure category."""

    SUCCESS = 0
    CONFIG_ERROR = 10
    VALIDATION_ERROR = 11
    INVALID_DOCUMENT = 12
    SYNC_ERROR = 20
    MEMBERSHIP_ERROR = 21
    STORAGE_ERROR = 23
    PERMISSION_ERROR = 24
    CONNECTION_ERROR = 30
    TRANSLATION_ERROR = 31
    RUNTIME_ERROR = 99


# Domain error codes are qualified with their domain prefix
# ("storage.not_found" vs "sync.not_found"). CLI-level codes are unprefixed.
ERROR_CODE_TO_EXIT_CODE: dict[str, ExitCode] = {
    # --- CLI-level codes (no prefix) ---
    "config_error": ExitCode.CONFIG_ERROR,
    "validation_error": ExitCode.VALIDATION_ERROR,
    "invalid_document": ExitCode.INVALID_DOCUMENT,
    "runtime_error": ExitCode.RUNTIME_ERROR,
    # --- Sync domain ---
    "sync.promotion_denied": ExitCode.PERMISSION_ERROR,
    "sync.already_promoted": ExitCode.SYNC_ERROR,
    "sync.not_found": ExitCode.SYNC_ERROR,
    # --- Membership domain ---
    "membership.invalid_code": ExitCode.MEMBERSHIP_ERROR,
    "membership.code_expired": ExitCode.MEMBERSHIP_ERROR,
    "membership.code_exhausted": ExitCode.MEMBERSHIP_ERROR,
    "membership.already_owner": ExitCode.MEMBERSHIP_ERROR,
    "membership.already_member": ExitCode.MEMBERSHIP_ERROR,
    "membership.code_space_exhausted": ExitCode.MEMBERSHIP_ERROR,
    "membership.not_owner": ExitCode.PERMISSION_ERROR,
    # --- Storage domain ---
    "storage.not_found": ExitCode.STORAGE_ERROR,
    "storage.io_error": ExitCode.STORAGE_ERROR,
    "storage.unavailable": ExitCode.STORAGE_ERROR,
    "storage.forbidden": ExitCode.PERMISSION_ERROR,
    "storage.conflict": ExitCode.STORAGE_ERROR,
    "storage.duplicate": ExitCode.STORAGE_ERROR,
    "storage.serialization_error": ExitCode.STORAGE_ERROR,
    "storage.validation_error": ExitCode.STORAGE_ERROR,
    # --- Translation domain ---
    "translation.not_configured": ExitCode.CONFIG_ERROR,
    "translation.invalid_request": ExitCode.TRANSLATION_ERROR,
    "translation.auth_failed": ExitCode.CONNECTION_ERROR,
    "translation.service_error": ExitCode.CONNECTION_ERROR,
}

# Domain prefix for each domain exception class (used by resolve_exit_code).
DOMAIN_PREFIXES: dict[str, str] = {
    "SyncError": "sync",
    "MembershipError": "membership",
    "StorageError": "storage",
    "TranslationError": "translation",
}


def resolve_exit_code(error_code: str, *, domain: str | None = None) -> ExitCode:
    """Resolve an error code string to its ExitCode.

    Args:
        error_code: The error code string (e.g. "code_expired").
        domain: Optional domain prefix (e.g. "membership"). When provided,
            ``"{domain}.{error_code}"`` is tried first, falling back to an
            unqualified lookup.

    Returns:
        The matching ExitCode, or RUNTIME_ERROR if no mapping is found.
    """
    if domain:
        qualified = f"{domain}.{error_code}"
        if qualified in ERROR_CODE_TO_EXIT_CODE:
            return ERROR_CODE_TO_EXIT_CODE[qualified]

    if error_code in ERROR_CODE_TO_EXIT_CODE:
        return ERROR_CODE_TO_EXIT_CODE[error_code]

    return ExitCode.RUNTIME_ERROR
