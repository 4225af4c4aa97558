"""Common pytest configuration."""

from collections.abc import Iterator
from datetime import UTC, datetime

import pytest

from lexitree_core.config.settings import get_settings
from lexitree_schemas.identity import Identity
from lexitree_schemas.primitives import JsonObject
from tests.helpers.clock import FrozenClock


@pytest.fixture
def anyio_backend() -> str:
    """Force asyncio backend for anyio-powered tests.

    Returns:
        str: The backend name.
    """
    return "asyncio"


@pytest.fixture(autouse=True)
def _isolated_settings(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Keep cached settings and lexitree env vars from leaking between tests.

    Yields:
        None: Control returns to the test.
    """
    for name in (
        "LEXITREE_DATA_DIR",
        "LEXITREE_SHARED_DB",
        "LEXITREE_LOG_FILE",
        "AZURE_TRANSLATOR_KEY",
    ):
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def clock() -> FrozenClock:
    """Provide a clock fixed at a known instant.

    Returns:
        FrozenClock: Clock starting at 2026-01-26T00:00:00Z.
    """
    return FrozenClock(datetime(2026, 1, 26, tzinfo=UTC))


@pytest.fixture
def owner() -> Identity:
    """Identity with a profile that owns shared projects.

    Returns:
        Identity: Owner identity.
    """
    return Identity(user_id="user-owner", email="owner@example.com", name="Owner")


@pytest.fixture
def guest() -> Identity:
    """Second identity with a profile.

    Returns:
        Identity: Guest identity.
    """
    return Identity(user_id="user-guest", email="guest@example.com", name="Guest")


@pytest.fixture
def anonymous() -> Identity:
    """Identity without a recorded profile.

    Returns:
        Identity: Identity lacking an email.
    """
    return Identity(user_id="user-anonymous")


@pytest.fixture
def master_document() -> JsonObject:
    """Nested master document used across tests.

    Returns:
        JsonObject: Master key/value document.
    """
    return {
        "app": {"title": "Lexitree", "tagline": "Translate everything"},
        "menu": {
            "file": {"open": "Open", "save": "Save"},
            "help": "Help",
        },
        "colors": ["red", "green"],
        "count": 3,
    }
