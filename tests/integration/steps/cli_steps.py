"""Shared BDD step implementation functions for CLI integration tests.

These functions are NOT decorated here because pytest-bdd registers step
fixtures in the caller's module namespace. Import them and apply the step
decorators in conftest.py to share them across test modules.
"""

from __future__ import annotations

from typing import Protocol

from click.testing import Result


class CliContextProtocol(Protocol):
    """Protocol for CLI test contexts that keep the last command result."""

    result: Result | None


def step_command_succeeds(ctx: CliContextProtocol) -> None:
    """Assert the CLI command exits with code 0."""
    assert ctx.result is not None
    assert ctx.result.exit_code == 0, (
        f"Expected exit code 0, got {ctx.result.exit_code}: {ctx.result.stdout}"
    )


def step_command_fails_with(ctx: CliContextProtocol, exit_code: int) -> None:
    """Assert the CLI command exits with the expected code."""
    assert ctx.result is not None
    assert ctx.result.exit_code == exit_code, (
        f"Expected exit code {exit_code}, got {ctx.result.exit_code}: "
        f"{ctx.result.stdout}"
    )
