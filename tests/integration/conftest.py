"""Integration test configuration with shared BDD fixtures and step definitions."""

from __future__ import annotations

import pytest
from pytest_bdd import parsers, then
from typer.testing import CliRunner

import lexitree_cli.main as cli_main
from lexitree_core.config.settings import Settings
from tests.integration.steps import step_command_fails_with, step_command_succeeds


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep the CLI away from real .env files and translator keys."""
    monkeypatch.setattr(
        cli_main,
        "get_settings",
        lambda: Settings(_env_file=None, azure_translator_key=None),
    )


@pytest.fixture
def cli_runner() -> CliRunner:
    """Return a Typer CLI runner for invoking commands."""
    return CliRunner()


then("the command succeeds")(step_command_succeeds)
then(parsers.parse("the command fails with exit code {exit_code:d}"))(
    step_command_fails_with
)
