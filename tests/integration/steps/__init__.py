"""BDD step implementation functions for integration tests.

Usage in conftest.py:
    from pytest_bdd import then, parsers
    from tests.integration.steps import (
        step_command_fails_with,
        step_command_succeeds,
    )

    then("the command succeeds")(step_command_succeeds)
    then(parsers.parse("the command fails with exit code {exit_code:d}"))(
        step_command_fails_with
    )
"""

from tests.integration.steps.cli_steps import (
    CliContextProtocol,
    step_command_fails_with,
    step_command_succeeds,
)

__all__ = [
    "CliContextProtocol",
    "step_command_fails_with",
    "step_command_succeeds",
]
