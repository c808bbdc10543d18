"""CLI error handling with actionable hints.

Provides consistent error formatting for all wabbitd CLI commands.
"""

from typing import NoReturn

import click


class WabbitdCliError(click.ClickException):
    """CLI error with actionable hint for users.

    Attributes:
        message: The primary error message.
        hint: Optional actionable suggestion for the user.

    Example:
        raise WabbitdCliError(
            "Model file not found: model.vw",
            hint="Set engine.model_path in wabbitd.toml",
        )
    """

    def __init__(self, message: str, hint: str | None = None) -> None:
        super().__init__(message)
        self.hint = hint

    def format_message(self) -> str:
        """Format the error message with hint if present."""
        msg = self.message
        if self.hint:
            msg += f"\nHint: {self.hint}"
        return msg


def missing_model_error() -> NoReturn:
    """Raise error when no model path is configured.

    Raises:
        WabbitdCliError: Always raises with configuration hint.
    """
    raise WabbitdCliError(
        "No model file configured",
        hint="Pass --model or set engine.model_path in wabbitd.toml",
    )
