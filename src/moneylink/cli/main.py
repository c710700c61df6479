"""Main CLI application for MoneyLink.

This module provides the unified entry point for MoneyLink CLI operations,
organizing commands into groups for service integrations and configuration.
"""

import logging
from typing import Annotated

import typer

from ..config import set_current_profile
from ..logging import setup_logging
from .commands import config, integrations

logger = logging.getLogger(__name__)

app = typer.Typer(
    name="moneylink",
    help="MoneyLink: Link bank accounts and accounting services",
    add_completion=False,
    rich_markup_mode="rich",
    no_args_is_help=True,
)


@app.callback()
def main_callback(
    profile: Annotated[
        str,
        typer.Option(
            "--profile",
            "-p",
            help="Configuration profile to use (e.g., dev, staging, prod). Default: default",
            envvar="MONEYLINK_PROFILE",
        ),
    ] = "default",
    verbose: Annotated[
        bool,
        typer.Option(
            "--verbose",
            "-v",
            help="Enable verbose debug logging",
        ),
    ] = False,
) -> None:
    """Global options for MoneyLink CLI.

    The profile option selects which environment file is loaded:
    - Each profile loads from .env.{profile} files (e.g., .env.dev, .env.prod)
    - Profile names must be alphanumeric with optional dashes/underscores

    Examples:
      moneylink --profile=prod integrations status quickbooks
      moneylink -v integrations sync xero --only accounts

    Can also be set via MONEYLINK_PROFILE environment variable.
    """
    setup_logging(cli_mode=True, verbose=verbose)

    try:
        set_current_profile(profile)
    except ValueError as e:
        logger.error(str(e))
        raise typer.BadParameter(
            f"Invalid profile name: {profile}. "
            "Use only alphanumeric characters, dashes, and underscores"
        ) from e

    logger.debug(f"👤 Using profile: {profile}")


app.add_typer(
    integrations.app, name="integrations", help="Accounting service integrations"
)
app.add_typer(config.app, name="config", help="Configuration commands")


def main() -> None:
    """Entry point for the MoneyLink CLI application."""
    app()


if __name__ == "__main__":
    main()
