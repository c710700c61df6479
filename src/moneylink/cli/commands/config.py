"""Configuration commands for MoneyLink CLI."""

import logging

import typer

from moneylink.config import get_current_profile, get_settings

logger = logging.getLogger(__name__)

app = typer.Typer(
    name="config",
    help="Configuration inspection",
    no_args_is_help=True,
)


@app.command("show")
def show_config() -> None:
    """Show the effective configuration for the current profile.

    Provider identifiers are partially masked.

    Example:
        moneylink --profile=prod config show
    """
    try:
        settings = get_settings()
    except ValueError as e:
        logger.error(f"❌ {e}")
        raise typer.Exit(1) from e

    data = settings.redacted()

    print(f"\n📋 MoneyLink Configuration (Profile: {get_current_profile()})")
    print(f"   Environment: {data['environment']}")
    for section in ("api", "teller", "stripe", "linking", "logging"):
        print(f"\n   [{section}]")
        for key, value in data[section].items():
            print(f"   {key}: {value if value not in (None, '') else '(not set)'}")
    print()
