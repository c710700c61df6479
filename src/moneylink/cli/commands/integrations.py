"""Service integration commands for MoneyLink CLI.

These commands talk to the same backend endpoints the linking page uses, so
an already-authorized accounting service can be inspected and synced from a
terminal. Authorization itself needs a browser and is not offered here.
"""

import asyncio
import logging

import typer

from moneylink.api import LinkingApiClient
from moneylink.config import get_current_profile, get_settings
from moneylink.errors import LinkError
from moneylink.linking.commit import CommitSyncDriver
from moneylink.linking.schemas import ServicePreview, SyncCategory
from moneylink.linking.selection import ServiceSelection
from moneylink.linking.session import LinkSession
from moneylink.linking.steps import ProviderFamily, StepId

app = typer.Typer(help="Inspect and sync accounting service integrations", no_args_is_help=True)
logger = logging.getLogger(__name__)

_SAMPLE_SIZE = 3


def _print_preview(provider: str, preview: ServicePreview) -> None:
    print(f"\n📋 {provider} preview")
    for category in SyncCategory:
        category_preview = preview.get(category)
        if category_preview is None:
            continue
        marker = "✅" if category_preview.available else "➖"
        print(f"   {marker} {category.value}: {category_preview.count} record(s)")
        for item in category_preview.items[:_SAMPLE_SIZE]:
            print(f"      - {item.name or item.id}")
        remaining = len(category_preview.items) - _SAMPLE_SIZE
        if remaining > 0:
            print(f"      … and {remaining} more")
    print()


@app.command("status")
def status(
    provider: str = typer.Argument(..., help="Integration provider (e.g., quickbooks, xero)"),
) -> None:
    """Check whether an accounting service is connected.

    Example:
        moneylink integrations status quickbooks
    """

    async def _check() -> bool:
        async with LinkingApiClient(get_settings().api) as api:
            return await api.get_connection_status(provider)

    if asyncio.run(_check()):
        logger.info(f"✅ {provider} is connected")
    else:
        logger.warning(f"⚠️  {provider} is not connected")
        raise typer.Exit(1)


@app.command("preview")
def preview(
    provider: str = typer.Argument(..., help="Integration provider (e.g., quickbooks, xero)"),
    limit: int | None = typer.Option(
        None, "--limit", "-l", min=1, help="Items per category (default from settings)"
    ),
) -> None:
    """Show which data categories a connected service can sync.

    Example:
        moneylink integrations preview quickbooks --limit 10
    """
    settings = get_settings()

    async def _fetch() -> ServicePreview | None:
        async with LinkingApiClient(settings.api) as api:
            return await api.get_service_preview(
                provider, limit=limit or settings.linking.preview_limit
            )

    try:
        result = asyncio.run(_fetch())
    except LinkError as e:
        logger.error(f"❌ {e.title}: {e.message}")
        raise typer.Exit(1) from e

    if result is None or not result.has_data:
        logger.warning(f"⚠️  No preview data available for {provider}")
        raise typer.Exit(1)

    _print_preview(provider, result)


@app.command("sync")
def sync(
    provider: str = typer.Argument(..., help="Integration provider (e.g., quickbooks, xero)"),
    only: list[SyncCategory] | None = typer.Option(
        None,
        "--only",
        "-o",
        help="Sync only this category (repeatable). Default: accounts, transactions, "
        "invoices, bills",
    ),
) -> None:
    """Save sync preferences and start a sync for a connected service.

    Examples:
        moneylink integrations sync quickbooks
        moneylink integrations sync xero --only accounts --only invoices
    """
    settings = get_settings()
    profile = get_current_profile()

    session = LinkSession(provider_family=ProviderFamily.SERVICE, provider_id=provider)
    if only:
        session.selection = ServiceSelection(enabled=set(only))
    session.steps.jump_to(StepId.SELECT)

    enabled = ", ".join(c.value for c in session.service_selection.enabled_categories)
    logger.info(f"🔄 Syncing {session.display_name} ({enabled}) (Profile: {profile})")

    def _report(progress: int) -> None:
        logger.debug(f"Sync progress: {progress}%")

    async def _run() -> None:
        async with LinkingApiClient(settings.api) as api:
            await CommitSyncDriver(api, settings.linking, _report).commit(session)

    try:
        asyncio.run(_run())
    except LinkError as e:
        logger.error(f"❌ {e.title}: {e.message}")
        raise typer.Exit(1) from e

    logger.info(f"✅ {session.display_name} sync started successfully")
