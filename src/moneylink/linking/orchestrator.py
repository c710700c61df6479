"""Linking orchestrator.

Binds one :class:`LinkSession` to the SDK loader, handshake strategies,
preview manager and commit driver, and exposes the user actions of the
linking page. Actions never raise :class:`LinkError`; failures become a
notification plus a state change (stay on the step or move back to an
earlier one).
"""

import logging

from ..api.client import LinkingApiClient
from ..config import MoneyLinkSettings, get_settings
from ..errors import (
    ConfigurationError,
    InvalidHandshakePayloadError,
    LinkError,
    SdkLoadError,
)
from ..sdk.factory import ModalSessionSdk, ProviderClientFactory, WidgetSdk, default_factories
from ..sdk.loader import ScriptHost, SdkLoader
from .analytics import EventSink
from .commit import CommitSyncDriver, ProgressCallback
from .handshake import (
    HandshakeCancelled,
    HandshakeFailed,
    HandshakeOutcome,
    HandshakeStrategy,
    ModalSessionHandshake,
    PopupCompletion,
    PopupOAuthHandshake,
    PopupOpener,
    WidgetHandshake,
)
from .notifications import LoggingNotifier, Notification, Notifier
from .preview import PreviewManager
from .schemas import BankPreview, ServicePreview, SyncCategory
from .session import LinkSession, ServiceHandshake
from .steps import StepId

logger = logging.getLogger(__name__)

BANK_DESTINATION = "/accounts/bank"
SERVICE_DESTINATION = "/accounts/integrations"


class LinkOrchestrator:
    """Drives a linking session from intro to complete."""

    def __init__(
        self,
        session: LinkSession,
        api: LinkingApiClient,
        notifier: Notifier | None = None,
        *,
        script_host: ScriptHost | None = None,
        popup_opener: PopupOpener | None = None,
        settings: MoneyLinkSettings | None = None,
        factories: dict[str, ProviderClientFactory] | None = None,
        on_progress: ProgressCallback | None = None,
        events: EventSink | None = None,
    ):
        settings = settings or get_settings()
        self.session = session
        self.api = api
        self.notifier: Notifier = notifier or LoggingNotifier()
        self.popup_opener = popup_opener
        self.config = settings.linking
        self.loader = SdkLoader(
            script_host, factories or default_factories(settings.teller, settings.stripe)
        )
        self.previews = PreviewManager(api, self.config)
        self.driver = CommitSyncDriver(api, self.config, on_progress, events)
        self._popup: PopupOAuthHandshake | None = None
        self._handshake_active = False

    def _notify(self, title: str, description: str) -> None:
        self.notifier.notify(Notification(title=title, description=description))

    def _notify_error(self, error: LinkError, title: str | None = None) -> None:
        self.notifier.notify(Notification.from_error(error, title=title))

    # ------------------------------------------------------------------
    # Mount & navigation
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Run the on-mount check for an existing SERVICE connection.

        When the service is already connected the flow jumps straight to
        ``select`` and loads the preview without any handshake.
        """
        if self.session.is_bank:
            return

        if not await self.previews.check_existing_connection(self.session):
            return

        logger.info(f"{self.session.display_name} already connected, skipping authorization")
        self._notify(
            "Already Connected",
            f"{self.session.display_name} is already connected. Select what to sync.",
        )
        self.session.steps.jump_to(StepId.SELECT)
        await self._load_preview()

    async def get_started(self) -> None:
        """Leave the intro step."""
        if not self.session.steps.is_at(StepId.INTRO):
            return
        self.session.steps.advance()
        await self.enter_step()

    async def enter_step(self) -> bool:
        """Prepare the current step; loads the provider SDK on the connect step.

        Calling this again after a load failure retries the load.

        Returns:
            bool: True if the session's SDK is ready
        """
        try:
            await self.loader.ensure_loaded(self.session)
        except LinkError as e:
            logger.error(f"❌ {e.title}: {e.message}")
            self._notify_error(e)
            return False
        return self.session.sdk_ready

    def back(self) -> bool:
        """Navigate back one step where allowed.

        Refused while a handshake is waiting on the provider, since its
        outcome is applied relative to the connect step.
        """
        if self._handshake_active:
            logger.debug("Ignoring back navigation during handshake")
            return False
        return self.session.steps.prev()

    # ------------------------------------------------------------------
    # Handshake
    # ------------------------------------------------------------------

    async def connect(self) -> None:
        """Run the provider handshake from the connect/authorize step."""
        steps = self.session.steps
        if not steps.is_at(steps.connect_step):
            logger.debug(f"Ignoring connect on step '{steps.current_id.value}'")
            return
        if self._handshake_active:
            logger.debug("Handshake already in progress")
            return

        strategy = self._build_strategy()
        if strategy is None:
            return

        self._handshake_active = True
        if isinstance(strategy, PopupOAuthHandshake):
            self._popup = strategy
        try:
            outcome = await strategy.run(self.session)
        finally:
            self._popup = None
            self._handshake_active = False

        await self._apply_handshake_outcome(outcome)

    def _build_strategy(self) -> HandshakeStrategy | None:
        if not self.session.is_bank:
            if self.popup_opener is None:
                error = ConfigurationError("No popup window available for authorization")
                self._notify_error(error)
                return None
            return PopupOAuthHandshake(self.api, self.popup_opener, self.config)

        if not self.session.sdk_ready:
            message = self.session.sdk_error or "Provider is still loading. Please wait."
            self._notify_error(SdkLoadError(message))
            return None
        handle = self.loader.handle
        if isinstance(handle, WidgetSdk):
            return WidgetHandshake(handle)
        if isinstance(handle, ModalSessionSdk):
            return ModalSessionHandshake(handle, self.api)

        self._notify_error(ConfigurationError("Bank connection not properly configured"))
        return None

    def continue_anyway(self) -> bool:
        """Stop waiting for the OAuth popup and continue optimistically."""
        if self._popup is None:
            return False
        return self._popup.continue_anyway()

    async def _apply_handshake_outcome(self, outcome: HandshakeOutcome) -> None:
        """Single transition function for every handshake outcome."""
        steps = self.session.steps

        if isinstance(outcome, HandshakeCancelled):
            logger.info(f"Handshake cancelled ({outcome.reason})")
            return

        if isinstance(outcome, HandshakeFailed):
            error = outcome.error
            logger.error(f"❌ Handshake failed: {error.message}")
            self._notify_error(error)
            if isinstance(error, InvalidHandshakePayloadError):
                self.session.handshake_result = None
                steps.regress(steps.connect_step)
            return

        result = outcome.result
        self.session.handshake_result = result
        if isinstance(result, ServiceHandshake):
            self._announce_authorization(result)

        steps.advance()
        await self._load_preview()

    def _announce_authorization(self, result: ServiceHandshake) -> None:
        name = self.session.display_name
        if result.via == PopupCompletion.TIMEOUT.value:
            self._notify(
                "Authorization Timeout",
                "Proceeding anyway. If data doesn't load, please try again.",
            )
        elif result.via == PopupCompletion.CLOSED.value:
            if result.connected:
                self._notify("Authorization Successful", f"Loading your {name} data...")
            else:
                self._notify("Authorization Complete", "Loading available data...")

    # ------------------------------------------------------------------
    # Preview & selection
    # ------------------------------------------------------------------

    async def _load_preview(self) -> bool:
        """Fetch the preview, moving back to the connect step on failure."""
        try:
            preview = await self.previews.fetch_preview(self.session)
        except LinkError as e:
            title = "Failed to Load Accounts" if self.session.is_bank else "Failed to Load Data"
            logger.error(f"❌ {title}: {e.message}")
            self._notify_error(e, title=title)
            steps = self.session.steps
            if steps.index > steps.index_of(steps.connect_step):
                steps.regress(steps.connect_step)
            return False
        return preview is not None

    async def retry_preview(self) -> bool:
        """Reload the preview on the select step."""
        if not self.session.steps.is_at(StepId.SELECT):
            return False
        return await self._load_preview()

    def _bank_preview(self) -> BankPreview:
        preview = self.session.preview
        return preview if isinstance(preview, BankPreview) else BankPreview()

    def _category_ids(self, category: SyncCategory) -> list[str]:
        preview = self.session.preview
        if not isinstance(preview, ServicePreview):
            return []
        category_preview = preview.get(category)
        return category_preview.item_ids if category_preview else []

    def toggle_account(self, account_id: str) -> None:
        self.session.bank_selection.toggle(account_id)

    def toggle_all_accounts(self) -> None:
        self.session.bank_selection.toggle_all(self._bank_preview().account_ids)

    def toggle_category(self, category: SyncCategory) -> None:
        self.session.service_selection.toggle_category(category)

    def toggle_item(self, category: SyncCategory, item_id: str) -> None:
        self.session.service_selection.toggle_item(category, item_id)

    def toggle_select_all(self, category: SyncCategory) -> None:
        self.session.service_selection.toggle_select_all(category, self._category_ids(category))

    # ------------------------------------------------------------------
    # Commit & finish
    # ------------------------------------------------------------------

    async def proceed(self) -> bool:
        """Commit the selection and run the sync to completion.

        Returns:
            bool: True if the session reached the complete step
        """
        if not self.session.steps.is_at(StepId.SELECT):
            logger.debug(f"Ignoring proceed on step '{self.session.steps.current_id.value}'")
            return False

        try:
            await self.driver.commit(self.session)
        except LinkError as e:
            logger.error(f"❌ {e.title}: {e.message}")
            self._notify_error(e)
            return False
        return self.session.steps.is_complete

    def finish(self) -> str | None:
        """Announce success and return where to navigate next.

        Returns:
            The destination path, or None if the flow is not complete
        """
        if not self.session.steps.is_complete:
            return None
        self._notify(
            "Connection Successful",
            f"{self.session.display_name} has been connected successfully.",
        )
        return BANK_DESTINATION if self.session.is_bank else SERVICE_DESTINATION
