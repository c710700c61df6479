"""Commit & sync driver.

Persists the user's selection through the backend and runs the simulated
sync progress that leads to the complete step. A confirmation event is
captured once the selection is accepted, before the import is started.
The backend performs the real import asynchronously; progress here is
purely presentational.
"""

import asyncio
import logging
from collections.abc import Callable

from ..api.client import LinkingApiClient
from ..config import LinkingConfig
from ..errors import ApiError, CommitError, HandshakeError
from .analytics import (
    BANK_IMPORT_CONFIRMED,
    SERVICE_PREFERENCES_CONFIRMED,
    AnalyticsEvent,
    EventSink,
    LoggingEventSink,
)
from .schemas import SyncCategory
from .session import LinkSession, StripeHandshake, TellerHandshake
from .steps import StepId

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int], None]


class CommitSyncDriver:
    """Commits a session's selection and drives it to the complete step."""

    def __init__(
        self,
        api: LinkingApiClient,
        config: LinkingConfig,
        on_progress: ProgressCallback | None = None,
        events: EventSink | None = None,
    ):
        self.api = api
        self.config = config
        self.on_progress = on_progress
        self.events: EventSink = events or LoggingEventSink()

    async def commit(self, session: LinkSession) -> None:
        """Persist the selection, then run sync progress to completion.

        On any mutation failure the session is moved back to ``select`` with
        progress reset to 0 before the error propagates.

        Raises:
            SelectionValidationError: If nothing is selected (no backend call)
            HandshakeError: If a BANK session lost its handshake result; the
                session is moved back to the connect step
            CommitError: If a backend mutation fails
        """
        if session.is_bank:
            await self._commit_bank(session)
        else:
            await self._commit_service(session)

    async def _commit_bank(self, session: LinkSession) -> None:
        result = session.handshake_result
        expected = StripeHandshake if session.provider_id == "stripe" else TellerHandshake
        if not isinstance(result, expected):
            missing = "session" if expected is StripeHandshake else "enrollment"
            session.steps.regress(session.steps.connect_step)
            raise HandshakeError(
                f"Missing {missing} data. Please try connecting again.", title="Connection Error"
            )

        selection = session.bank_selection
        selection.validate()

        self.events.capture(
            AnalyticsEvent(
                BANK_IMPORT_CONFIRMED,
                {
                    "integration_provider": session.provider_id,
                    "selected_account_count": len(selection),
                },
            )
        )

        logger.info(f"Connecting {len(selection)} account(s) via {session.display_name}")
        try:
            if isinstance(result, TellerHandshake):
                await self.api.connect_teller_accounts(result.enrollment, selection.ids)
            else:
                await self.api.connect_stripe_accounts(result.session_id, selection.ids)
        except ApiError as e:
            self._recover(session)
            raise CommitError(e.message or "Failed to connect bank accounts") from e

        session.steps.advance()
        await self.run_progress(session, self.config.bank_progress_interval)

    async def _commit_service(self, session: LinkSession) -> None:
        selection = session.service_selection
        selection.validate()

        try:
            await self.api.save_sync_preferences(session.provider_id, selection.to_preferences())
        except ApiError as e:
            self._recover(session)
            raise CommitError(
                e.message or "Unable to save sync preferences. Please try again.",
                title="Failed to Save Preferences",
            ) from e

        self.events.capture(
            AnalyticsEvent(
                SERVICE_PREFERENCES_CONFIRMED,
                {
                    "integration_provider": session.provider_id,
                    **{
                        f"sync_{category.value}": selection[category].enabled
                        for category in SyncCategory
                    },
                },
            )
        )
        session.steps.advance()
        session.reset_progress()
        try:
            await self.api.sync_service(session.provider_id, selection.to_sync_request())
        except ApiError as e:
            self._recover(session)
            raise CommitError(e.message or "Failed to sync data", title="Sync Failed") from e

        await self.run_progress(session, self.config.service_progress_interval)

    def _recover(self, session: LinkSession) -> None:
        session.steps.regress(StepId.SELECT)
        self._set_progress(session, 0)

    def _set_progress(self, session: LinkSession, value: int) -> None:
        session.sync_progress = value
        if self.on_progress is not None:
            self.on_progress(value)

    async def run_progress(self, session: LinkSession, interval: float) -> None:
        """Tick progress from 0 to 100, then advance to ``complete`` exactly once."""
        self._set_progress(session, 0)
        while session.sync_progress < 100:
            await asyncio.sleep(interval)
            self._set_progress(session, min(session.sync_progress + self.config.progress_step, 100))

        if session.steps.is_at(StepId.SYNC):
            session.steps.advance()
            logger.info(f"{session.display_name} sync complete")
