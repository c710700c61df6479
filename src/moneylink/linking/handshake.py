"""Handshake coordinator: provider-specific authorization strategies.

Three strategies share one interface and report a tagged outcome instead of
acting on the session through callbacks:

- :class:`WidgetHandshake` (Teller Connect): open a hosted widget and wait for
  its success or exit callback.
- :class:`ModalSessionHandshake` (Stripe Financial Connections): create a
  backend session, then let the SDK's modal collect accounts.
- :class:`PopupOAuthHandshake` (accounting services): open the backend's OAuth
  URL in a popup and wait for it to close, bounded by a hard timeout and an
  explicit "continue anyway".

Strategies never raise for provider or network failures; those come back as
:class:`HandshakeFailed` for the orchestrator to report.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Protocol

from pydantic import ValidationError

from ..api.client import LinkingApiClient
from ..config import LinkingConfig
from ..errors import (
    ApiError,
    HandshakeError,
    InvalidHandshakePayloadError,
    LinkError,
    PopupBlockedError,
    SdkLoadError,
)
from ..sdk.factory import ModalSessionSdk, WidgetSdk
from .schemas import TellerEnrollment
from .session import (
    HandshakeResult,
    LinkSession,
    ServiceHandshake,
    StripeHandshake,
    TellerHandshake,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Outcomes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class HandshakeSuccess:
    result: HandshakeResult


@dataclass(frozen=True)
class HandshakeCancelled:
    """The user closed the provider UI without finishing; not an error."""

    reason: str = "exit"


@dataclass(frozen=True)
class HandshakeFailed:
    error: LinkError


HandshakeOutcome = HandshakeSuccess | HandshakeCancelled | HandshakeFailed


class HandshakeStrategy(ABC):
    """Drives one provider's authorization interaction."""

    @abstractmethod
    async def run(self, session: LinkSession) -> HandshakeOutcome:
        """Perform the handshake and report its outcome."""


# ---------------------------------------------------------------------------
# Widget strategy (Teller)
# ---------------------------------------------------------------------------


def parse_enrollment(payload: Any) -> HandshakeOutcome:
    """Validate a Teller ``onSuccess`` payload.

    The payload must carry an access token, an enrollment id and the
    institution's id and name.
    """
    try:
        enrollment = TellerEnrollment.model_validate(payload)
    except ValidationError as e:
        missing = ", ".join(".".join(str(p) for p in err["loc"]) for err in e.errors())
        logger.warning(f"Teller enrollment payload rejected (invalid: {missing})")
        return HandshakeFailed(
            InvalidHandshakePayloadError("Invalid enrollment data received from Teller")
        )
    return HandshakeSuccess(TellerHandshake(enrollment=enrollment))


class WidgetHandshake(HandshakeStrategy):
    """Opens the Teller Connect widget and waits for its callbacks."""

    def __init__(self, sdk: WidgetSdk):
        self.sdk = sdk

    async def run(self, session: LinkSession) -> HandshakeOutcome:
        loop = asyncio.get_running_loop()
        outcome: asyncio.Future[HandshakeOutcome] = loop.create_future()

        def resolve(value: HandshakeOutcome) -> None:
            if not outcome.done():
                outcome.set_result(value)

        def on_success(payload: Any) -> None:
            resolve(parse_enrollment(payload))

        def on_exit() -> None:
            logger.info("User exited Teller Connect")
            resolve(HandshakeCancelled())

        def on_event(event: Any) -> None:
            logger.debug(f"Teller event: {event}")

        try:
            instance = self.sdk.setup(on_success=on_success, on_exit=on_exit, on_event=on_event)
            instance.open()
        except Exception:
            logger.exception("Failed to open Teller Connect")
            return HandshakeFailed(
                SdkLoadError("Failed to initialize Teller Connect", title="Connection Failed")
            )

        return await outcome


# ---------------------------------------------------------------------------
# Modal-session strategy (Stripe)
# ---------------------------------------------------------------------------


class ModalSessionHandshake(HandshakeStrategy):
    """Creates a Financial Connections session and collects accounts."""

    def __init__(self, sdk: ModalSessionSdk, api: LinkingApiClient):
        self.sdk = sdk
        self.api = api

    async def run(self, session: LinkSession) -> HandshakeOutcome:
        try:
            start = await self.api.create_stripe_session()
        except ApiError as e:
            return HandshakeFailed(HandshakeError(e.message, title="Connection Failed"))

        try:
            result = await self.sdk.collect_accounts(start.client_secret)
        except HandshakeError as e:
            return HandshakeFailed(e)
        except Exception as e:
            logger.exception("Stripe Financial Connections failed")
            return HandshakeFailed(
                HandshakeError(str(e) or "Failed to connect accounts", title="Connection Failed")
            )

        if result.error is not None:
            return HandshakeFailed(
                HandshakeError(
                    result.error.message or "Failed to connect accounts", title="Connection Failed"
                )
            )
        if result.session is None:
            return HandshakeCancelled(reason="no_session")

        return HandshakeSuccess(
            StripeHandshake(session_id=result.session.id, accounts=tuple(result.session.accounts))
        )


# ---------------------------------------------------------------------------
# Popup OAuth strategy (services)
# ---------------------------------------------------------------------------


class PopupWindow(Protocol):
    """A window opened for the OAuth exchange."""

    @property
    def closed(self) -> bool: ...


class PopupOpener(Protocol):
    """Opens popup windows; returns None when the popup is blocked."""

    screen_width: int
    screen_height: int

    def open(self, url: str, name: str, features: str) -> PopupWindow | None: ...


class PopupCompletion(str, Enum):
    """How waiting for the OAuth popup ended."""

    CLOSED = "popup"
    TIMEOUT = "timeout"
    MANUAL = "manual"


class PopupOAuthHandshake(HandshakeStrategy):
    """OAuth authorization through a popup window with polling."""

    def __init__(self, api: LinkingApiClient, opener: PopupOpener, config: LinkingConfig):
        self.api = api
        self.opener = opener
        self.config = config
        self._continue: asyncio.Event | None = None

    @property
    def is_waiting(self) -> bool:
        """True while the popup is open and being polled."""
        return self._continue is not None

    def continue_anyway(self) -> bool:
        """Stop waiting for the popup and continue optimistically.

        Returns:
            bool: True if a wait was in progress
        """
        if self._continue is None:
            return False
        self._continue.set()
        return True

    def popup_features(self) -> str:
        width, height = self.config.popup_width, self.config.popup_height
        left = max((self.opener.screen_width - width) // 2, 0)
        top = max((self.opener.screen_height - height) // 2, 0)
        return f"width={width},height={height},left={left},top={top}"

    async def run(self, session: LinkSession) -> HandshakeOutcome:
        try:
            start = await self.api.start_authorization(session.provider_id)
        except ApiError as e:
            return HandshakeFailed(HandshakeError(e.message))

        popup = self.opener.open(start.authorization_url, "oauth_window", self.popup_features())
        if popup is None:
            return HandshakeFailed(PopupBlockedError())

        logger.info("OAuth popup opened, waiting for it to close")
        self._continue = asyncio.Event()
        try:
            completion = await self._wait_for_popup(popup, self._continue)
        finally:
            self._continue = None

        if completion is not PopupCompletion.CLOSED:
            logger.info(f"Continuing without popup closure ({completion.value})")
            return HandshakeSuccess(ServiceHandshake(connected=None, via=completion.value))

        # Give the backend time to process the OAuth callback
        await asyncio.sleep(self.config.callback_grace_period)
        connected = await self.api.get_connection_status(session.provider_id)
        logger.info(f"Connection status after authorization: {connected}")
        return HandshakeSuccess(ServiceHandshake(connected=connected, via=completion.value))

    async def _wait_for_popup(self, popup: PopupWindow, manual: asyncio.Event) -> PopupCompletion:
        """Race popup closure against the manual signal and the hard timeout.

        Both waiter tasks are cancelled and awaited on every exit path, so no
        poll runs after this returns.
        """
        poll = asyncio.create_task(self._poll_closed(popup))
        manual_wait = asyncio.create_task(manual.wait())
        try:
            done, _ = await asyncio.wait(
                {poll, manual_wait},
                timeout=self.config.auth_timeout,
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            for task in (poll, manual_wait):
                task.cancel()
            await asyncio.gather(poll, manual_wait, return_exceptions=True)

        if poll in done:
            return PopupCompletion.CLOSED
        if manual_wait in done:
            return PopupCompletion.MANUAL
        return PopupCompletion.TIMEOUT

    async def _poll_closed(self, popup: PopupWindow) -> None:
        while not popup.closed:
            await asyncio.sleep(self.config.popup_poll_interval)
