"""Preview of linkable entities for the select step."""

import logging

from ..api.client import LinkingApiClient
from ..config import LinkingConfig
from ..errors import ApiError, EmptyPreviewError, HandshakeError, PreviewError
from .schemas import BankPreview, ServicePreview
from .session import LinkSession, StripeHandshake, TellerHandshake

logger = logging.getLogger(__name__)


class PreviewManager:
    """Fetches the preview for a session, one request at a time."""

    def __init__(self, api: LinkingApiClient, config: LinkingConfig):
        self.api = api
        self.config = config
        self._in_flight = False

    @property
    def is_loading(self) -> bool:
        return self._in_flight

    async def fetch_preview(self, session: LinkSession) -> BankPreview | ServicePreview | None:
        """Load and store the session's preview.

        The session preview is cleared first and only set when the fetch
        yields something to link.

        Returns:
            The preview, or None if another fetch was already in flight

        Raises:
            HandshakeError: If a BANK session has no matching handshake result
            EmptyPreviewError: If there is nothing to link
            PreviewError: If the backend request fails
        """
        if self._in_flight:
            logger.debug("Preview fetch already in progress, ignoring request")
            return None

        self._in_flight = True
        session.preview = None
        try:
            if session.is_bank:
                preview: BankPreview | ServicePreview = await self._fetch_bank_preview(session)
            else:
                preview = await self._fetch_service_preview(session)
        finally:
            self._in_flight = False

        session.preview = preview
        return preview

    async def _fetch_bank_preview(self, session: LinkSession) -> BankPreview:
        result = session.handshake_result

        if session.provider_id == "stripe":
            if not isinstance(result, StripeHandshake):
                raise HandshakeError(
                    "Missing session data. Please try connecting again.", title="Connection Error"
                )
            preview = result.to_preview()
        else:
            if not isinstance(result, TellerHandshake):
                raise HandshakeError(
                    "Missing enrollment data. Please try connecting again.",
                    title="Connection Error",
                )
            try:
                fetched = await self.api.get_bank_preview(result.enrollment)
            except ApiError as e:
                raise PreviewError(e.message) from e
            preview = fetched or BankPreview()

        if not preview.accounts:
            raise EmptyPreviewError("No accounts available from this bank")

        logger.info(f"Loaded {len(preview.accounts)} account(s) from {preview.institution_name}")
        return preview

    async def _fetch_service_preview(self, session: LinkSession) -> ServicePreview:
        try:
            preview = await self.api.get_service_preview(
                session.provider_id, limit=self.config.preview_limit
            )
        except ApiError as e:
            raise PreviewError(e.message) from e

        if preview is None or not preview.has_data:
            raise EmptyPreviewError("No preview data available")

        logger.info(
            f"Loaded preview for {session.display_name}: "
            f"{', '.join(c.value for c in preview.categories)}"
        )
        return preview

    async def check_existing_connection(self, session: LinkSession) -> bool:
        """Whether a SERVICE provider is already connected; always False for banks."""
        if session.is_bank:
            return False
        return await self.api.get_connection_status(session.provider_id)
