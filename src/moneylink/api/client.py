"""Async HTTP client for the backend endpoints used by the linking flow.

The backend owns all persistent state (connections, accounts, sync jobs).
This client only speaks its JSON request/response contract:

- ``/integrations/{provider}/...`` for OAuth-based accounting services
- ``/banking/...`` for bank aggregators (Teller, Stripe Financial Connections)

Errors are normalized into :class:`moneylink.errors.ApiError`, carrying the
backend-provided message when the response body has one.
"""

import logging
from typing import Any, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from ..config import ApiConfig, get_settings
from ..errors import ApiError
from ..linking.schemas import (
    ApiEnvelope,
    AuthorizationStart,
    BankPreview,
    ServicePreview,
    StripeSessionStart,
    TellerEnrollment,
)

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


def _parse(model: type[ModelT], data: Any, failure: str) -> ModelT:
    """Validate a response payload, reporting schema mismatches as ApiError."""
    try:
        return model.model_validate(data if data is not None else {})
    except ValidationError as e:
        raise ApiError(f"{failure}: unexpected response format") from e


def _extract_message(body: Any) -> str | None:
    """Pull a human-readable message out of an error response body."""
    if not isinstance(body, dict):
        return None
    message = body.get("message")
    if isinstance(message, str) and message:
        return message
    error = body.get("error")
    if isinstance(error, dict):
        nested = error.get("message")
        if isinstance(nested, str) and nested:
            return nested
    if isinstance(error, str) and error:
        return error
    return None


class LinkingApiClient:
    """Backend API client for connection status, previews and sync mutations.

    The underlying ``httpx.AsyncClient`` is created lazily and reused, so
    session cookies set by the backend are sent on every later request.

    Usage::

        async with LinkingApiClient() as api:
            connected = await api.get_connection_status("quickbooks")
    """

    def __init__(
        self,
        config: ApiConfig | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        cookies: dict[str, str] | None = None,
    ):
        self.config = config or get_settings().api
        self._transport = transport
        self._cookies = cookies
        self._http: httpx.AsyncClient | None = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the shared httpx client."""
        if self._http is None or self._http.is_closed:
            headers = {"Content-Type": "application/json"}
            if self.config.organization_id:
                headers["X-Organization-Id"] = self.config.organization_id
            self._http = httpx.AsyncClient(
                base_url=self.config.base_url,
                timeout=self.config.timeout,
                headers=headers,
                cookies=self._cookies,
                transport=self._transport,
            )
        return self._http

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._http and not self._http.is_closed:
            await self._http.aclose()

    async def __aenter__(self) -> "LinkingApiClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Transport helpers
    # ------------------------------------------------------------------

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
        failure: str,
    ) -> Any:
        """Send a request and return the decoded JSON body.

        Empty bodies (including 204 No Content) decode to None.

        Args:
            method: HTTP method
            path: Path relative to the API base URL
            json: Optional JSON body
            params: Optional query parameters
            failure: Message prefix used when the backend gives no message

        Raises:
            ApiError: On transport errors, non-2xx status, or undecodable bodies
        """
        client = await self._get_client()
        logger.debug(f"{method} {path}")

        try:
            response = await client.request(method, path, json=json, params=params)
        except httpx.HTTPError as e:
            raise ApiError(f"{failure}: {e}") from e

        if response.is_error:
            try:
                body = response.json()
            except ValueError:
                body = None
            message = _extract_message(body) or f"{failure} ({response.status_code})"
            raise ApiError(message, status_code=response.status_code)

        if response.status_code == 204 or not response.content:
            return None

        try:
            return response.json()
        except ValueError as e:
            raise ApiError(
                f"{failure}: invalid JSON response", status_code=response.status_code
            ) from e

    async def _mutation(
        self,
        method: str,
        path: str,
        *,
        json: dict[str, Any] | None = None,
        failure: str,
    ) -> Any:
        """Send a request answered with a ``{success, data, error}`` envelope.

        Returns:
            The envelope's ``data`` member

        Raises:
            ApiError: If the request fails or the envelope reports failure
        """
        body = await self._request(method, path, json=json, failure=failure)
        envelope = ApiEnvelope.model_validate(body if isinstance(body, dict) else {})
        if not envelope.success:
            message = (envelope.error.message if envelope.error else None) or failure
            raise ApiError(message)
        return envelope.data

    # ------------------------------------------------------------------
    # Service integrations
    # ------------------------------------------------------------------

    async def get_connection_status(self, provider: str) -> bool:
        """Return whether the service provider is connected for this user.

        Never raises: an unreachable or failing status endpoint counts as
        "not connected".
        """
        try:
            body = await self._request(
                "GET",
                f"/integrations/{provider.lower()}/status",
                failure="Failed to check connection status",
            )
        except ApiError as e:
            logger.warning(f"Connection status check failed: {e}")
            return False

        data = body.get("data") if isinstance(body, dict) else None
        return isinstance(data, dict) and data.get("connected") is True

    async def start_authorization(self, provider: str) -> AuthorizationStart:
        """Ask the backend for the provider's OAuth authorization URL."""
        data = await self._mutation(
            "GET",
            f"/integrations/{provider.lower()}/connect",
            failure=f"Failed to connect {provider.upper()}",
        )
        return _parse(AuthorizationStart, data, "Failed to start authorization")

    async def get_service_preview(self, provider: str, limit: int = 50) -> ServicePreview | None:
        """Fetch the per-category preview for a connected service.

        Returns:
            The preview, or None when the response carries no ``data``
        """
        body = await self._request(
            "GET",
            f"/integrations/{provider.lower()}/preview",
            params={"limit": limit},
            failure="Failed to fetch preview",
        )
        data = body.get("data") if isinstance(body, dict) else None
        if not isinstance(data, dict) or not data:
            return None
        try:
            return ServicePreview.from_wire(data)
        except ValidationError as e:
            raise ApiError("Failed to fetch preview: unexpected response format") from e

    async def save_sync_preferences(self, provider: str, preferences: dict[str, Any]) -> None:
        """Persist the per-category sync preferences."""
        await self._request(
            "PUT",
            f"/integrations/{provider.lower()}/sync-preferences",
            json=preferences,
            failure="Failed to save preferences",
        )

    async def sync_service(self, provider: str, sync_data: dict[str, Any]) -> Any:
        """Start a service sync; the backend applies the saved preferences."""
        return await self._mutation(
            "POST",
            f"/integrations/{provider.lower()}/sync",
            json=sync_data,
            failure=f"Failed to sync {provider.upper()}",
        )

    # ------------------------------------------------------------------
    # Banking
    # ------------------------------------------------------------------

    async def get_bank_preview(self, enrollment: TellerEnrollment) -> BankPreview | None:
        """Fetch the accounts available through a Teller enrollment.

        Returns:
            The preview, or None when the response carries no ``data``
        """
        body = await self._request(
            "POST",
            "/banking/preview",
            json={"enrollment": enrollment.to_wire()},
            failure="Failed to fetch preview",
        )
        data = body.get("data") if isinstance(body, dict) else None
        if not isinstance(data, dict):
            return None
        return _parse(BankPreview, data, "Failed to fetch preview")

    async def connect_teller_accounts(
        self, enrollment: TellerEnrollment, selected_account_ids: list[str]
    ) -> Any:
        """Persist the selected Teller accounts."""
        return await self._mutation(
            "POST",
            "/banking/teller/connect",
            json={
                "enrollment": enrollment.to_wire(),
                "selectedAccountIds": selected_account_ids or None,
            },
            failure="Failed to connect bank accounts",
        )

    async def create_stripe_session(self) -> StripeSessionStart:
        """Create a Financial Connections session and return its client secret."""
        data = await self._mutation(
            "POST",
            "/banking/stripe/session",
            failure="Failed to create Stripe session",
        )
        return _parse(StripeSessionStart, data, "Failed to create Stripe session")

    async def connect_stripe_accounts(
        self, session_id: str, selected_account_ids: list[str]
    ) -> Any:
        """Persist the selected Stripe Financial Connections accounts."""
        return await self._mutation(
            "POST",
            "/banking/stripe/connect",
            json={
                "sessionId": session_id,
                "selectedAccountIds": selected_account_ids or None,
            },
            failure="Failed to connect bank accounts",
        )
