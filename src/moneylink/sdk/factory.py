"""Provider client factories for third-party linking SDKs.

Each bank provider ships a browser SDK exposed as a global entry point once
its script has loaded (``TellerConnect``, ``Stripe``). Rather than reaching
for those globals, the linking flow asks a factory to turn the loaded entry
point into a capability-typed handle:

- :class:`WidgetSdk` for widget-based providers (Teller Connect)
- :class:`ModalSessionSdk` for modal-session providers (Stripe Financial Connections)

Factories also own the provider's client-side configuration check; a missing
application id or publishable key raises :class:`ConfigurationError`, kept
distinct from script load failures.
"""

import inspect
import logging
from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Any, Protocol

from pydantic import ValidationError

from ..config import StripeConfig, TellerConfig
from ..errors import ConfigurationError, HandshakeError
from ..linking.schemas import StripeCollectResult

logger = logging.getLogger(__name__)


class WidgetInstance(Protocol):
    """Handle returned by a widget SDK's ``setup`` call."""

    def open(self) -> None: ...

    def close(self) -> None: ...


class WidgetSdk:
    """Capability handle for the Teller Connect widget."""

    def __init__(self, sdk_global: Any, config: TellerConfig):
        self._sdk = sdk_global
        self.config = config

    def setup(
        self,
        on_success: Callable[[Any], None],
        on_exit: Callable[[], None],
        on_event: Callable[[Any], None],
    ) -> WidgetInstance:
        """Create a widget instance wired to the given callbacks."""
        return self._sdk.setup(
            {
                "applicationId": self.config.application_id,
                "environment": self.config.environment,
                "onSuccess": on_success,
                "onExit": on_exit,
                "onEvent": on_event,
            }
        )


class ModalSessionSdk:
    """Capability handle for Stripe Financial Connections."""

    def __init__(self, stripe_instance: Any):
        self._stripe = stripe_instance

    async def collect_accounts(self, client_secret: str) -> StripeCollectResult:
        """Open the Financial Connections modal and return its result.

        Raises:
            HandshakeError: If the SDK returns a payload of unexpected shape
        """
        result = self._stripe.collect_financial_connections_accounts(client_secret=client_secret)
        if inspect.isawaitable(result):
            result = await result
        try:
            return StripeCollectResult.model_validate(result)
        except ValidationError as e:
            raise HandshakeError(
                "Unexpected response from Stripe", title="Connection Failed"
            ) from e


ProviderHandle = WidgetSdk | ModalSessionSdk


class ProviderClientFactory(ABC):
    """Builds a provider handle from the provider's loaded SDK entry point."""

    provider_id: str
    display_name: str
    global_name: str

    @property
    @abstractmethod
    def script_url(self) -> str:
        """CDN URL of the provider's SDK script."""

    @abstractmethod
    def create(self, sdk_global: Any) -> ProviderHandle:
        """Initialize the SDK and return a capability handle.

        Raises:
            ConfigurationError: If client-side configuration is missing
        """


class TellerClientFactory(ProviderClientFactory):
    provider_id = "teller"
    display_name = "Teller Connect"
    global_name = "TellerConnect"

    def __init__(self, config: TellerConfig):
        self.config = config

    @property
    def script_url(self) -> str:
        return self.config.script_url

    def create(self, sdk_global: Any) -> WidgetSdk:
        if not self.config.application_id:
            raise ConfigurationError("Teller application ID not configured")
        logger.debug(f"Teller Connect ready ({self.config.environment})")
        return WidgetSdk(sdk_global, self.config)


class StripeClientFactory(ProviderClientFactory):
    provider_id = "stripe"
    display_name = "Stripe"
    global_name = "Stripe"

    def __init__(self, config: StripeConfig):
        self.config = config

    @property
    def script_url(self) -> str:
        return self.config.script_url

    def create(self, sdk_global: Any) -> ModalSessionSdk:
        if not self.config.publishable_key:
            raise ConfigurationError("Stripe publishable key not configured")
        return ModalSessionSdk(sdk_global(self.config.publishable_key))


def default_factories(
    teller: TellerConfig, stripe: StripeConfig
) -> dict[str, ProviderClientFactory]:
    """Factories for every supported bank provider, keyed by provider id."""
    return {
        TellerClientFactory.provider_id: TellerClientFactory(teller),
        StripeClientFactory.provider_id: StripeClientFactory(stripe),
    }
