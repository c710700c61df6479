"""Provider SDK loader.

Ensures the active bank provider's SDK script is present exactly once and
records a single ready/error outcome on the :class:`LinkSession`. Loading is
deferred until the session reaches its connect step. No timeout is applied;
the host's own network behaviour governs script loading.
"""

import logging
from collections.abc import Awaitable, Callable
from typing import Any, Protocol

from ..errors import ConfigurationError, SdkLoadError
from ..linking.session import LinkSession
from .factory import ProviderClientFactory, ProviderHandle

logger = logging.getLogger(__name__)


class ScriptHost(Protocol):
    """Execution environment that can host provider SDK scripts."""

    def get_global(self, name: str) -> Any | None:
        """Return a global SDK entry point, or None if not present."""
        ...

    async def load_script(self, url: str) -> None:
        """Inject a script and wait for its load event.

        Raises:
            SdkLoadError: If the script fails to load
        """
        ...


class InProcessScriptHost:
    """Script host whose "scripts" are Python installers registered by URL.

    Installers return the globals the script defines. Embedding applications
    register bridges to real provider SDKs here; a URL with no installer fails
    to load like an unreachable CDN would.
    """

    def __init__(
        self,
        globals_: dict[str, Any] | None = None,
        installers: dict[str, Callable[[], Awaitable[dict[str, Any]]]] | None = None,
    ):
        self.globals: dict[str, Any] = dict(globals_ or {})
        self.installers = dict(installers or {})
        self.injected: list[str] = []

    def get_global(self, name: str) -> Any | None:
        return self.globals.get(name)

    async def load_script(self, url: str) -> None:
        self.injected.append(url)
        installer = self.installers.get(url)
        if installer is None:
            raise SdkLoadError(f"No script available at {url}")
        self.globals.update(await installer())


class SdkLoader:
    """Loads and initializes the SDK for one session's provider."""

    def __init__(self, host: ScriptHost | None, factories: dict[str, ProviderClientFactory]):
        self.host = host
        self.factories = factories
        self._handle: ProviderHandle | None = None

    @property
    def handle(self) -> ProviderHandle | None:
        """The initialized provider handle, once loading succeeded."""
        return self._handle

    async def ensure_loaded(self, session: LinkSession) -> ProviderHandle | None:
        """Load the provider SDK if the session's current step needs it.

        SERVICE providers need no SDK and are marked ready immediately. When
        the session is already ready, nothing is re-injected.

        Returns:
            The provider handle for BANK providers once ready, else None

        Raises:
            ConfigurationError: If the provider is not configured client-side
            SdkLoadError: If the script fails to load or initialize
        """
        if not session.is_bank:
            session.mark_sdk_ready()
            return None

        if session.steps.index < session.steps.index_of(session.steps.connect_step):
            return None

        if session.sdk_ready and self._handle is not None:
            return self._handle

        factory = self.factories.get(session.provider_id)
        if factory is None or self.host is None:
            message = "Bank connection not properly configured"
            session.mark_sdk_failed(message)
            raise ConfigurationError(message)

        sdk_global = self.host.get_global(factory.global_name)
        if sdk_global is None:
            logger.info(f"Loading {factory.display_name} SDK from {factory.script_url}")
            try:
                await self.host.load_script(factory.script_url)
            except (SdkLoadError, OSError) as e:
                message = f"Failed to load {factory.display_name} SDK"
                session.mark_sdk_failed(message)
                raise SdkLoadError(message) from e
            sdk_global = self.host.get_global(factory.global_name)
            if sdk_global is None:
                message = f"Failed to load {factory.display_name} SDK"
                session.mark_sdk_failed(message)
                raise SdkLoadError(message)

        try:
            handle = factory.create(sdk_global)
        except ConfigurationError as e:
            session.mark_sdk_failed(e.message)
            raise

        self._handle = handle
        session.mark_sdk_ready()
        logger.debug(f"{factory.display_name} SDK ready")
        return handle
