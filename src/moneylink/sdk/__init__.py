"""Third-party linking SDK loading and client factories."""

from .factory import (
    ModalSessionSdk,
    ProviderClientFactory,
    StripeClientFactory,
    TellerClientFactory,
    WidgetSdk,
    default_factories,
)
from .loader import InProcessScriptHost, ScriptHost, SdkLoader

__all__ = [
    "InProcessScriptHost",
    "ModalSessionSdk",
    "ProviderClientFactory",
    "ScriptHost",
    "SdkLoader",
    "StripeClientFactory",
    "TellerClientFactory",
    "WidgetSdk",
    "default_factories",
]
