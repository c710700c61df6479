"""Backend API access for the linking flow."""

from .client import LinkingApiClient

__all__ = ["LinkingApiClient"]
