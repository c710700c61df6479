"""User-visible notifications (toasts) raised by the linking flow."""

import logging
from dataclasses import dataclass
from typing import Literal, Protocol

from ..errors import LinkError

logger = logging.getLogger(__name__)

Variant = Literal["default", "destructive"]


@dataclass(frozen=True)
class Notification:
    """A transient notification with a short title and descriptive message."""

    title: str
    description: str
    variant: Variant = "default"

    @classmethod
    def from_error(cls, error: LinkError, *, title: str | None = None) -> "Notification":
        """Build a destructive notification from a linking error."""
        return cls(title=title or error.title, description=error.message, variant="destructive")


class Notifier(Protocol):
    """Sink for notifications; implemented by the UI layer."""

    def notify(self, notification: Notification) -> None: ...


class LoggingNotifier:
    """Notifier that logs every notification and keeps a history.

    Used as the default sink when no UI is attached (CLI, tests).
    """

    def __init__(self) -> None:
        self.history: list[Notification] = []

    def notify(self, notification: Notification) -> None:
        self.history.append(notification)
        if notification.variant == "destructive":
            logger.warning(f"{notification.title}: {notification.description}")
        else:
            logger.info(f"{notification.title}: {notification.description}")

    @property
    def last(self) -> Notification | None:
        return self.history[-1] if self.history else None
