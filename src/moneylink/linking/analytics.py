"""Product analytics events captured when the user confirms a commit."""

import logging
from dataclasses import dataclass, field
from typing import Any, Protocol

logger = logging.getLogger(__name__)

SERVICE_PREFERENCES_CONFIRMED = "service_sync_preferences_confirmed"
BANK_IMPORT_CONFIRMED = "bank_accounts_import_confirmed"


@dataclass(frozen=True)
class AnalyticsEvent:
    """A named event with flat, JSON-serializable properties."""

    name: str
    properties: dict[str, Any] = field(default_factory=dict)


class EventSink(Protocol):
    """Destination for analytics events; implemented by the host application."""

    def capture(self, event: AnalyticsEvent) -> None: ...


class LoggingEventSink:
    """Event sink that logs every event and keeps a history.

    Used when no analytics backend is attached (CLI, tests).
    """

    def __init__(self) -> None:
        self.events: list[AnalyticsEvent] = []

    def capture(self, event: AnalyticsEvent) -> None:
        self.events.append(event)
        logger.debug(f"Analytics event {event.name}: {event.properties}")

    def named(self, name: str) -> list[AnalyticsEvent]:
        return [e for e in self.events if e.name == name]
