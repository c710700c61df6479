"""Exception hierarchy for the account-linking flow.

Every error carries a short ``title`` suitable for a user-facing notification;
``str(error)`` is the descriptive message shown beneath it.
"""


class LinkError(Exception):
    """Base class for all linking-flow failures."""

    title = "Something Went Wrong"

    def __init__(self, message: str, *, title: str | None = None):
        super().__init__(message)
        self.message = message
        if title is not None:
            self.title = title


class ConfigurationError(LinkError):
    """A required environment identifier (application id, publishable key) is missing.

    Not retryable without a redeploy.
    """

    title = "Configuration Error"


class SdkLoadError(LinkError):
    """The provider SDK script failed to load or initialize."""

    title = "Failed to Load Provider"


class PopupBlockedError(LinkError):
    """The browser refused to open the OAuth popup window."""

    title = "Popup Blocked"

    def __init__(self, message: str = "Please allow popups for this site and try again"):
        super().__init__(message)


class HandshakeError(LinkError):
    """The provider authorization exchange failed."""

    title = "Authorization Failed"


class InvalidHandshakePayloadError(HandshakeError):
    """The provider reported success but the payload lacks required fields."""


class PreviewError(LinkError):
    """Fetching the preview of linkable entities failed."""

    title = "Failed to Load Data"


class EmptyPreviewError(PreviewError):
    """The preview request succeeded but returned nothing to link."""


class SelectionValidationError(LinkError):
    """The current selection cannot be committed (nothing selected)."""

    title = "Nothing Selected"


class CommitError(LinkError):
    """Persisting the selection or starting the sync failed."""

    title = "Connection Failed"


class ApiError(LinkError):
    """A backend request failed at the HTTP or envelope level."""

    title = "Request Failed"

    def __init__(self, message: str, *, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code
