"""Root state of one linking attempt.

A :class:`LinkSession` is created when the linking page mounts and discarded
when the user leaves or finishes. It is never persisted.
"""

from dataclasses import dataclass, field

from .schemas import BankAccountPreview, BankPreview, ServicePreview, TellerEnrollment
from .selection import BankSelection, ServiceSelection
from .steps import ProviderFamily, StepMachine

BANK_PROVIDERS = frozenset({"teller", "stripe"})


# ---------------------------------------------------------------------------
# Handshake results
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TellerHandshake:
    """Enrollment bundle delivered by the Teller Connect widget."""

    enrollment: TellerEnrollment


@dataclass(frozen=True)
class StripeHandshake:
    """Financial Connections session, including the accounts it linked."""

    session_id: str
    accounts: tuple[BankAccountPreview, ...]

    def to_preview(self) -> BankPreview:
        institution = next(
            (a.institution_name for a in self.accounts if a.institution_name), "Your Bank"
        )
        return BankPreview(
            institutionName=institution,
            totalAccounts=len(self.accounts),
            accounts=list(self.accounts),
            sessionId=self.session_id,
        )


@dataclass(frozen=True)
class ServiceHandshake:
    """Outcome of a service OAuth popup.

    ``connected`` is None when the status could not be confirmed and the flow
    continued optimistically (timeout or manual continue).
    """

    connected: bool | None
    via: str = "popup"


HandshakeResult = TellerHandshake | StripeHandshake | ServiceHandshake


# ---------------------------------------------------------------------------
# Session
# ---------------------------------------------------------------------------


@dataclass
class LinkSession:
    """Mutable state shared by the orchestrator's components."""

    provider_family: ProviderFamily
    provider_id: str
    steps: StepMachine = field(init=False)
    sdk_ready: bool = False
    sdk_error: str | None = None
    handshake_result: HandshakeResult | None = None
    preview: BankPreview | ServicePreview | None = None
    selection: BankSelection | ServiceSelection = field(init=False)
    sync_progress: int = 0

    def __post_init__(self) -> None:
        if not self.provider_id:
            raise ValueError("provider_id is required")
        self.provider_id = self.provider_id.lower()
        if self.provider_family is ProviderFamily.BANK and self.provider_id not in BANK_PROVIDERS:
            raise ValueError(
                f"Unsupported bank provider '{self.provider_id}'. "
                f"Expected one of: {', '.join(sorted(BANK_PROVIDERS))}"
            )
        self.steps = StepMachine(self.provider_family)
        self.selection = (
            BankSelection() if self.provider_family is ProviderFamily.BANK else ServiceSelection()
        )

    @classmethod
    def from_params(cls, integration_type: str | None, integration_id: str | None) -> "LinkSession":
        """Create a session from the page's ``type``/``integration`` parameters.

        Raises:
            ValueError: If the parameters do not name a supported provider
        """
        family = (
            ProviderFamily.BANK
            if (integration_type or "").lower() == "bank"
            else ProviderFamily.SERVICE
        )
        return cls(provider_family=family, provider_id=integration_id or "")

    @property
    def is_bank(self) -> bool:
        return self.provider_family is ProviderFamily.BANK

    @property
    def display_name(self) -> str:
        """Human-readable provider name, e.g. ``quick-books`` -> ``Quick books``."""
        name = self.provider_id.replace("-", " ").replace("_", " ")
        return name[:1].upper() + name[1:]

    @property
    def bank_selection(self) -> BankSelection:
        if not isinstance(self.selection, BankSelection):
            raise TypeError("Bank selection requested on a service session")
        return self.selection

    @property
    def service_selection(self) -> ServiceSelection:
        if not isinstance(self.selection, ServiceSelection):
            raise TypeError("Service selection requested on a bank session")
        return self.selection

    def mark_sdk_ready(self) -> None:
        self.sdk_ready = True
        self.sdk_error = None

    def mark_sdk_failed(self, message: str) -> None:
        self.sdk_ready = False
        self.sdk_error = message

    def reset_progress(self) -> None:
        self.sync_progress = 0
