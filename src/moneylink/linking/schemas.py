"""Pydantic schemas for linking payloads exchanged with providers and the backend.

These models validate the untyped payloads handed back by provider SDK
callbacks and backend JSON responses, and serialize outgoing requests in the
backend's camelCase wire format.
"""

from enum import Enum
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class BaseSchema(BaseModel):
    """Base schema with common configuration."""

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        str_strip_whitespace=True,
        populate_by_name=True,
    )


# ---------------------------------------------------------------------------
# Sync categories (SERVICE providers)
# ---------------------------------------------------------------------------


class SyncCategory(str, Enum):
    """Data categories an accounting service can sync."""

    ACCOUNTS = "accounts"
    TRANSACTIONS = "transactions"
    INVOICES = "invoices"
    BILLS = "bills"
    CUSTOMERS = "customers"
    VENDORS = "vendors"

    @property
    def sync_key(self) -> str:
        """Wire key of the category's enable flag."""
        return _SYNC_KEYS[self]

    @property
    def selected_ids_key(self) -> str:
        """Wire key of the category's selected-id restriction."""
        return _SELECTED_IDS_KEYS[self]


_SYNC_KEYS: dict[SyncCategory, str] = {
    SyncCategory.ACCOUNTS: "syncAccounts",
    SyncCategory.TRANSACTIONS: "syncTransactions",
    SyncCategory.INVOICES: "syncInvoices",
    SyncCategory.BILLS: "syncBills",
    SyncCategory.CUSTOMERS: "syncCustomers",
    SyncCategory.VENDORS: "syncVendors",
}

_SELECTED_IDS_KEYS: dict[SyncCategory, str] = {
    SyncCategory.ACCOUNTS: "selectedAccountIds",
    SyncCategory.TRANSACTIONS: "selectedTransactionIds",
    SyncCategory.INVOICES: "selectedInvoiceIds",
    SyncCategory.BILLS: "selectedBillIds",
    SyncCategory.CUSTOMERS: "selectedCustomerIds",
    SyncCategory.VENDORS: "selectedVendorIds",
}

DEFAULT_ENABLED_CATEGORIES = frozenset(
    {
        SyncCategory.ACCOUNTS,
        SyncCategory.TRANSACTIONS,
        SyncCategory.INVOICES,
        SyncCategory.BILLS,
    }
)


# ---------------------------------------------------------------------------
# Teller enrollment
# ---------------------------------------------------------------------------


class Institution(BaseSchema):
    """Institution the user enrolled with."""

    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)


class EnrollmentInfo(BaseSchema):
    """Teller enrollment metadata."""

    id: str = Field(..., min_length=1)
    institution: Institution


class TellerEnrollment(BaseSchema):
    """Validated ``onSuccess`` payload of the Teller Connect widget."""

    access_token: str = Field(..., min_length=1, alias="accessToken")
    enrollment: EnrollmentInfo

    def to_wire(self) -> dict[str, Any]:
        """Serialize in the shape the backend expects under ``enrollment``."""
        return self.model_dump(by_alias=True)


# ---------------------------------------------------------------------------
# Bank previews
# ---------------------------------------------------------------------------


class BankAccountPreview(BaseSchema):
    """One linkable bank account.

    Accepts both the backend's Teller account shape (``name``, ``lastFour``,
    ``subtype``) and Stripe Financial Connections account objects
    (``display_name``, ``last4``, ``subcategory``).
    """

    id: str
    name: str | None = Field(default=None, validation_alias=AliasChoices("name", "display_name"))
    institution_name: str | None = Field(
        default=None, validation_alias=AliasChoices("institution_name", "institutionName")
    )
    last_four: str | None = Field(
        default=None, validation_alias=AliasChoices("lastFour", "last4", "last_four")
    )
    type: str | None = Field(default=None, validation_alias=AliasChoices("type", "category"))
    subtype: str | None = Field(
        default=None, validation_alias=AliasChoices("subtype", "subcategory")
    )
    currency: str | None = None
    status: str | None = None

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v: Any) -> Any:
        """Backends occasionally send numeric ids."""
        if isinstance(v, int):
            return str(v)
        return v


class BankPreview(BaseSchema):
    """Accounts available to link from one bank connection."""

    institution_name: str = Field(default="Your Bank", alias="institutionName")
    total_accounts: int = Field(default=0, ge=0, alias="totalAccounts")
    accounts: list[BankAccountPreview] = Field(default_factory=list)
    session_id: str | None = Field(default=None, alias="sessionId")

    @property
    def account_ids(self) -> list[str]:
        """Identifiers of every previewed account, in display order."""
        return [account.id for account in self.accounts]


# ---------------------------------------------------------------------------
# Service previews
# ---------------------------------------------------------------------------


class PreviewItem(BaseSchema):
    """One linkable record inside a service category."""

    id: str
    name: str | None = None

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v: Any) -> Any:
        """Accounting services use numeric ids for some record types."""
        if isinstance(v, int):
            return str(v)
        return v


class CategoryPreview(BaseSchema):
    """Preview of one service data category."""

    available: bool = False
    count: int = Field(default=0, ge=0)
    items: list[PreviewItem] = Field(default_factory=list, alias="preview")

    @property
    def item_ids(self) -> list[str]:
        """Identifiers of the previewed items."""
        return [item.id for item in self.items]


class ServicePreview(BaseSchema):
    """Per-category preview returned by ``/integrations/{provider}/preview``."""

    categories: dict[SyncCategory, CategoryPreview] = Field(default_factory=dict)

    @classmethod
    def from_wire(cls, data: dict[str, Any]) -> "ServicePreview":
        """Build from the backend ``data`` object, skipping unknown keys."""
        known = {category.value for category in SyncCategory}
        return cls(
            categories={
                SyncCategory(key): CategoryPreview.model_validate(value)
                for key, value in data.items()
                if key in known and isinstance(value, dict)
            }
        )

    def get(self, category: SyncCategory) -> CategoryPreview | None:
        """Preview for one category, if the backend returned it."""
        return self.categories.get(category)

    @property
    def has_data(self) -> bool:
        """True when at least one category is available or has records."""
        return any(
            preview.available or preview.count > 0 or preview.items
            for preview in self.categories.values()
        )


# ---------------------------------------------------------------------------
# Backend envelopes
# ---------------------------------------------------------------------------


class ApiErrorDetail(BaseSchema):
    """Error object inside a backend envelope."""

    message: str | None = None
    code: str | None = None


class ApiEnvelope(BaseSchema):
    """``{success, data?, error?}`` response envelope used by mutations."""

    success: bool = False
    data: Any = None
    error: ApiErrorDetail | None = None


class AuthorizationStart(BaseSchema):
    """Response of ``/integrations/{provider}/connect``."""

    authorization_url: str = Field(..., min_length=1, alias="authorizationUrl")
    state: str | None = None


class StripeSessionStart(BaseSchema):
    """Response of the Stripe session creation endpoint."""

    client_secret: str = Field(..., min_length=1, alias="clientSecret")


# ---------------------------------------------------------------------------
# Stripe Financial Connections
# ---------------------------------------------------------------------------


class StripeSdkError(BaseSchema):
    """Error member of a ``collectFinancialConnectionsAccounts`` result."""

    message: str | None = None
    type: str | None = None
    code: str | None = None


class FinancialConnectionsSession(BaseSchema):
    """Session object returned by Stripe.js."""

    id: str
    accounts: list[BankAccountPreview] = Field(default_factory=list)


class StripeCollectResult(BaseSchema):
    """Result of ``collectFinancialConnectionsAccounts``."""

    session: FinancialConnectionsSession | None = Field(
        default=None, alias="financialConnectionsSession"
    )
    error: StripeSdkError | None = None
