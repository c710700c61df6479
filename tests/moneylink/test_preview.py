# ruff: noqa: S101
"""Tests for the preview manager."""

import asyncio

import httpx
import pytest

from moneylink.api.client import LinkingApiClient
from moneylink.config import MoneyLinkSettings
from moneylink.errors import EmptyPreviewError, HandshakeError, PreviewError
from moneylink.linking.preview import PreviewManager
from moneylink.linking.schemas import (
    BankAccountPreview,
    BankPreview,
    ServicePreview,
    TellerEnrollment,
)
from moneylink.linking.session import LinkSession, StripeHandshake, TellerHandshake
from moneylink.linking.steps import ProviderFamily

from conftest import (
    BANK_PREVIEW_DATA,
    SERVICE_PREVIEW_DATA,
    TELLER_SUCCESS_PAYLOAD,
    FakeBackend,
)


@pytest.fixture
def manager(api: LinkingApiClient, settings: MoneyLinkSettings) -> PreviewManager:
    return PreviewManager(api, settings.linking)


def _teller_session() -> LinkSession:
    session = LinkSession(provider_family=ProviderFamily.BANK, provider_id="teller")
    session.handshake_result = TellerHandshake(
        enrollment=TellerEnrollment.model_validate(TELLER_SUCCESS_PAYLOAD)
    )
    return session


class TestBankPreview:
    """Tests for bank previews."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_teller_preview_stored(
        self, manager: PreviewManager, backend: FakeBackend
    ) -> None:
        backend.on("POST", "/banking/preview", {"data": BANK_PREVIEW_DATA})
        session = _teller_session()

        preview = await manager.fetch_preview(session)

        assert isinstance(preview, BankPreview)
        assert session.preview is preview
        assert preview.account_ids == ["acc1", "acc2"]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_no_accounts_is_empty_preview(
        self, manager: PreviewManager, backend: FakeBackend
    ) -> None:
        backend.on(
            "POST", "/banking/preview", {"data": {"institutionName": "Acme", "accounts": []}}
        )
        session = _teller_session()

        with pytest.raises(EmptyPreviewError, match="No accounts available from this bank"):
            await manager.fetch_preview(session)

        assert session.preview is None

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_backend_failure(self, manager: PreviewManager, backend: FakeBackend) -> None:
        backend.on("POST", "/banking/preview", {"message": "Enrollment expired"}, status=401)

        with pytest.raises(PreviewError, match="Enrollment expired"):
            await manager.fetch_preview(_teller_session())

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_missing_enrollment(self, manager: PreviewManager, backend: FakeBackend) -> None:
        session = LinkSession(provider_family=ProviderFamily.BANK, provider_id="teller")

        with pytest.raises(HandshakeError, match="Missing enrollment data"):
            await manager.fetch_preview(session)

        assert backend.requests == []

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_stripe_preview_from_handshake(
        self, manager: PreviewManager, backend: FakeBackend
    ) -> None:
        """Stripe accounts come from the handshake, not the backend."""
        session = LinkSession(provider_family=ProviderFamily.BANK, provider_id="stripe")
        session.handshake_result = StripeHandshake(
            session_id="fcsess_1",
            accounts=(BankAccountPreview.model_validate({"id": "fca_1"}),),
        )

        preview = await manager.fetch_preview(session)

        assert isinstance(preview, BankPreview)
        assert preview.account_ids == ["fca_1"]
        assert backend.requests == []


class TestServicePreview:
    """Tests for service previews."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_service_preview(
        self, manager: PreviewManager, backend: FakeBackend, settings: MoneyLinkSettings
    ) -> None:
        backend.on("GET", "/integrations/quickbooks/preview", {"data": SERVICE_PREVIEW_DATA})
        session = LinkSession(provider_family=ProviderFamily.SERVICE, provider_id="quickbooks")

        preview = await manager.fetch_preview(session)

        assert isinstance(preview, ServicePreview)
        request = backend.calls("GET", "/integrations/quickbooks/preview")[0]
        assert request.url.params["limit"] == str(settings.linking.preview_limit)

    @pytest.mark.unit
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "body",
        [
            {},
            {"data": {}},
            {"data": {"accounts": {"available": False, "count": 0, "preview": []}}},
        ],
    )
    async def test_empty_service_preview(
        self, manager: PreviewManager, backend: FakeBackend, body: dict[str, object]
    ) -> None:
        backend.on("GET", "/integrations/xero/preview", body)
        session = LinkSession(provider_family=ProviderFamily.SERVICE, provider_id="xero")

        with pytest.raises(EmptyPreviewError, match="No preview data available"):
            await manager.fetch_preview(session)

        assert session.preview is None


class TestInFlightGuard:
    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_overlapping_fetch_rejected(
        self, backend: FakeBackend, settings: MoneyLinkSettings
    ) -> None:
        """Only one preview request runs at a time."""
        backend.on("GET", "/integrations/quickbooks/preview", {"data": SERVICE_PREVIEW_DATA})

        async def slow_handler(request: httpx.Request) -> httpx.Response:
            await asyncio.sleep(0.01)
            return backend.handler(request)

        api = LinkingApiClient(settings.api, transport=httpx.MockTransport(slow_handler))
        manager = PreviewManager(api, settings.linking)
        session = LinkSession(provider_family=ProviderFamily.SERVICE, provider_id="quickbooks")

        first, second = await asyncio.gather(
            manager.fetch_preview(session), manager.fetch_preview(session)
        )

        assert isinstance(first, ServicePreview)
        assert second is None
        assert len(backend.calls("GET", "/integrations/quickbooks/preview")) == 1
        assert not manager.is_loading


class TestExistingConnection:
    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_bank_never_checks(self, manager: PreviewManager, backend: FakeBackend) -> None:
        session = LinkSession(provider_family=ProviderFamily.BANK, provider_id="teller")

        assert await manager.check_existing_connection(session) is False
        assert backend.requests == []
