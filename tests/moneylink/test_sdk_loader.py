# ruff: noqa: S101
"""Tests for provider client factories and the SDK loader."""

from typing import Any

import pytest

from moneylink.config import MoneyLinkSettings, StripeConfig, TellerConfig
from moneylink.errors import ConfigurationError, SdkLoadError
from moneylink.linking.session import LinkSession
from moneylink.linking.steps import ProviderFamily
from moneylink.sdk.factory import (
    ModalSessionSdk,
    StripeClientFactory,
    TellerClientFactory,
    WidgetSdk,
    default_factories,
)
from moneylink.sdk.loader import InProcessScriptHost, SdkLoader

from conftest import FakeStripe, FakeTellerConnect


def _bank_session(provider: str = "teller", at_connect: bool = True) -> LinkSession:
    session = LinkSession(provider_family=ProviderFamily.BANK, provider_id=provider)
    if at_connect:
        session.steps.advance()
    return session


class TestFactories:
    """Tests for per-provider client factories."""

    @pytest.mark.unit
    def test_teller_factory_builds_widget(self) -> None:
        sdk = FakeTellerConnect()
        config = TellerConfig(application_id="app_1", environment="production")
        factory = TellerClientFactory(config)

        handle = factory.create(sdk)
        handle.setup(on_success=print, on_exit=print, on_event=print)

        assert isinstance(handle, WidgetSdk)
        assert sdk.setups[0]["applicationId"] == "app_1"
        assert sdk.setups[0]["environment"] == "production"

    @pytest.mark.unit
    def test_teller_requires_application_id(self) -> None:
        with pytest.raises(ConfigurationError, match="Teller application ID not configured"):
            TellerClientFactory(TellerConfig()).create(FakeTellerConnect())

    @pytest.mark.unit
    def test_stripe_factory_passes_publishable_key(self) -> None:
        stripe = FakeStripe({})
        handle = StripeClientFactory(StripeConfig(publishable_key="pk_test_1")).create(stripe)

        assert isinstance(handle, ModalSessionSdk)
        assert stripe.keys == ["pk_test_1"]

    @pytest.mark.unit
    def test_stripe_requires_publishable_key(self) -> None:
        with pytest.raises(ConfigurationError, match="publishable key"):
            StripeClientFactory(StripeConfig()).create(FakeStripe({}))


class TestSdkLoader:
    """Tests for SdkLoader.ensure_loaded."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_service_marked_ready_without_sdk(self, settings: MoneyLinkSettings) -> None:
        session = LinkSession(provider_family=ProviderFamily.SERVICE, provider_id="quickbooks")
        loader = SdkLoader(None, default_factories(settings.teller, settings.stripe))

        assert await loader.ensure_loaded(session) is None
        assert session.sdk_ready

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_deferred_until_connect_step(
        self, settings: MoneyLinkSettings, teller_host: InProcessScriptHost
    ) -> None:
        session = _bank_session(at_connect=False)
        loader = SdkLoader(teller_host, default_factories(settings.teller, settings.stripe))

        assert await loader.ensure_loaded(session) is None
        assert teller_host.injected == []
        assert not session.sdk_ready

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_script_injected_once(
        self, settings: MoneyLinkSettings, teller_host: InProcessScriptHost
    ) -> None:
        """Loading is idempotent once the session is ready."""
        session = _bank_session()
        loader = SdkLoader(teller_host, default_factories(settings.teller, settings.stripe))

        first = await loader.ensure_loaded(session)
        second = await loader.ensure_loaded(session)

        assert isinstance(first, WidgetSdk)
        assert second is first
        assert teller_host.injected == [settings.teller.script_url]
        assert session.sdk_ready and session.sdk_error is None

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_existing_global_skips_injection(self, settings: MoneyLinkSettings) -> None:
        host = InProcessScriptHost(globals_={"TellerConnect": FakeTellerConnect()})
        session = _bank_session()

        await SdkLoader(host, default_factories(settings.teller, settings.stripe)).ensure_loaded(
            session
        )

        assert host.injected == []
        assert session.sdk_ready

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_load_failure_sets_error(self, settings: MoneyLinkSettings) -> None:
        session = _bank_session("stripe")
        loader = SdkLoader(
            InProcessScriptHost(), default_factories(settings.teller, settings.stripe)
        )

        with pytest.raises(SdkLoadError, match="Failed to load Stripe SDK"):
            await loader.ensure_loaded(session)

        assert not session.sdk_ready
        assert session.sdk_error == "Failed to load Stripe SDK"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_missing_key_is_configuration_error(self) -> None:
        """A loaded SDK without its publishable key is not a load failure."""
        host = InProcessScriptHost(globals_={"Stripe": FakeStripe({})})
        loader = SdkLoader(host, default_factories(TellerConfig(), StripeConfig()))
        session = _bank_session("stripe")

        with pytest.raises(ConfigurationError):
            await loader.ensure_loaded(session)

        assert session.sdk_error == "Stripe publishable key not configured"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_retry_after_failure(self, settings: MoneyLinkSettings) -> None:
        calls: list[str] = []

        async def flaky_install() -> dict[str, Any]:
            calls.append("install")
            if len(calls) == 1:
                raise OSError("network unreachable")
            return {"TellerConnect": FakeTellerConnect()}

        host = InProcessScriptHost(installers={settings.teller.script_url: flaky_install})
        loader = SdkLoader(host, default_factories(settings.teller, settings.stripe))
        session = _bank_session()

        with pytest.raises(SdkLoadError):
            await loader.ensure_loaded(session)
        await loader.ensure_loaded(session)

        assert session.sdk_ready
        assert len(host.injected) == 2
