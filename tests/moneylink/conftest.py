"""Shared pytest fixtures for moneylink tests.

This module provides common fixtures and test doubles used across the test
suite: profile cleanup, fast-timing settings, an in-memory backend served
through ``httpx.MockTransport``, and fake provider SDKs and popup windows.
"""

import asyncio
import json
from collections.abc import Generator
from typing import Any

import httpx
import pytest

from moneylink.api.client import LinkingApiClient
from moneylink.config import (
    ApiConfig,
    LinkingConfig,
    MoneyLinkSettings,
    StripeConfig,
    TellerConfig,
    clear_settings_cache,
    set_current_profile,
)
from moneylink.sdk.loader import InProcessScriptHost

TELLER_SUCCESS_PAYLOAD: dict[str, Any] = {
    "accessToken": "tok",
    "enrollment": {"id": "e1", "institution": {"id": "i1", "name": "Acme Bank"}},
}

BANK_PREVIEW_DATA: dict[str, Any] = {
    "institutionName": "Acme Bank",
    "totalAccounts": 2,
    "accounts": [
        {"id": "acc1", "name": "Checking", "type": "depository", "lastFour": "1234"},
        {"id": "acc2", "name": "Savings", "type": "depository", "lastFour": "5678"},
    ],
}

SERVICE_PREVIEW_DATA: dict[str, Any] = {
    "accounts": {
        "available": True,
        "count": 2,
        "preview": [{"id": "a1", "name": "Operating"}, {"id": "a2", "name": "Payroll"}],
    },
    "invoices": {"available": True, "count": 1, "preview": [{"id": 101, "name": "INV-101"}]},
    "vendors": {"available": False, "count": 0, "preview": []},
}


@pytest.fixture(autouse=True)
def clean_profile_state() -> Generator[None, None, None]:
    """Automatically reset profile state before and after each test.

    Clears the settings cache and resets the current profile to 'test' so
    tests do not leak configuration into each other.
    """
    clear_settings_cache()
    set_current_profile("test")

    yield

    clear_settings_cache()
    set_current_profile("test")


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


@pytest.fixture
def settings() -> MoneyLinkSettings:
    """Settings with provider identifiers set and near-zero timings."""
    return MoneyLinkSettings(
        profile="test",
        api=ApiConfig(base_url="http://backend.test"),
        teller=TellerConfig(application_id="app_test_123"),
        stripe=StripeConfig(publishable_key="pk_test_123"),
        linking=LinkingConfig(
            popup_poll_interval=0.01,
            auth_timeout=0.5,
            callback_grace_period=0,
            bank_progress_interval=0.001,
            service_progress_interval=0.001,
        ),
    )


# ---------------------------------------------------------------------------
# Backend
# ---------------------------------------------------------------------------


class FakeBackend:
    """In-memory backend routing requests by method and path."""

    def __init__(self) -> None:
        self.routes: dict[tuple[str, str], tuple[int, Any]] = {}
        self.requests: list[httpx.Request] = []

    def on(self, method: str, path: str, body: Any = None, status: int = 200) -> None:
        self.routes[(method, path)] = (status, body)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        key = (request.method, request.url.path)
        if key not in self.routes:
            return httpx.Response(404, json={"message": f"No route for {key[0]} {key[1]}"})
        status, body = self.routes[key]
        if status == 204:
            return httpx.Response(204)
        return httpx.Response(status, json=body)

    def calls(self, method: str, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == method and r.url.path == path]

    @staticmethod
    def body(request: httpx.Request) -> Any:
        return json.loads(request.content)


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def api(backend: FakeBackend, settings: MoneyLinkSettings) -> LinkingApiClient:
    """API client whose transport is served by the fake backend."""
    return LinkingApiClient(settings.api, transport=httpx.MockTransport(backend.handler))


# ---------------------------------------------------------------------------
# Provider SDK doubles
# ---------------------------------------------------------------------------


class FakeTellerInstance:
    """Widget instance that fires one callback when opened."""

    def __init__(self, sdk: "FakeTellerConnect", options: dict[str, Any]):
        self.sdk = sdk
        self.options = options
        self.opened = False

    def open(self) -> None:
        self.opened = True
        loop = asyncio.get_running_loop()
        loop.call_soon(self.options["onEvent"], {"type": "opened"})
        if self.sdk.exit:
            loop.call_soon(self.options["onExit"])
        else:
            loop.call_soon(self.options["onSuccess"], self.sdk.payload)

    def close(self) -> None:
        self.opened = False


class FakeTellerConnect:
    """Stand-in for the ``TellerConnect`` global."""

    def __init__(self, payload: Any = None, exit: bool = False):
        self.payload = payload if payload is not None else TELLER_SUCCESS_PAYLOAD
        self.exit = exit
        self.setups: list[dict[str, Any]] = []

    def setup(self, options: dict[str, Any]) -> FakeTellerInstance:
        self.setups.append(options)
        return FakeTellerInstance(self, options)


class FakeStripeInstance:
    def __init__(self, result: dict[str, Any]):
        self.result = result
        self.secrets: list[str] = []

    async def collect_financial_connections_accounts(self, client_secret: str) -> dict[str, Any]:
        self.secrets.append(client_secret)
        return self.result


class FakeStripe:
    """Stand-in for the ``Stripe`` global constructor."""

    def __init__(self, result: dict[str, Any]):
        self.instance = FakeStripeInstance(result)
        self.keys: list[str] = []

    def __call__(self, publishable_key: str) -> FakeStripeInstance:
        self.keys.append(publishable_key)
        return self.instance


@pytest.fixture
def teller_sdk() -> FakeTellerConnect:
    return FakeTellerConnect()


@pytest.fixture
def teller_host(teller_sdk: FakeTellerConnect, settings: MoneyLinkSettings) -> InProcessScriptHost:
    """Script host that installs the fake Teller SDK from its CDN URL."""

    async def install() -> dict[str, Any]:
        return {"TellerConnect": teller_sdk}

    return InProcessScriptHost(installers={settings.teller.script_url: install})


# ---------------------------------------------------------------------------
# Popup doubles
# ---------------------------------------------------------------------------


class FakePopup:
    """Popup that reports closed after a number of polls (never if None)."""

    def __init__(self, close_after: int | None = 2):
        self.close_after = close_after
        self.polls = 0

    @property
    def closed(self) -> bool:
        self.polls += 1
        return self.close_after is not None and self.polls > self.close_after


class FakePopupOpener:
    def __init__(self, popup: FakePopup | None):
        self.popup = popup
        self.screen_width = 1920
        self.screen_height = 1080
        self.opened: list[tuple[str, str, str]] = []

    def open(self, url: str, name: str, features: str) -> FakePopup | None:
        self.opened.append((url, name, features))
        return self.popup
