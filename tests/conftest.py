"""Shared fixtures: in-memory store, pinned clock and mocked upstream HTTP."""

import random
from collections.abc import Callable
from datetime import UTC, datetime, timedelta

import httpx
import pytest

from qwen_code_proxy.config.oauth import OAuthSettings
from qwen_code_proxy.core.clock import to_millis
from qwen_code_proxy.rotation import FailureRegistry, TokenRefresher
from qwen_code_proxy.store import AccountCredential, CredentialStore, MemoryKeyValueStore


FIXED_NOW = datetime(2025, 6, 1, 12, 0, tzinfo=UTC)


class FakeClock:
    """Callable clock pinned to a moment that tests can move forward."""

    def __init__(self, now: datetime = FIXED_NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


class FixedRandom(random.Random):
    """Random source whose ``random()`` always returns the same draw."""

    def __init__(self, draw: float) -> None:
        super().__init__(0)
        self.draw = draw

    def random(self) -> float:
        return self.draw


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def kv() -> MemoryKeyValueStore:
    return MemoryKeyValueStore()


@pytest.fixture
def store(kv: MemoryKeyValueStore) -> CredentialStore:
    return CredentialStore(kv)


@pytest.fixture
def registry(store: CredentialStore, clock: FakeClock) -> FailureRegistry:
    return FailureRegistry(store, clock=clock)


@pytest.fixture
def oauth_settings() -> OAuthSettings:
    return OAuthSettings(device_poll_interval=0, device_poll_attempts=5)


@pytest.fixture
def make_credential() -> Callable[..., AccountCredential]:
    """Build a credential expiring ``minutes_left`` minutes after ``now``."""

    def _make(
        minutes_left: float,
        *,
        access_token: str = "access-token",
        refresh_token: str = "refresh-token",
        resource_url: str | None = None,
        now: datetime = FIXED_NOW,
    ) -> AccountCredential:
        return AccountCredential(
            access_token=access_token,
            refresh_token=refresh_token,
            expiry_date=to_millis(now + timedelta(minutes=minutes_left)),
            scope="openid profile email model.completion",
            resource_url=resource_url,
        )

    return _make


@pytest.fixture
def make_rng() -> Callable[[float], random.Random]:
    return FixedRandom


@pytest.fixture
def mock_client() -> Callable[[Callable[[httpx.Request], httpx.Response]], httpx.AsyncClient]:
    """Wrap a request handler in an ``httpx.AsyncClient`` with no network access."""

    def _make(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(handler))

    return _make


@pytest.fixture
def make_refresher(
    store: CredentialStore,
    clock: FakeClock,
    oauth_settings: OAuthSettings,
    mock_client: Callable[..., httpx.AsyncClient],
) -> Callable[[Callable[[httpx.Request], httpx.Response]], TokenRefresher]:
    def _make(handler: Callable[[httpx.Request], httpx.Response]) -> TokenRefresher:
        return TokenRefresher(store, config=oauth_settings, client=mock_client(handler), clock=clock)

    return _make
