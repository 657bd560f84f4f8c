"""Tests for live per-account health checks."""

import httpx
import pytest

from qwen_code_proxy.config.provider import ProviderSettings
from qwen_code_proxy.services import AccountHealthChecker, ProviderClient
from qwen_code_proxy.services.account_health import format_expires_in
from qwen_code_proxy.store import AccountCredential, CredentialStore, MemoryKeyValueStore


def upstream(request: httpx.Request) -> httpx.Response:
    if request.url.path.endswith("/oauth2/token"):
        return httpx.Response(200, json={"access_token": "tok-renewed", "expires_in": 3600})
    token = request.headers["Authorization"].removeprefix("Bearer ")
    if token in ("tok-ok", "tok-renewed"):
        return httpx.Response(200, json={"choices": []})
    if token == "tok-quota":
        return httpx.Response(429, text="quota exceeded")
    return httpx.Response(500, text="internal error")


@pytest.fixture
def checker(store, registry, clock, make_refresher, mock_client) -> AccountHealthChecker:
    provider = ProviderClient(ProviderSettings(), mock_client(upstream))
    return AccountHealthChecker(store, registry, make_refresher(upstream), provider, clock=clock)


@pytest.mark.unit
async def test_check_all_reports_each_account(
    checker: AccountHealthChecker,
    store: CredentialStore,
    kv: MemoryKeyValueStore,
    registry,
    make_credential,
) -> None:
    await store.put("ok", make_credential(42, access_token="tok-ok"))
    await store.put("quota", make_credential(30, access_token="tok-quota"))
    await store.put("broken", make_credential(30, access_token="tok-broken"))
    await kv.put("ACCOUNT:missing", "{")
    await registry.mark_failed("quota")

    results = {health.account: health for health in await checker.check_all()}

    assert list(results) == ["ok", "quota", "broken", "missing"]
    assert results["ok"].to_dict() == {
        "account": "ok",
        "status": "healthy",
        "error": None,
        "expires_in": "42 min",
        "is_failed": False,
        "api_status": 200,
    }
    assert results["quota"].status == "quota_exceeded"
    assert results["quota"].is_failed is True
    assert results["quota"].api_status == 429
    assert results["broken"].status == "error"
    assert results["broken"].error == "internal error"
    assert results["missing"].status == "missing_credentials"
    assert results["missing"].expires_in == "unknown"


@pytest.mark.unit
async def test_expired_account_is_refreshed_before_the_ping(
    checker: AccountHealthChecker, store: CredentialStore, make_credential
) -> None:
    await store.put("stale", make_credential(-10, access_token="tok-expired"))

    [health] = await checker.check_all()

    assert health.status == "healthy"
    assert health.expires_in == "60 min"


@pytest.mark.unit
async def test_health_check_does_not_touch_failed_set(
    checker: AccountHealthChecker, store: CredentialStore, registry, make_credential
) -> None:
    await store.put("quota", make_credential(30, access_token="tok-quota"))

    await checker.check_all()

    assert await registry.list_failed() == []


@pytest.mark.unit
def test_format_expires_in(clock) -> None:
    credential = AccountCredential(access_token="a", refresh_token="r", expiry_date=0)

    assert format_expires_in(credential, clock) == "expired"
