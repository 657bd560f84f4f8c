"""Tests for PKCE helpers and the OAuth device flow."""

from urllib.parse import parse_qs

import httpx
import pytest

from qwen_code_proxy.auth.oauth import (
    credential_from_token_response,
    generate_code_challenge,
    generate_pkce_pair,
    poll_device_token,
    refresh_access_token,
    start_device_flow,
)
from qwen_code_proxy.config.oauth import OAuthSettings
from qwen_code_proxy.exceptions import AuthorizationPendingError, TokenExchangeError
from qwen_code_proxy.store import AccountCredential


def form(request: httpx.Request) -> dict[str, str]:
    return {key: values[0] for key, values in parse_qs(request.content.decode()).items()}


@pytest.mark.unit
def test_code_challenge_matches_rfc_7636_example() -> None:
    verifier = "dBjftJeZ4CVP-mJ92K9TTPKvmkHZ2iHzbGbN8xAjbIU"

    assert generate_code_challenge(verifier) == "E9Melhoa2OwvFrEMTJguCHaoeK1t8URWbuGJSstw-cM"


@pytest.mark.unit
def test_pkce_pair() -> None:
    verifier, challenge = generate_pkce_pair()

    assert 43 <= len(verifier) <= 128
    assert challenge == generate_code_challenge(verifier)
    assert "=" not in challenge


@pytest.mark.unit
async def test_start_device_flow_sends_s256_challenge(oauth_settings: OAuthSettings, mock_client) -> None:
    sent: list[dict[str, str]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url == oauth_settings.device_code_url
        sent.append(form(request))
        return httpx.Response(
            200,
            json={
                "device_code": "dev-1",
                "user_code": "ABCD-EFGH",
                "verification_uri": "https://chat.qwen.ai/authorize",
                "verification_uri_complete": "https://chat.qwen.ai/authorize?user_code=ABCD-EFGH",
                "expires_in": 900,
            },
        )

    device = await start_device_flow(oauth_settings, client=mock_client(handler))

    assert device.device_code == "dev-1"
    assert device.user_code == "ABCD-EFGH"
    assert device.verification_uri_complete.endswith("user_code=ABCD-EFGH")
    assert sent[0]["code_challenge_method"] == "S256"
    assert sent[0]["code_challenge"] == generate_code_challenge(device.code_verifier)
    assert sent[0]["client_id"] == oauth_settings.client_id
    assert sent[0]["scope"] == oauth_settings.scope


@pytest.mark.unit
async def test_device_code_error_raises(oauth_settings: OAuthSettings, mock_client) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json={"error": "invalid_client"})

    with pytest.raises(TokenExchangeError) as exc_info:
        await start_device_flow(oauth_settings, client=mock_client(handler))

    assert exc_info.value.oauth_error == "invalid_client"
    assert exc_info.value.status_code == 400


@pytest.mark.unit
async def test_poll_retries_while_pending(oauth_settings: OAuthSettings, mock_client) -> None:
    polls: list[dict[str, str]] = []
    answers = [
        httpx.Response(400, json={"error": "authorization_pending"}),
        httpx.Response(429, json={"error": "slow_down"}),
        httpx.Response(200, json={"access_token": "at", "refresh_token": "rt", "expires_in": 3600}),
    ]

    def handler(request: httpx.Request) -> httpx.Response:
        polls.append(form(request))
        return answers.pop(0)

    data = await poll_device_token("dev-1", "verifier", oauth_settings, client=mock_client(handler))

    assert data["access_token"] == "at"
    assert len(polls) == 3
    assert polls[0]["grant_type"] == "urn:ietf:params:oauth:grant-type:device_code"
    assert polls[0]["device_code"] == "dev-1"
    assert polls[0]["code_verifier"] == "verifier"


@pytest.mark.unit
async def test_poll_fails_immediately_on_denial(oauth_settings: OAuthSettings, mock_client) -> None:
    calls = 0

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal calls
        calls += 1
        return httpx.Response(400, json={"error": "access_denied"})

    with pytest.raises(TokenExchangeError) as exc_info:
        await poll_device_token("dev-1", "verifier", oauth_settings, client=mock_client(handler))

    assert calls == 1
    assert exc_info.value.oauth_error == "access_denied"


@pytest.mark.unit
async def test_poll_times_out(mock_client) -> None:
    config = OAuthSettings(device_poll_interval=0, device_poll_attempts=2)
    calls = 0

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal calls
        calls += 1
        return httpx.Response(400, json={"error": "authorization_pending"})

    with pytest.raises(TokenExchangeError, match="timeout") as exc_info:
        await poll_device_token("dev-1", "verifier", config, client=mock_client(handler))

    assert calls == 2
    assert not isinstance(exc_info.value, AuthorizationPendingError)


@pytest.mark.unit
def test_credential_from_token_response_for_new_login() -> None:
    credential = credential_from_token_response(
        {
            "access_token": "at",
            "refresh_token": "rt",
            "token_type": "Bearer",
            "expires_in": 600,
            "scope": "openid",
            "resource_url": "portal.qwen.ai",
        },
        now_ms=1_000,
    )

    assert credential.to_dict() == {
        "access_token": "at",
        "refresh_token": "rt",
        "scope": "openid",
        "token_type": "Bearer",
        "expiry_date": 601_000,
        "resource_url": "portal.qwen.ai",
    }


@pytest.mark.unit
def test_credential_from_token_response_defaults_expiry() -> None:
    previous = AccountCredential(
        access_token="old", refresh_token="old-rt", expiry_date=0, scope="openid", extra={"k": "v"}
    )

    credential = credential_from_token_response({"access_token": "at"}, now_ms=0, previous=previous)

    assert credential.expiry_date == 3_600_000
    assert credential.refresh_token == "old-rt"
    assert credential.scope == "openid"
    assert credential.extra == {"k": "v"}


@pytest.mark.unit
async def test_refresh_coerces_numeric_string_expires_in(oauth_settings: OAuthSettings, mock_client) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"access_token": "at", "expires_in": "1800"})

    data = await refresh_access_token("rt", oauth_settings, client=mock_client(handler))

    assert data["expires_in"] == 1800


@pytest.mark.unit
@pytest.mark.parametrize("expires_in", ["soon", [3600], {"seconds": 60}])
async def test_refresh_rejects_unusable_expires_in(
    expires_in: object, oauth_settings: OAuthSettings, mock_client
) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"access_token": "at", "expires_in": expires_in})

    with pytest.raises(TokenExchangeError, match="Invalid expires_in"):
        await refresh_access_token("rt", oauth_settings, client=mock_client(handler))
