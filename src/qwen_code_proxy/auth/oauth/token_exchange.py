"""Shared OAuth token exchange utilities.

Centralizes the Qwen token endpoint calls used by:
- qwen_code_proxy/rotation/refresh.py (refresh-token grant)
- qwen_code_proxy/cli/commands/accounts.py (device flow login)

Qwen's OAuth endpoints take standard form-encoded bodies and answer with JSON.
"""

import base64
import hashlib
import secrets
from dataclasses import dataclass
from typing import Any, NoReturn

import httpx
import orjson
from structlog import get_logger
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_fixed,
)

from qwen_code_proxy.config.oauth import OAuthSettings
from qwen_code_proxy.exceptions import AuthorizationPendingError, TokenExchangeError
from qwen_code_proxy.store.models import AccountCredential

from .constants import (
    CODE_CHALLENGE_METHOD,
    CODE_VERIFIER_BYTES,
    DEFAULT_TOKEN_EXPIRY_SECONDS,
    DEVICE_CODE_GRANT_TYPE,
    FORM_HEADERS,
    PENDING_OAUTH_ERRORS,
    REFRESH_TOKEN_GRANT_TYPE,
)


logger = get_logger(__name__)


@dataclass
class DeviceAuthorization:
    """Device-authorization response plus the PKCE verifier that goes with it."""

    device_code: str
    user_code: str
    verification_uri: str
    verification_uri_complete: str
    code_verifier: str
    expires_in: int | None = None
    interval: float | None = None


def generate_code_verifier() -> str:
    return secrets.token_urlsafe(CODE_VERIFIER_BYTES)


def generate_code_challenge(verifier: str) -> str:
    """S256 challenge: unpadded base64url of the verifier's SHA-256."""
    digest = hashlib.sha256(verifier.encode("ascii")).digest()
    return base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")


def generate_pkce_pair() -> tuple[str, str]:
    """Return ``(code_verifier, code_challenge)``."""
    verifier = generate_code_verifier()
    return verifier, generate_code_challenge(verifier)


def _parse_json(response: httpx.Response) -> dict[str, Any]:
    try:
        data = orjson.loads(response.content)
    except orjson.JSONDecodeError:
        return {}
    return data if isinstance(data, dict) else {}


def _handle_error_response(response: httpx.Response, operation: str) -> NoReturn:
    """Handle error response and raise TokenExchangeError."""
    error_text = response.text[:500]
    oauth_error = _parse_json(response).get("error")
    logger.error(
        f"oauth_{operation}_failed",
        status=response.status_code,
        oauth_error=oauth_error,
        error=error_text,
    )
    raise TokenExchangeError(
        f"{operation} failed: {response.status_code} {error_text}",
        status_code=response.status_code,
        response_text=error_text,
        oauth_error=oauth_error if isinstance(oauth_error, str) else None,
    )


def _token_response(response: httpx.Response, operation: str) -> dict[str, Any]:
    """Parse a successful token response; ``expires_in`` is coerced to whole seconds."""
    data = _parse_json(response)
    if not data.get("access_token"):
        raise TokenExchangeError(
            f"No access_token in {operation} response",
            status_code=response.status_code,
            response_text=response.text[:500],
        )
    if data.get("expires_in") is not None:
        try:
            data["expires_in"] = int(data["expires_in"])
        except (TypeError, ValueError) as e:
            raise TokenExchangeError(
                f"Invalid expires_in in {operation} response: {data['expires_in']!r}",
                status_code=response.status_code,
                response_text=response.text[:500],
            ) from e
    return data


async def _post_form(
    url: str,
    data: dict[str, str],
    config: OAuthSettings,
    client: httpx.AsyncClient | None,
) -> httpx.Response:
    if client is not None:
        return await client.post(url, data=data, headers=FORM_HEADERS, timeout=config.timeout)
    async with httpx.AsyncClient() as own_client:
        return await own_client.post(
            url, data=data, headers=FORM_HEADERS, timeout=config.timeout
        )


async def refresh_access_token(
    refresh_token: str,
    config: OAuthSettings | None = None,
    client: httpx.AsyncClient | None = None,
) -> dict[str, Any]:
    """Exchange a refresh token for a new access token.

    Args:
        refresh_token: Refresh token from a previous token response
        config: OAuth configuration (uses defaults if not provided)
        client: HTTP client to reuse; a short-lived one is created otherwise

    Returns:
        Token response dict with access_token, expires_in and optionally
        refresh_token, scope, token_type, resource_url

    Raises:
        TokenExchangeError: If the token endpoint rejects the request
        httpx.HTTPError: On transport failures
    """
    config = config or OAuthSettings()
    response = await _post_form(
        config.token_url,
        {
            "grant_type": REFRESH_TOKEN_GRANT_TYPE,
            "refresh_token": refresh_token,
            "client_id": config.client_id,
        },
        config,
        client,
    )
    if not response.is_success:
        _handle_error_response(response, "token_refresh")

    return _token_response(response, "refresh")


async def request_device_code(
    code_challenge: str,
    config: OAuthSettings | None = None,
    client: httpx.AsyncClient | None = None,
) -> dict[str, Any]:
    """Start a device-authorization request.

    Returns:
        Response with device_code, user_code, verification_uri and
        verification_uri_complete

    Raises:
        TokenExchangeError: If the endpoint fails or returns no device code
    """
    config = config or OAuthSettings()
    response = await _post_form(
        config.device_code_url,
        {
            "client_id": config.client_id,
            "scope": config.scope,
            "code_challenge": code_challenge,
            "code_challenge_method": CODE_CHALLENGE_METHOD,
        },
        config,
        client,
    )
    if not response.is_success:
        _handle_error_response(response, "device_code")

    data = _parse_json(response)
    if not data.get("device_code"):
        raise TokenExchangeError(
            f"Device authorization failed: {data.get('error', 'Unknown error')}",
            status_code=response.status_code,
            response_text=response.text[:500],
            oauth_error=data.get("error"),
        )
    return data


async def start_device_flow(
    config: OAuthSettings | None = None,
    client: httpx.AsyncClient | None = None,
) -> DeviceAuthorization:
    """Generate a PKCE pair and request a device code with it."""
    verifier, challenge = generate_pkce_pair()
    data = await request_device_code(challenge, config=config, client=client)
    verification_uri = data.get("verification_uri", "")
    return DeviceAuthorization(
        device_code=data["device_code"],
        user_code=data.get("user_code", ""),
        verification_uri=verification_uri,
        verification_uri_complete=data.get("verification_uri_complete") or verification_uri,
        code_verifier=verifier,
        expires_in=data.get("expires_in"),
        interval=data.get("interval"),
    )


async def _request_device_token(
    device_code: str,
    code_verifier: str,
    config: OAuthSettings,
    client: httpx.AsyncClient | None,
) -> dict[str, Any]:
    response = await _post_form(
        config.token_url,
        {
            "grant_type": DEVICE_CODE_GRANT_TYPE,
            "client_id": config.client_id,
            "device_code": device_code,
            "code_verifier": code_verifier,
        },
        config,
        client,
    )
    if response.is_success:
        return _token_response(response, "device token")

    oauth_error = _parse_json(response).get("error")
    if oauth_error in PENDING_OAUTH_ERRORS:
        raise AuthorizationPendingError(
            f"Device authorization pending: {oauth_error}",
            status_code=response.status_code,
            response_text=response.text[:500],
            oauth_error=oauth_error,
        )
    _handle_error_response(response, "device_token")


async def poll_device_token(
    device_code: str,
    code_verifier: str,
    config: OAuthSettings | None = None,
    client: httpx.AsyncClient | None = None,
) -> dict[str, Any]:
    """Poll the token endpoint until the user approves the device code.

    ``authorization_pending`` and ``slow_down`` are retried every
    ``config.device_poll_interval`` seconds, up to
    ``config.device_poll_attempts`` polls. Any other OAuth error fails at once.

    Raises:
        TokenExchangeError: On denial, expiry, or when polling times out
    """
    config = config or OAuthSettings()

    def before_sleep_log(retry_state: Any) -> None:
        logger.debug(
            "device_token_pending",
            attempt=retry_state.attempt_number,
            max_attempts=config.device_poll_attempts,
        )

    try:
        async for attempt in AsyncRetrying(
            retry=retry_if_exception_type(AuthorizationPendingError),
            wait=wait_fixed(config.device_poll_interval),
            stop=stop_after_attempt(config.device_poll_attempts),
            before_sleep=before_sleep_log,
            reraise=True,
        ):
            with attempt:
                data = await _request_device_token(device_code, code_verifier, config, client)
    except AuthorizationPendingError as e:
        raise TokenExchangeError(
            "Authentication timeout: device code was not approved in time",
            status_code=e.status_code,
            response_text=e.response_text,
            oauth_error=e.oauth_error,
        ) from e

    logger.info("device_token_obtained")
    return data


def credential_from_token_response(
    data: dict[str, Any],
    now_ms: int,
    previous: AccountCredential | None = None,
    fallback_refresh_token: str = "",
) -> AccountCredential:
    """Build a credential record from a token endpoint response.

    The refresh token is replaced only when the response carries one.
    ``resource_url`` and extra fields of ``previous`` are carried over unless
    the response supplies new values.
    """
    expires_in = data.get("expires_in") or DEFAULT_TOKEN_EXPIRY_SECONDS
    refresh_token = data.get("refresh_token") or fallback_refresh_token
    if not refresh_token and previous is not None:
        refresh_token = previous.refresh_token

    resource_url = data.get("resource_url") or data.get("endpoint")
    if not resource_url and previous is not None:
        resource_url = previous.resource_url

    extra = dict(previous.extra) if previous is not None else {}
    if data.get("id_token"):
        extra["id_token"] = data["id_token"]

    return AccountCredential(
        access_token=data["access_token"],
        refresh_token=refresh_token,
        expiry_date=now_ms + int(expires_in) * 1000,
        scope=data.get("scope") or (previous.scope if previous is not None else ""),
        token_type=data.get("token_type") or "Bearer",
        resource_url=resource_url,
        extra=extra,
    )
