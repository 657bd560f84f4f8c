"""HTTP client for the provider's OpenAI-compatible chat-completion API."""

from typing import Any

import httpx
import orjson
from structlog import get_logger

from qwen_code_proxy.adapters.openai.models import normalize_completion
from qwen_code_proxy.config.provider import ProviderSettings
from qwen_code_proxy.exceptions import ErrorKind, ProviderError
from qwen_code_proxy.rotation.constants import HEALTH_CHECK_MAX_TOKENS, HEALTH_CHECK_PROMPT
from qwen_code_proxy.store import AccountCredential


logger = get_logger(__name__)

# Optional generation parameters forwarded upstream
FORWARDED_PARAMETERS = (
    "temperature",
    "max_tokens",
    "top_p",
    "tools",
    "tool_choice",
    "stop",
    "n",
    "presence_penalty",
    "frequency_penalty",
    "seed",
    "response_format",
    "user",
    "stream_options",
)


def resolve_endpoint(resource_url: str | None, default_base_url: str) -> str:
    """API base URL for a credential.

    ``resource_url`` gets an ``https://`` scheme when it has none and a
    ``/v1`` suffix when missing; without one the default base URL is used.
    """
    if not resource_url:
        return default_base_url.rstrip("/")
    endpoint = resource_url if resource_url.startswith("http") else f"https://{resource_url}"
    endpoint = endpoint.rstrip("/")
    if not endpoint.endswith("/v1"):
        endpoint += "/v1"
    return endpoint


def build_payload(request: dict[str, Any], default_model: str, stream: bool = False) -> dict[str, Any]:
    """Upstream request body: model, messages and whitelisted parameters without None values."""
    payload: dict[str, Any] = {
        "model": request.get("model") or default_model,
        "messages": request.get("messages"),
    }
    for name in FORWARDED_PARAMETERS:
        value = request.get(name)
        if value is not None:
            payload[name] = value
    if stream:
        payload["stream"] = True
    return payload


class ProviderClient:
    """Issues chat-completion calls with one account's access token."""

    def __init__(self, settings: ProviderSettings, client: httpx.AsyncClient) -> None:
        self.settings = settings
        self._client = client

    def _request(self, credential: AccountCredential, payload: dict[str, Any]) -> httpx.Request:
        url = f"{resolve_endpoint(credential.resource_url, self.settings.base_url)}/chat/completions"
        return self._client.build_request(
            "POST",
            url,
            content=orjson.dumps(payload),
            headers={
                "Content-Type": "application/json",
                "Authorization": f"Bearer {credential.access_token}",
                "User-Agent": self.settings.user_agent,
            },
            timeout=self.settings.timeout,
        )

    async def complete(self, credential: AccountCredential, payload: dict[str, Any]) -> dict[str, Any]:
        """Non-streaming completion, normalized to the chat.completion envelope.

        Raises:
            ProviderError: On a non-2xx response or an undecodable body
            httpx.HTTPError: On transport failures
        """
        response = await self._client.send(self._request(credential, payload))
        if not response.is_success:
            raise ProviderError(response.status_code, response.text)
        try:
            data = orjson.loads(response.content)
        except orjson.JSONDecodeError as e:
            raise ProviderError(
                502, f"Invalid JSON from provider: {e}", kind=ErrorKind.OTHER
            ) from e
        if not isinstance(data, dict):
            raise ProviderError(502, "Unexpected response shape from provider", kind=ErrorKind.OTHER)
        return normalize_completion(data, payload["model"])

    async def open_stream(self, credential: AccountCredential, payload: dict[str, Any]) -> httpx.Response:
        """Send a streaming request and return the open response.

        The status is checked before any body is relayed, so a failed call
        can still be retried with another account. The caller must close
        the returned response.

        Raises:
            ProviderError: On a non-2xx response
            httpx.HTTPError: On transport failures
        """
        response = await self._client.send(self._request(credential, payload), stream=True)
        if response.is_success:
            return response
        try:
            await response.aread()
        finally:
            await response.aclose()
        raise ProviderError(response.status_code, response.text)

    async def ping(self, credential: AccountCredential) -> tuple[int, str | None]:
        """Minimal completion used by health checks.

        Returns:
            ``(status_code, error_text)``; status 0 means the request never
            got a response
        """
        payload = build_payload(
            {
                "messages": [{"role": "user", "content": HEALTH_CHECK_PROMPT}],
                "max_tokens": HEALTH_CHECK_MAX_TOKENS,
            },
            self.settings.default_model,
        )
        try:
            response = await self._client.send(self._request(credential, payload))
        except httpx.HTTPError as e:
            return 0, str(e) or type(e).__name__
        if response.is_success:
            return response.status_code, None
        return response.status_code, response.text
