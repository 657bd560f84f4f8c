"""Runs one client request against the account pool.

Each call gets its own ``SelectionState``, threaded through the retry loop
below; nothing about the chosen account is kept on the executor.
"""

from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import aclosing
from typing import Any, TypeVar

import httpx
from structlog import get_logger

from qwen_code_proxy.exceptions import NoAccountsAvailableError, ProviderError
from qwen_code_proxy.rotation.retry import RetryCoordinator
from qwen_code_proxy.rotation.selector import AccountSelector, SelectionState
from qwen_code_proxy.store import AccountCredential

from .provider_client import ProviderClient, build_payload
from .stream_relay import StreamRelay


logger = get_logger(__name__)

T = TypeVar("T")

# Errors that go through the retry policy; anything else propagates untouched
RETRYABLE_ERRORS = (ProviderError, httpx.HTTPError)


class RequestExecutor:
    """Select an account, call the provider, and fail over at most once."""

    def __init__(
        self,
        selector: AccountSelector,
        coordinator: RetryCoordinator,
        provider: ProviderClient,
        default_model: str,
    ) -> None:
        self.selector = selector
        self.coordinator = coordinator
        self.provider = provider
        self.default_model = default_model

    async def _run(
        self, call: Callable[[AccountCredential], Awaitable[T]]
    ) -> tuple[T, SelectionState]:
        selection = await self.selector.select()
        attempt = 0
        while True:
            try:
                result = await call(selection.credential)
            except RETRYABLE_ERRORS as error:
                decision = await self.coordinator.handle(
                    selection.account_id, selection.credential, error, attempt
                )
                if not decision.retry:
                    raise
                attempt += 1

                if decision.force_reselect:
                    try:
                        selection = await self.selector.select()
                    except NoAccountsAvailableError:
                        logger.warning(
                            "failover_no_accounts",
                            account=selection.account_id,
                            attempt=attempt,
                        )
                        raise error from None
                elif decision.credential is not None:
                    selection = SelectionState(selection.account_id, decision.credential)

                logger.info("request_retry", account=selection.account_id, attempt=attempt)
                continue

            logger.debug("provider_call_succeeded", account=selection.account_id, attempt=attempt)
            return result, selection

    async def complete(self, request: dict[str, Any]) -> dict[str, Any]:
        """Non-streaming chat completion.

        Raises:
            NoAccountsAvailableError: If no account can be selected
            ProviderError: The last provider failure once retries are spent
            httpx.HTTPError: The last transport failure once retries are spent
        """
        payload = build_payload(request, self.default_model)
        result, _ = await self._run(lambda credential: self.provider.complete(credential, payload))
        return result

    async def stream(self, request: dict[str, Any]) -> AsyncIterator[bytes]:
        """Open a streaming completion and return its normalized SSE byte stream.

        Retries happen only while opening the upstream call; once streaming
        has started, failures are reported in-band by the relay.
        """
        payload = build_payload(request, self.default_model, stream=True)
        response, selection = await self._run(
            lambda credential: self.provider.open_stream(credential, payload)
        )
        logger.info("stream_started", account=selection.account_id, model=payload["model"])
        return self._relay(response, StreamRelay(payload["model"]))

    async def _relay(self, response: httpx.Response, relay: StreamRelay) -> AsyncIterator[bytes]:
        try:
            async with aclosing(relay.relay(response)) as events:
                async for event in events:
                    yield event
        finally:
            await response.aclose()

    async def execute(self, request: dict[str, Any]) -> dict[str, Any] | AsyncIterator[bytes]:
        if request.get("stream"):
            return await self.stream(request)
        return await self.complete(request)
