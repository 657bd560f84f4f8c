"""Service wiring shared by the app lifespan, the routes and the CLI."""

import random
import secrets
from dataclasses import dataclass
from typing import Annotated

import httpx
from fastapi import Depends, Header, Request
from starlette import status

from qwen_code_proxy.config.settings import Settings
from qwen_code_proxy.exceptions import ProxyError
from qwen_code_proxy.rotation import AccountSelector, FailureRegistry, RetryCoordinator, TokenRefresher
from qwen_code_proxy.services import AccountHealthChecker, ProviderClient, RequestExecutor
from qwen_code_proxy.store import CredentialStore, KeyValueStore, build_key_value_store


@dataclass
class ProxyServices:
    """Everything one process needs to serve requests from the account pool."""

    store: CredentialStore
    registry: FailureRegistry
    refresher: TokenRefresher
    selector: AccountSelector
    coordinator: RetryCoordinator
    provider: ProviderClient
    executor: RequestExecutor
    health_checker: AccountHealthChecker
    http_client: httpx.AsyncClient

    async def aclose(self) -> None:
        await self.http_client.aclose()
        await self.store.close()


def build_services(
    settings: Settings,
    kv: KeyValueStore | None = None,
    http_client: httpx.AsyncClient | None = None,
    rng: random.Random | None = None,
) -> ProxyServices:
    """Wire the account pool from settings.

    ``kv``, ``http_client`` and ``rng`` replace the configured backend, the
    real network client and the system random source (used by tests).
    """
    store = CredentialStore(kv if kv is not None else build_key_value_store(settings.store))
    client = http_client or httpx.AsyncClient(timeout=settings.provider.timeout)
    registry = FailureRegistry(store)
    refresher = TokenRefresher(store, config=settings.oauth, client=client)
    selector = AccountSelector(store, registry, refresher, rng=rng)
    coordinator = RetryCoordinator(refresher, registry, max_retries=settings.provider.max_retries)
    provider = ProviderClient(settings.provider, client)
    return ProxyServices(
        store=store,
        registry=registry,
        refresher=refresher,
        selector=selector,
        coordinator=coordinator,
        provider=provider,
        executor=RequestExecutor(selector, coordinator, provider, settings.provider.default_model),
        health_checker=AccountHealthChecker(store, registry, refresher, provider),
        http_client=client,
    )


def get_services(request: Request) -> ProxyServices:
    """Get the service container from app state."""
    services: ProxyServices | None = getattr(request.app.state, "services", None)
    if services is None:
        raise ProxyError(
            "Proxy services are not initialized",
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        )
    return services


def get_settings_dependency(request: Request) -> Settings:
    settings: Settings = request.app.state.settings
    return settings


def require_admin_secret(
    settings: Annotated[Settings, Depends(get_settings_dependency)],
    x_admin_secret: Annotated[str | None, Header()] = None,
) -> None:
    """Guard for the debug endpoints: ``X-Admin-Secret`` must match ``security.admin_secret``."""
    expected = settings.security.admin_secret
    if not expected:
        raise ProxyError(
            "Debug endpoints are disabled: no admin secret configured",
            status_code=status.HTTP_403_FORBIDDEN,
        )
    if not x_admin_secret or not secrets.compare_digest(x_admin_secret, expected):
        raise ProxyError("Invalid admin secret", status_code=status.HTTP_403_FORBIDDEN)


Services = Annotated[ProxyServices, Depends(get_services)]
