"""FastAPI application factory for the Qwen proxy server."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from structlog import get_logger

from qwen_code_proxy import __version__
from qwen_code_proxy.api.dependencies import ProxyServices, build_services
from qwen_code_proxy.api.middleware.api_key_auth import APIKeyAuthMiddleware
from qwen_code_proxy.api.middleware.cors import setup_cors_middleware
from qwen_code_proxy.api.middleware.errors import setup_error_handlers
from qwen_code_proxy.api.routes import debug_router, openai_router, root_router
from qwen_code_proxy.config.settings import Settings, get_settings
from qwen_code_proxy.core.logging import setup_logging


logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Build the account pool services on startup and close them on shutdown.

    Services passed to ``create_app`` are used as-is and left open.
    """
    settings: Settings = app.state.settings
    owns_services = getattr(app.state, "services", None) is None
    if owns_services:
        app.state.services = build_services(settings)

    services: ProxyServices = app.state.services
    account_ids = await services.store.list_account_ids()
    logger.info(
        "server_start",
        url=settings.server_url,
        store=services.store.kv.get_location(),
        accounts=len(account_ids),
        api_keys_enabled=settings.security.api_keys_enabled,
    )

    yield

    logger.debug("server_stop")
    if owns_services:
        await services.aclose()
        app.state.services = None


def create_app(
    settings: Settings | None = None,
    services: ProxyServices | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Optional settings override. If None, uses get_settings().
        services: Pre-built services (tests); built from settings at startup otherwise.

    Returns:
        Configured FastAPI application instance.

    """
    if settings is None:
        settings = get_settings()

    # Reload mode re-imports the app in a fresh process
    if not structlog.is_configured():
        setup_logging(settings.server.log_level, settings.server.log_format == "json")

    app = FastAPI(
        title="Qwen Code Proxy",
        description="OpenAI-compatible proxy for Qwen with multi-account OAuth rotation",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.services = services

    setup_error_handlers(app)
    app.add_middleware(APIKeyAuthMiddleware, settings=settings)
    # Added last so it wraps auth and answers preflight requests
    setup_cors_middleware(app)

    app.include_router(root_router)
    app.include_router(openai_router)
    app.include_router(debug_router)

    return app
