"""Serve command: run the proxy with uvicorn."""

import os
from pathlib import Path
from typing import Annotated, Any

import orjson
import typer
import uvicorn
from rich.console import Console

from qwen_code_proxy.config.settings import (
    CONFIG_FILE_ENV,
    CONFIG_OVERRIDES_ENV,
    ConfigurationError,
    get_settings,
)
from qwen_code_proxy.core.logging import setup_logging


console = Console()


def build_overrides(
    host: str | None,
    port: int | None,
    log_level: str | None,
    reload: bool | None,
) -> dict[str, Any]:
    """CLI options as nested settings overrides, skipping unset values."""
    server = {
        key: value
        for key, value in {
            "host": host,
            "port": port,
            "log_level": log_level.upper() if log_level else None,
            "reload": reload,
        }.items()
        if value is not None
    }
    return {"server": server} if server else {}


def serve(
    ctx: typer.Context,
    host: Annotated[str | None, typer.Option("--host", help="Bind address")] = None,
    port: Annotated[int | None, typer.Option("--port", "-p", help="Bind port")] = None,
    log_level: Annotated[str | None, typer.Option("--log-level", help="Log level")] = None,
    reload: Annotated[
        bool | None, typer.Option("--reload/--no-reload", help="Auto-reload on code changes")
    ] = None,
) -> None:
    """Start the OpenAI-compatible proxy server."""
    config: Path | None = ctx.obj.get("config") if ctx.obj else None
    overrides = build_overrides(host, port, log_level, reload)

    # The app factory runs get_settings() again, possibly in a reload subprocess
    os.environ[CONFIG_OVERRIDES_ENV] = orjson.dumps(overrides).decode()
    if config is not None:
        os.environ[CONFIG_FILE_ENV] = str(config)

    try:
        settings = get_settings(config)
    except ConfigurationError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1) from e

    setup_logging(settings.server.log_level, settings.server.log_format == "json")
    console.print(f"[green]Qwen Code Proxy listening on {settings.server_url}[/green]")

    uvicorn.run(
        "qwen_code_proxy.api.app:create_app",
        factory=True,
        host=settings.server.host,
        port=settings.server.port,
        reload=settings.server.reload,
        log_level=settings.server.log_level.lower(),
    )
