"""CLI commands for managing pooled Qwen accounts."""

import asyncio
import logging
from pathlib import Path
from typing import Annotated

import httpx
import orjson
import structlog
import typer
from rich.console import Console
from rich.table import Table

from qwen_code_proxy.api.dependencies import build_services
from qwen_code_proxy.auth.oauth.token_exchange import (
    credential_from_token_response,
    poll_device_token,
    start_device_flow,
)
from qwen_code_proxy.config.settings import ConfigurationError, Settings, get_settings
from qwen_code_proxy.core.clock import to_millis, utc_now
from qwen_code_proxy.exceptions import ProxyError
from qwen_code_proxy.rotation.failures import FailureRegistry
from qwen_code_proxy.services.account_health import format_expires_in
from qwen_code_proxy.store import AccountCredential, CredentialStore, build_credential_store
from qwen_code_proxy.store.credentials import validate_account_id


app = typer.Typer(name="accounts", help="Manage pooled Qwen accounts")

console = Console()

DEFAULT_CREDENTIALS_FILE = Path("~/.qwen/oauth_creds.json")

AccountId = Annotated[str, typer.Argument(help="Account identifier")]


@app.callback()
def accounts_main() -> None:
    """Manage pooled Qwen accounts."""
    # Keep tables readable; only problems are logged
    structlog.configure(wrapper_class=structlog.make_filtering_bound_logger(logging.WARNING))


def _settings(ctx: typer.Context) -> Settings:
    config: Path | None = ctx.obj.get("config") if ctx.obj else None
    try:
        return get_settings(config)
    except ConfigurationError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1) from e


def _new_account_id(account_id: str) -> str:
    try:
        return validate_account_id(account_id)
    except ProxyError as e:
        console.print(f"[red]{e.message}[/red]")
        raise typer.Exit(1) from e


async def _with_store(settings: Settings, action):  # type: ignore[no-untyped-def]
    store = build_credential_store(settings.store)
    try:
        return await action(store)
    finally:
        await store.close()


def load_credentials_file(path: Path) -> AccountCredential:
    """Read an OAuth credential JSON file such as ``~/.qwen/oauth_creds.json``."""
    try:
        data = orjson.loads(path.expanduser().read_bytes())
    except OSError as e:
        raise ProxyError(f"Cannot read credentials file {path}: {e}") from e
    except orjson.JSONDecodeError as e:
        raise ProxyError(f"Credentials file {path} is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise ProxyError(f"Credentials file {path} must contain a JSON object")
    try:
        return AccountCredential.from_dict(data)
    except (KeyError, ValueError) as e:
        raise ProxyError(f"Credentials file {path} is missing a usable field: {e}") from e


@app.command("list")
def list_accounts(ctx: typer.Context) -> None:
    """List stored accounts with token expiry and failure state."""
    settings = _settings(ctx)

    async def _collect(store: CredentialStore) -> tuple[list[tuple[str, AccountCredential | None]], list[str]]:
        account_ids = await store.list_account_ids()
        failed = await FailureRegistry(store).list_failed()
        return [(account_id, await store.get(account_id)) for account_id in account_ids], failed

    rows, failed = asyncio.run(_with_store(settings, _collect))
    if not rows:
        console.print("[yellow]No accounts found.[/yellow]")
        console.print("Add one with [cyan]qwen-code-proxy accounts login <id>[/cyan]")
        return

    table = Table(title="Accounts")
    table.add_column("Account", style="cyan")
    table.add_column("Expires In")
    table.add_column("Endpoint")
    table.add_column("Status")

    for account_id, credential in rows:
        if credential is None:
            table.add_row(account_id, "unknown", "-", "[red]Unreadable[/red]")
            continue
        status = "[red]Failed[/red]" if account_id in failed else "[green]Available[/green]"
        table.add_row(
            account_id,
            format_expires_in(credential),
            credential.resource_url or "default",
            status,
        )

    console.print(table)


@app.command("add")
def add_account(
    ctx: typer.Context,
    account_id: AccountId,
    file: Annotated[
        Path,
        typer.Option("--file", "-f", help="OAuth credential JSON to import"),
    ] = DEFAULT_CREDENTIALS_FILE,
) -> None:
    """Import an existing OAuth credential file as an account."""
    _new_account_id(account_id)
    settings = _settings(ctx)
    try:
        credential = load_credentials_file(file)

        async def _put(store: CredentialStore) -> None:
            await store.put(account_id, credential)

        asyncio.run(_with_store(settings, _put))
    except ProxyError as e:
        console.print(f"[red]{e.message}[/red]")
        raise typer.Exit(1) from e

    console.print(f"[green]Account {account_id} added.[/green] Expires in {format_expires_in(credential)}.")


@app.command("remove")
def remove_account(
    ctx: typer.Context,
    account_id: AccountId,
    force: Annotated[bool, typer.Option("--force", help="Skip confirmation")] = False,
) -> None:
    """Delete an account's credential from the store."""
    if not force and not typer.confirm(f"Remove account {account_id}?"):
        raise typer.Abort()

    settings = _settings(ctx)

    async def _delete(store: CredentialStore) -> bool:
        return await store.delete(account_id)

    if asyncio.run(_with_store(settings, _delete)):
        console.print(f"[green]Account {account_id} removed.[/green]")
    else:
        console.print(f"[red]Account {account_id} not found.[/red]")
        raise typer.Exit(1)


@app.command("login")
def login(ctx: typer.Context, account_id: AccountId) -> None:
    """Authorize a new account with the OAuth device flow and store it."""
    _new_account_id(account_id)
    settings = _settings(ctx)

    async def _login() -> AccountCredential:
        async with httpx.AsyncClient() as client:
            device = await start_device_flow(settings.oauth, client=client)
            console.print()
            console.print("[bold]Open this URL and approve the request:[/bold]")
            console.print(f"[cyan]{device.verification_uri_complete}[/cyan]")
            if device.user_code:
                console.print(f"User code: [bold]{device.user_code}[/bold]")
            console.print("\n[dim]Waiting for authorization...[/dim]")
            data = await poll_device_token(
                device.device_code, device.code_verifier, settings.oauth, client=client
            )
        credential = credential_from_token_response(data, now_ms=to_millis(utc_now()))

        async def _put(store: CredentialStore) -> None:
            await store.put(account_id, credential)

        await _with_store(settings, _put)
        return credential

    try:
        credential = asyncio.run(_login())
    except KeyboardInterrupt:
        console.print("\n[yellow]Login cancelled by user.[/yellow]")
        raise typer.Exit(1) from None
    except ProxyError as e:
        console.print(f"[red]Login failed: {e.message}[/red]")
        raise typer.Exit(1) from e
    except httpx.HTTPError as e:
        console.print(f"[red]Login failed: {e}[/red]")
        raise typer.Exit(1) from e

    console.print(
        f"[green]Account {account_id} authorized.[/green] Expires in {format_expires_in(credential)}."
    )


@app.command("reset-failed")
def reset_failed(ctx: typer.Context) -> None:
    """Clear the failed-account list immediately."""
    settings = _settings(ctx)

    async def _clear(store: CredentialStore) -> int:
        return await FailureRegistry(store).clear()

    cleared = asyncio.run(_with_store(settings, _clear))
    console.print(f"[green]Cleared {cleared} failed account(s).[/green]")


@app.command("health")
def health(ctx: typer.Context) -> None:
    """Check every account with a minimal live completion call."""
    settings = _settings(ctx)

    async def _check():  # type: ignore[no-untyped-def]
        services = build_services(settings)
        try:
            return await services.health_checker.check_all()
        finally:
            await services.aclose()

    results = asyncio.run(_check())
    if not results:
        console.print("[yellow]No accounts found.[/yellow]")
        return

    table = Table(title="Account Health")
    table.add_column("Account", style="cyan")
    table.add_column("Status")
    table.add_column("Expires In")
    table.add_column("Failed")
    table.add_column("API Status")
    table.add_column("Error")

    styles = {"healthy": "green", "quota_exceeded": "yellow"}
    for result in results:
        style = styles.get(result.status, "red")
        table.add_row(
            result.account,
            f"[{style}]{result.status}[/{style}]",
            result.expires_in,
            "yes" if result.is_failed else "no",
            str(result.api_status) if result.api_status is not None else "-",
            (result.error or "")[:80],
        )

    console.print(table)
