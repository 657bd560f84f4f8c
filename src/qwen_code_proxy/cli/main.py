"""Command-line entry point."""

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console

from qwen_code_proxy import __version__

from .commands.accounts import app as accounts_app
from .commands.serve import serve


console = Console()

app = typer.Typer(
    name="qwen-code-proxy",
    help="OpenAI-compatible proxy for Qwen with multi-account OAuth rotation",
    no_args_is_help=True,
)


def version_callback(value: bool) -> None:
    if value:
        console.print(f"qwen-code-proxy {__version__}")
        raise typer.Exit()


@app.callback()
def app_main(
    ctx: typer.Context,
    config: Annotated[
        Path | None,
        typer.Option("--config", "-c", help="TOML configuration file", exists=True, dir_okay=False),
    ] = None,
    version: Annotated[
        bool,
        typer.Option("--version", "-V", callback=version_callback, is_eager=True),
    ] = False,
) -> None:
    """Qwen Code Proxy."""
    ctx.obj = {"config": config}


app.command()(serve)
app.add_typer(accounts_app, name="accounts")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
