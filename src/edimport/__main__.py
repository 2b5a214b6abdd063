"""Entry point: run imports from the command line or serve the upload API."""

from enum import Enum
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.markup import escape

from edimport.cli import app as cli_app
from edimport.config import get_config, load_config, set_config


class RunMode(str, Enum):
    CLI = "cli"
    API = "api"


app = typer.Typer(
    help="EDI catalog import tool. Imports from the command line or serves the upload API.",
    no_args_is_help=False,
)
app.add_typer(cli_app, name="", help="EDI import CLI commands.")

console = Console()


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    mode: RunMode = typer.Option(
        RunMode.CLI,
        "--mode",
        case_sensitive=False,
        help="Run mode: cli (default) or api",
    ),
    config_file: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        exists=True,
        dir_okay=False,
        help="TOML configuration file shared by every command",
    ),
    host: Optional[str] = typer.Option(
        None, "--host", help="API bind address (default: API_HOST setting)"
    ),
    port: Optional[int] = typer.Option(
        None, "--port", min=1, max=65535, help="API port (default: API_PORT setting)"
    ),
) -> None:
    """EDI catalog import tool."""
    try:
        if config_file is not None:
            set_config(load_config(config_file))
        if mode is RunMode.API:
            config = get_config()
            # Uploads are queued under data_dir/uploads.
            config.create_data_dirs()
    except (ValueError, OSError) as e:
        console.print(f"[bold red]✗ Configuration error:[/bold red] {escape(str(e))}")
        raise typer.Exit(code=1)

    if mode is RunMode.API:
        import uvicorn

        uvicorn.run(
            "edimport.api:app",
            host=host or config.api_host,
            port=port or config.api_port,
            reload=False,
        )
        raise typer.Exit()

    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())


if __name__ == "__main__":
    app()
