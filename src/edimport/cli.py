"""CLI interface for EDI catalog imports."""

import json
import logging
import time
from functools import partial
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .classifier import FileKind, probe_kind
from .codes import Language
from .config import ImporterConfig, get_config, load_config, set_config
from .decoders.discounts import DISCOUNT_LAYOUT, decode_discount
from .decoders.lines import decode_document
from .decoders.prices import PRICE_LAYOUT, decode_price
from .decoders.products import PRODUCT_LAYOUT, decode_product
from .diagnostics import DiagnosticsLog
from .exceptions import EdiError
from .import_service import EdiImportService, ImportOutcome
from .repositories.sql import SqlCatalogRepository
from .version import VERSION

app = typer.Typer(
    name="edimport",
    help="""
    [bold]EDI Catalog Import CLI[/bold]

    Decode fixed-width supplier product, price and discount files and merge
    them into the catalog store.

    [cyan]Examples:[/cyan]
      edimport run --config ./data/config.toml
      edimport classify ./data/edi/products.txt
      edimport decode ./data/edi/products.txt --lang swe
    """,
    no_args_is_help=True,
)

console = Console()
logger = logging.getLogger(__name__)

_DECODERS = {
    FileKind.PRODUCT: (PRODUCT_LAYOUT, decode_product),
    FileKind.PRICE: (PRICE_LAYOUT, decode_price),
    FileKind.DISCOUNT: (DISCOUNT_LAYOUT, decode_discount),
}


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def _resolve_config(config_file: Optional[Path]) -> ImporterConfig:
    if config_file is not None:
        return set_config(load_config(config_file))
    return get_config()


@app.command()
def run(
    config_file: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="TOML configuration file (default: environment settings)",
        exists=True,
        dir_okay=False,
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Show detailed processing information",
    ),
):
    """Import every waiting downloaded and uploaded EDI file."""
    _setup_logging(verbose)
    start_time = time.time()

    try:
        config = _resolve_config(config_file)
        config.create_data_dirs()
    except (ValueError, OSError) as e:
        console.print(f"\n[bold red]✗ Configuration error:[/bold red] {escape(str(e))}")
        raise typer.Exit(code=1)

    if verbose:
        console.print("[bold]Configuration:[/bold]")
        console.print(f"  Data dir: {config.data_dir}")
        console.print(f"  Languages: {config.lang_codes}")
        console.print(f"  JSON snapshots: {config.import_json}")
        console.print(f"  SQL store: {config.import_sqlite}")
        console.print()

    repository: Optional[SqlCatalogRepository] = None
    diagnostics = DiagnosticsLog.open(config.data_dir / config.log_file_name)

    try:
        if config.import_sqlite:
            repository = SqlCatalogRepository(config.sellers_dsn(), config.buyers_dsn())
            repository.create_schema()

        service = EdiImportService(config, diagnostics, repository)
        outcomes = service.run()
    except EdiError as e:
        console.print(f"\n[bold red]✗ Import failed:[/bold red] {escape(e.message)}")
        raise typer.Exit(code=1)
    finally:
        diagnostics.close()
        if repository is not None:
            repository.dispose()

    _print_outcomes(outcomes)
    elapsed = time.time() - start_time
    console.print(
        f"\n[bold green]✓ Processed {len(outcomes)} files[/bold green] ({elapsed:.1f}s)"
    )


def _print_outcomes(outcomes: list[ImportOutcome]) -> None:
    if not outcomes:
        console.print("[dim]Nothing to import[/dim]")
        return

    table = Table(title="Import summary")
    table.add_column("File")
    table.add_column("Kind")
    table.add_column("Status")
    table.add_column("Warnings", justify="right")

    for outcome in outcomes:
        if outcome.imported:
            status = "[green]imported[/green]"
        elif outcome.kind is FileKind.UNRECOGNIZED:
            status = "[yellow]deleted[/yellow]"
        else:
            status = "[dim]already imported[/dim]"
        table.add_row(
            outcome.name, outcome.kind.value, status, str(outcome.warning_count)
        )

    console.print(table)


@app.command()
def classify(
    input_file: Path = typer.Argument(
        ...,
        help="EDI file to inspect",
        exists=True,
        dir_okay=False,
    ),
):
    """Show the kind of an EDI file without importing or deleting it."""
    try:
        kind = probe_kind(input_file)
    except (EdiError, UnicodeDecodeError) as e:
        console.print(f"[bold red]✗ Error:[/bold red] {escape(str(e))}")
        raise typer.Exit(code=1)
    console.print(kind.value)


@app.command()
def decode(
    input_file: Path = typer.Argument(
        ...,
        help="EDI file to decode",
        exists=True,
        dir_okay=False,
    ),
    lang: Optional[str] = typer.Option(
        None,
        "--lang",
        help="Only decode product entries in this language (fin, swe, eng, nor)",
    ),
):
    """Decode an EDI file and print its records as JSON."""
    try:
        language = Language.from_name(lang) if lang else None
        kind = probe_kind(input_file)
        if kind not in _DECODERS:
            console.print("[bold red]✗ Error:[/bold red] Unrecognized EDI file")
            raise typer.Exit(code=1)

        layout, decoder = _DECODERS[kind]
        if kind is FileKind.PRODUCT:
            decoder = partial(decode_product, language_filter=language)

        with input_file.open("r", encoding="utf-8") as handle:
            document = decode_document(
                handle, layout.total_width, decoder, label=kind.value.capitalize()
            )
    except EdiError as e:
        console.print(f"[bold red]✗ Error:[/bold red] {escape(e.message)}")
        raise typer.Exit(code=1)

    payload = {
        "kind": kind.value,
        "buyer": document.buyer.model_dump(mode="json") if document.buyer else None,
        "seller": document.seller.model_dump(mode="json") if document.seller else None,
        "records": [record.model_dump(mode="json") for record in document.records],
        "warnings": sorted(set(document.warnings)),
    }
    print(json.dumps(payload, indent=2, ensure_ascii=False))


@app.command()
def version():
    """Show version information."""
    console.print(f"edimport version {VERSION}")


if __name__ == "__main__":
    app()
