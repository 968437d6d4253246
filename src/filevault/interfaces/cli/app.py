"""CLI application for filevault using Rich and Typer."""

import asyncio
import json
from pathlib import Path
from typing import Any, Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from filevault.backends import LocalFileSystem
from filevault.collection_vault import DEFAULT_COLLECTION, CollectionVault
from filevault.config import (
    FILEVAULT_DATA_DIR,
    SETTINGS_FILENAME,
    load_settings,
    setup_logging,
)
from filevault.errors import ConfigError, VaultError

app = typer.Typer(
    name="filevault",
    help="filevault CLI - file-backed record store",
    no_args_is_help=True,
)

console = Console()

ROOT_OPTION = typer.Option(
    None,
    "--root",
    "-r",
    help="Vault root directory (default: $FILEVAULT_DATA_DIR or ~/.filevault)",
)
COLLECTION_OPTION = typer.Option(
    DEFAULT_COLLECTION,
    "--collection",
    "-c",
    help="Collection name",
)


def _open_vault(root: Optional[Path]) -> CollectionVault:
    """Build a collection vault for the root, honouring filevault.yaml."""
    base = (root or FILEVAULT_DATA_DIR).expanduser()
    try:
        settings = load_settings(base / SETTINGS_FILENAME)
    except ConfigError as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        raise typer.Exit(1)
    return CollectionVault(str(base), LocalFileSystem(), settings)


def _parse_json(value: str, what: str) -> Any:
    try:
        return json.loads(value)
    except json.JSONDecodeError as e:
        console.print(f"[red]Invalid JSON for {what}: {escape(str(e))}[/red]")
        raise typer.Exit(1)


def _run(coro):
    """Run a coroutine, turning vault errors into a clean exit."""
    try:
        return asyncio.run(coro)
    except (VaultError, ValueError) as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        raise typer.Exit(1)


@app.callback()
def main(
    debug: bool = typer.Option(
        False,
        "--debug",
        "-d",
        help="Enable debug logging",
    ),
):
    """filevault CLI - file-backed record store."""
    if debug:
        setup_logging("DEBUG")


@app.command()
def init(root: Optional[Path] = ROOT_OPTION, collection: str = COLLECTION_OPTION):
    """Create a collection (or open it if it already exists)."""

    async def _init():
        vault = await _open_vault(root).collection(collection)
        return vault.describe()

    summary = _run(_init())
    console.print(Panel.fit(summary, title="Vault", border_style="blue"))


@app.command()
def put(
    record_id: str = typer.Argument(..., help="Record id"),
    data: str = typer.Argument(..., help="Record payload as JSON"),
    meta: Optional[str] = typer.Option(
        None, "--meta", "-m", help="Metadata as a JSON object"
    ),
    root: Optional[Path] = ROOT_OPTION,
    collection: str = COLLECTION_OPTION,
):
    """Save a record."""
    payload = _parse_json(data, "data")
    metadata = _parse_json(meta, "metadata") if meta else {}
    if not isinstance(metadata, dict):
        console.print("[red]Metadata must be a JSON object[/red]")
        raise typer.Exit(1)

    _run(_open_vault(root).save(record_id, payload, metadata, collection))
    console.print(f"[green]Saved {record_id} in {collection}[/green]")


@app.command()
def get(
    record_id: str = typer.Argument(..., help="Record id"),
    root: Optional[Path] = ROOT_OPTION,
    collection: str = COLLECTION_OPTION,
):
    """Print a record's data."""
    result = _run(_open_vault(root).get(record_id, collection))
    if result is None:
        console.print(f"[red]Record not found: {record_id}[/red]")
        raise typer.Exit(1)
    console.print_json(json.dumps(result))


@app.command()
def find(
    keyword: str = typer.Argument(..., help="Keyword to search in metadata"),
    root: Optional[Path] = ROOT_OPTION,
    collection: Optional[str] = typer.Option(
        None, "--collection", "-c", help="Collection name (default: all)"
    ),
):
    """Find records whose metadata contains a keyword."""
    results = _run(_open_vault(root).find(keyword, collection))
    if not results:
        console.print("[dim]No matches.[/dim]")
        return
    console.print_json(json.dumps(results))


@app.command(name="ls")
def list_records(root: Optional[Path] = ROOT_OPTION, collection: str = COLLECTION_OPTION):
    """List record ids and metadata without reading record files."""
    records = _run(_open_vault(root).list(collection))
    if not records:
        console.print("[dim]No records yet.[/dim]")
        return

    table = Table(title=f"Records in {collection}", show_header=True)
    table.add_column("ID", style="cyan")
    table.add_column("Metadata")
    for record in records:
        table.add_row(record.id, json.dumps(record.metadata, sort_keys=True))
    console.print(table)


@app.command(name="rm")
def remove(
    record_id: str = typer.Argument(..., help="Record id"),
    root: Optional[Path] = ROOT_OPTION,
    collection: str = COLLECTION_OPTION,
):
    """Delete a record."""
    deleted = _run(_open_vault(root).delete(record_id, collection))
    if not deleted:
        console.print(f"[red]Record not found: {record_id}[/red]")
        raise typer.Exit(1)
    console.print(f"[green]Deleted {record_id}[/green]")


@app.command()
def stats(root: Optional[Path] = ROOT_OPTION):
    """Show record counts per collection."""
    result = _run(_open_vault(root).stats())

    table = Table(title="Vault Stats", show_header=True)
    table.add_column("Collection", style="cyan")
    table.add_column("Records", justify="right")
    for name, count in result.collections.items():
        table.add_row(name, str(count))
    table.add_row("[bold]Total[/bold]", f"[bold]{result.total_records}[/bold]")
    console.print(table)


@app.command()
def orphans(root: Optional[Path] = ROOT_OPTION, collection: str = COLLECTION_OPTION):
    """List record files no longer referenced by the catalog."""

    async def _orphans():
        vault = await _open_vault(root).collection(collection)
        return await vault.orphans()

    names = _run(_orphans())
    if not names:
        console.print("[dim]No orphaned files.[/dim]")
        return
    for name in names:
        console.print(name)


@app.command()
def reindex(root: Optional[Path] = ROOT_OPTION, collection: str = COLLECTION_OPTION):
    """Rebuild a collection's catalog from its record files."""

    async def _reindex():
        vault = await _open_vault(root).collection(collection)
        return await vault.reindex()

    count = _run(_reindex())
    console.print(f"[green]Indexed {count} records in {collection}[/green]")


def run_cli():
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    run_cli()
