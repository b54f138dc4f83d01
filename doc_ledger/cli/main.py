"""
CLI interface for Document Ledger.

Provides command-line access to ingestion and usage reporting.
"""

import sys
from dataclasses import replace
from datetime import date
from pathlib import Path
from typing import Optional

import typer
import yaml
from rich.console import Console
from rich.table import Table

from doc_ledger.config.loader import AppConfig, load_config
from doc_ledger.core.errors import DocLedgerError
from doc_ledger.core.pipeline import build_pipeline
from doc_ledger.logging_setup import configure_logging
from doc_ledger.storage.ledger import get_ledger_store
from doc_ledger.storage.records import RecordStore

app = typer.Typer()
console = Console()

EXIT_CODE_PASS = 0
EXIT_CODE_FAIL = 1

_config: Optional[AppConfig] = None


def _get_config() -> AppConfig:
    return _config if _config is not None else load_config()


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    config_path: Optional[str] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to YAML configuration file"
    ),
    root: Optional[str] = typer.Option(
        None,
        "--root",
        "-r",
        help="Storage root directory (overrides configuration)"
    ),
):
    """Document Ledger CLI."""
    global _config
    try:
        config = load_config(config_path)
    except (OSError, ValueError, yaml.YAMLError) as e:
        console.print(f"[red]Error loading configuration:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)
    if root:
        config = replace(config, storage=replace(config.storage, root=root))
    _config = config
    configure_logging(config.logging.level)

    if ctx.invoked_subcommand is None:
        console.print("Document Ledger - Use --help to see available commands")


@app.command()
def init():
    """Create the storage root and the usage ledger."""
    config = _get_config()
    try:
        build_pipeline(config)
        console.print(f"[green]✓[/] Storage initialized at {config.storage.root}")
        sys.exit(EXIT_CODE_PASS)
    except (OSError, DocLedgerError) as e:
        console.print(f"[red]Error initializing storage:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)


@app.command()
def ingest(
    path: Path = typer.Argument(..., help="Document file to ingest"),
):
    """Ingest a document file and print its record."""
    config = _get_config()
    try:
        buffer = path.read_bytes()
    except OSError as e:
        console.print(f"[red]Error reading {path}:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)

    try:
        pipeline = build_pipeline(config)
    except (OSError, DocLedgerError) as e:
        console.print(f"[red]Error initializing storage:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)

    try:
        record = pipeline.ingest(buffer)
    except DocLedgerError as e:
        console.print(f"[red]Ingestion failed ({e.kind}):[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)

    location = pipeline.record_store.path_for(
        date.fromisoformat(record.timestamp[:10]), record.content_id
    )
    console.print(f"[green]✓[/] Ingested {path.name}")
    console.print(f"Content ID: {record.content_id}")
    console.print(f"Timestamp: {record.timestamp}")
    console.print(f"Stored at: {location}")
    sys.exit(EXIT_CODE_PASS)


@app.command()
def status():
    """Show the current usage ledger."""
    config = _get_config()
    report = get_ledger_store(
        config.storage.usage_file, recent_limit=config.storage.recent_limit
    ).get_status()

    if "error" in report:
        console.print(f"[yellow]Usage ledger unavailable:[/] {report['error']}")
        sys.exit(EXIT_CODE_FAIL)

    _display_ledger(report["ledger"])
    sys.exit(EXIT_CODE_PASS)


@app.command()
def records(
    day: Optional[str] = typer.Option(
        None,
        "--date",
        "-d",
        help="Day partition to list (YYYY-MM-DD); lists partitions if omitted"
    ),
):
    """List stored document records."""
    store = RecordStore(_get_config().storage.root)

    if day is None:
        dates = store.list_dates()
        if not dates:
            console.print("[dim]No records stored yet.[/]")
        for partition in dates:
            count = len(store.list_records(date.fromisoformat(partition)))
            console.print(f"{partition}  {count} record(s)")
        sys.exit(EXIT_CODE_PASS)

    try:
        partition_day = date.fromisoformat(day)
    except ValueError:
        console.print(f"[red]Invalid date:[/] {day} (expected YYYY-MM-DD)")
        sys.exit(EXIT_CODE_FAIL)

    table = Table(title=f"Records for {day}")
    table.add_column("Content ID")
    table.add_column("Timestamp")
    table.add_column("Submitted")
    for record in store.list_records(partition_day):
        table.add_row(record.content_id, record.timestamp, str(record.submitted_flag))
    console.print(table)
    sys.exit(EXIT_CODE_PASS)


@app.command()
def reset(
    yes: bool = typer.Option(
        False,
        "--yes",
        "-y",
        help="Confirm discarding the current month's usage"
    ),
):
    """Reset the usage ledger to a zero state."""
    if not yes:
        console.print("[yellow]Refusing to reset without --yes[/]")
        sys.exit(EXIT_CODE_FAIL)

    config = _get_config()
    try:
        ledger = get_ledger_store(
            config.storage.usage_file, recent_limit=config.storage.recent_limit
        ).reset()
    except DocLedgerError as e:
        console.print(f"[red]Error resetting ledger:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)
    console.print(f"[green]✓[/] Usage ledger reset for {ledger.month}")
    sys.exit(EXIT_CODE_PASS)


def _display_ledger(ledger: dict):
    """Display the ledger summary and recent activity."""
    console.print(f"\n[bold]Usage for {ledger['month']}[/bold]")
    console.print("-" * 40)
    console.print(f"Documents processed: {ledger['processed_count']:,}")
    console.print(f"Total tokens: {ledger['total_tokens']:,}")

    if ledger["daily"]:
        daily = Table(title="Daily usage")
        daily.add_column("Day")
        daily.add_column("Tokens", justify="right")
        for day, tokens in sorted(ledger["daily"].items()):
            daily.add_row(day, f"{tokens:,}")
        console.print(daily)

    if not ledger["recent"]:
        console.print("\n[dim]No recent activity.[/]")
        return

    recent = Table(title="Recent activity")
    recent.add_column("Timestamp")
    recent.add_column("Content ID")
    recent.add_column("Status")
    recent.add_column("Tokens", justify="right")
    for entry in ledger["recent"]:
        recent.add_row(
            entry["timestamp"], entry["contentId"], entry["status"], str(entry["tokensUsed"])
        )
    console.print(recent)


if __name__ == "__main__":
    app()
