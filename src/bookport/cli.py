"""Command-line interface for bookport.

Built with Typer for commands and Rich for output and log rendering.
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from .config import get_config
from .db import get_db
from .db.schemas import Category, UserProfileRecord
from .errors import ExchangeError
from .export.selector import DateRange
from .formats import ExportFormat, resolve_format
from .imports.orchestrator import ImportSummary
from .pipeline import ExportOptions, decode_upload, infer_format, prepare_export, run_import
from .snapshot import CanonicalSnapshot

# Create the main app
app = typer.Typer(
    name="bookport",
    help="Export, convert and import reading data.",
    no_args_is_help=True,
)

# Rich console for pretty output
console = Console()


# ============================================================================
# Helper Functions
# ============================================================================


def print_error(message: str) -> None:
    """Print an error message."""
    console.print(f"[bold red]Error:[/bold red] {message}")


def print_success(message: str) -> None:
    """Print a success message."""
    console.print(f"[bold green]Success:[/bold green] {message}")


def print_warning(message: str) -> None:
    """Print a warning message."""
    console.print(f"[bold yellow]Warning:[/bold yellow] {message}")


def print_info(message: str) -> None:
    """Print an info message."""
    console.print(f"[dim]{message}[/dim]")


def setup_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=False)],
        force=True,
    )


def format_counts_table(snapshot: CanonicalSnapshot, title: str = "Records") -> Table:
    """Create a rich table of per-category record counts."""
    table = Table(title=title, show_header=True, header_style="bold magenta")
    table.add_column("Category", style="cyan")
    table.add_column("Records", justify="right", style="green")

    for category in Category:
        table.add_row(category.value, str(snapshot.count(category)))
    return table


def format_summary_table(summary: ImportSummary) -> Table:
    """Create a rich table of added/updated/skipped per category."""
    table = Table(title="Import Summary", show_header=True, header_style="bold magenta")
    table.add_column("Category", style="cyan")
    table.add_column("Added", justify="right", style="green")
    table.add_column("Updated", justify="right", style="yellow")
    table.add_column("Skipped", justify="right", style="dim")

    for category, counts in summary.counts.items():
        table.add_row(category.value, str(counts.added), str(counts.updated), str(counts.skipped))
    return table


def _read_upload(file: Path, format_name: Optional[str]) -> tuple[ExportFormat, CanonicalSnapshot]:
    if not file.exists():
        print_error(f"File not found: {file}")
        raise typer.Exit(1)

    data = file.read_bytes()
    try:
        if format_name:
            fmt = resolve_format(format_name)
        else:
            fmt = infer_format(file, data.decode("utf-8-sig", errors="replace"))
        return fmt, decode_upload(data, fmt)
    except ExchangeError as e:
        print_error(e.message)
        raise typer.Exit(1)


# ============================================================================
# Commands
# ============================================================================


@app.callback()
def main_callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging"),
) -> None:
    """Configure logging before any command runs."""
    setup_logging("DEBUG" if verbose else get_config().log_level)


@app.command()
def init() -> None:
    """Create the database tables."""
    config = get_config()
    for problem in config.validate():
        print_warning(problem)

    get_db().create_tables()
    print_success(f"Database ready at {config.db_path}")


@app.command()
def profile(
    owner: str = typer.Argument(..., help="Owner id"),
    name: Optional[str] = typer.Option(None, "--name", "-n", help="Display name"),
    goal: Optional[int] = typer.Option(None, "--goal", "-g", min=0, help="Yearly reading goal"),
) -> None:
    """Create or update an owner profile."""
    db = get_db()
    existing = db.get_profile(owner)

    updates = {"id": owner}
    if name is not None:
        updates["name"] = name
    if goal is not None:
        updates["reading_goal"] = goal

    record = (existing or UserProfileRecord()).model_copy(update=updates)
    db.save_profile(record)

    if existing:
        print_success(f"Updated profile {owner}")
    else:
        print_success(f"Created profile {owner}")


@app.command()
def export(
    owner: str = typer.Argument(..., help="Owner id"),
    format_name: Optional[str] = typer.Option(
        None, "--format", "-f", help="json, csv or goodreads (default from config)"
    ),
    categories: Optional[list[Category]] = typer.Option(
        None, "--category", "-c", help="Category to include (repeatable, default all)"
    ),
    date_from: Optional[datetime] = typer.Option(
        None, "--from", formats=["%Y-%m-%d"], help="First session date to include"
    ),
    date_to: Optional[datetime] = typer.Option(
        None, "--to", formats=["%Y-%m-%d"], help="Last session date to include"
    ),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Output file path"),
) -> None:
    """Export an owner's reading data."""
    date_range = None
    if date_from or date_to:
        try:
            date_range = DateRange(
                start=date_from.date() if date_from else None,
                end=date_to.date() if date_to else None,
            )
        except ValueError as e:
            print_error(str(e))
            raise typer.Exit(1)

    options = ExportOptions(
        format=format_name or get_config().default_format,
        categories=list(categories or []),
        date_range=date_range,
    )

    try:
        text = prepare_export(owner, options, store=get_db())
    except ExchangeError as e:
        print_error(e.message)
        raise typer.Exit(1)

    if output is None:
        console.print(text, markup=False, highlight=False, soft_wrap=True)
        return

    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(text, encoding="utf-8", newline="")
    print_success(f"Exported to {output}")


@app.command()
def preview(
    file: Path = typer.Argument(..., help="File to inspect"),
    format_name: Optional[str] = typer.Option(None, "--format", "-f", help="json, csv or goodreads"),
) -> None:
    """Decode a file and show what it contains without importing it."""
    fmt, snapshot = _read_upload(file, format_name)

    print_info(f"Format: {fmt.value}")
    if snapshot.metadata.owner_id:
        print_info(f"Exported by: {snapshot.metadata.owner_id}")
    console.print(format_counts_table(snapshot, title=file.name))

    for category, count in snapshot.skipped_on_decode.items():
        print_warning(f"{count} {category.value} record(s) skipped while decoding")


@app.command("import")
def import_cmd(
    owner: str = typer.Argument(..., help="Owner id"),
    file: Path = typer.Argument(..., help="File to import"),
    format_name: Optional[str] = typer.Option(None, "--format", "-f", help="json, csv or goodreads"),
    progress: bool = typer.Option(False, "--progress", "-p", help="Show a progress bar"),
) -> None:
    """Import a file into an owner's records."""
    fmt, snapshot = _read_upload(file, format_name)
    print_info(f"Importing {snapshot.total_records} records ({fmt.value})")

    summary = run_import(owner, snapshot, store=get_db(), show_progress=progress)

    console.print(format_summary_table(summary))
    for warning in summary.warnings:
        print_warning(warning)

    if summary.errors:
        table = Table(title="Rejected Records", show_header=True, header_style="bold red")
        table.add_column("Record", style="cyan")
        table.add_column("Field", style="yellow")
        table.add_column("Message")
        for error in summary.errors:
            table.add_row(error.record_ref, error.field or "-", error.message)
        console.print(table)

    if not summary.success:
        print_error(f"Import rolled back: {summary.failure}")
        raise typer.Exit(1)

    print_success(
        f"Imported: {summary.total_added} added, {summary.total_updated} updated, "
        f"{summary.total_skipped} skipped"
    )


def main() -> None:
    """Main entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
