"""Rich rendering of harvest plans, summaries and errors."""

from __future__ import annotations

from collections.abc import Sequence

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from ..exceptions import ConfigurationError, HarvesterError, get_error_code
from ..harvest.orchestrator import HarvestSummary
from ..models.query import QueryPartition


def partitions_table(partitions: Sequence[QueryPartition]) -> Table:
    table = Table(title=f"Planned partitions ({len(partitions)})")
    table.add_column("Category", style="cyan")
    table.add_column("Year", justify="right")
    table.add_column("Type codes")
    table.add_column("Window")
    for partition in partitions:
        table.add_row(
            partition.category.value,
            str(partition.year) if partition.year is not None else "-",
            ", ".join(sorted(partition.type_codes)),
            partition.window.label(),
        )
    return table


def summary_table(summary: HarvestSummary) -> Table:
    table = Table(title=f"Harvest summary (run {summary.run_id}, {summary.mode})")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")

    table.add_row("Partitions", str(summary.partitions_total))
    table.add_row("  completed", f"[green]{summary.partitions_completed}[/green]")
    table.add_row(
        "  failed",
        f"[red]{summary.partitions_failed}[/red]" if summary.partitions_failed else "0",
    )
    table.add_row("  cancelled", str(summary.partitions_cancelled))
    table.add_row("Awards collected", str(summary.records_collected))
    table.add_row("Awards persisted", str(summary.records_persisted))
    table.add_row("  with details", str(summary.records_enriched))
    table.add_row("  skipped (no id)", str(summary.records_skipped))
    table.add_row("Write failures", str(summary.persist_failures))
    return table


def format_error(error: Exception) -> Panel:
    """Format an error as a red panel, with hints for configuration problems."""
    error_text = Text()
    error_text.append("✗ ", style="bold red")
    message = error.message if isinstance(error, HarvesterError) else str(error)
    error_text.append(message, style="red")

    if type(error).__name__ != "Exception":
        error_text.append(f"\n\nType: {type(error).__name__}", style="dim")
    code = get_error_code(error)
    if code is not None:
        error_text.append(f"\nCode: {code}", style="dim")

    if isinstance(error, ConfigurationError):
        suggestions = [
            "Verify config/base.yaml syntax",
            "Check AWARD_HARVESTER__SECTION__KEY environment overrides",
            "Run with --verbose for detailed error messages",
        ]
        suggestion_text = Text("\n\nSuggested fixes:", style="bold yellow")
        for i, suggestion in enumerate(suggestions, 1):
            suggestion_text.append(f"\n  {i}. {suggestion}", style="yellow")
        error_text.append(suggestion_text)

    return Panel(error_text, title="Error", border_style="red")


def handle_error(error: Exception, console: Console, exit_code: int) -> None:
    """Print the error and exit with `exit_code`."""
    console.print(format_error(error))
    raise typer.Exit(code=exit_code)
