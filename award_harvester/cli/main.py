"""Command-line entry point for the award harvester.

Exit status: 0 on success (partial partition failure included), 1 when
every partition failed or setup failed, 2 on configuration errors, 130
when the run was cancelled.
"""

from __future__ import annotations

import asyncio
import signal
from pathlib import Path
from typing import Any

import typer
from loguru import logger
from pydantic import ValidationError

from ..config.loader import get_config
from ..config.schemas import HarvesterConfig, HarvestConfig, OutputConfig
from ..exceptions import ConfigurationError, HarvesterError
from ..harvest.orchestrator import HarvestOrchestrator, HarvestSummary
from ..utils.logging_config import configure_logging_from_config, setup_logging
from .context import CommandContext
from .display import handle_error, partitions_table, summary_table


EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_CONFIG_ERROR = 2
EXIT_CANCELLED = 130

app = typer.Typer(
    name="award-harvester",
    help="Harvest USAspending award records into a JSON file tree",
    add_completion=False,
    no_args_is_help=True,
)


@app.callback()
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
) -> None:
    """USAspending award harvester."""
    setup_logging(level="DEBUG" if verbose else "INFO")
    ctx.obj = CommandContext.create(verbose=verbose)


def load_config(
    config_dir: Path | None,
    environment: str | None,
    harvest_overrides: dict[str, Any] | None = None,
    output_overrides: dict[str, Any] | None = None,
) -> HarvesterConfig:
    """Load configuration and apply command-line overrides, validating the result."""
    config = get_config(
        environment=environment,
        config_dir=str(config_dir) if config_dir is not None else None,
    )
    harvest_overrides = {k: v for k, v in (harvest_overrides or {}).items() if v is not None}
    output_overrides = {k: v for k, v in (output_overrides or {}).items() if v is not None}
    if not harvest_overrides and not output_overrides:
        return config

    try:
        harvest = HarvestConfig.model_validate(
            {**config.harvest.model_dump(), **harvest_overrides}
        )
        output = OutputConfig.model_validate({**config.output.model_dump(), **output_overrides})
    except ValidationError as e:
        raise ConfigurationError(
            f"Invalid command-line option: {e}",
            operation="load_config",
            cause=e,
        ) from e
    return config.model_copy(update={"harvest": harvest, "output": output})


async def _run_harvest(orchestrator: HarvestOrchestrator) -> HarvestSummary:
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, orchestrator.cancel)
        installed = True
    except (NotImplementedError, RuntimeError):
        installed = False
    try:
        return await orchestrator.run()
    finally:
        if installed:
            loop.remove_signal_handler(signal.SIGINT)


@app.command()
def run(
    ctx: typer.Context,
    config_dir: Path | None = typer.Option(None, "--config-dir", help="Directory with base.yaml"),
    environment: str | None = typer.Option(
        None, "--environment", "-e", help="Environment overlay (config/<env>.yaml)"
    ),
    mode: str | None = typer.Option(None, "--mode", help="partitioned or single_pass"),
    enrich: bool | None = typer.Option(
        None, "--enrich/--no-enrich", help="Fetch per-award details (default from config)"
    ),
    concurrency: int | None = typer.Option(None, "--concurrency", "-c", help="Worker count"),
    start_year: int | None = typer.Option(None, "--start-year", help="First year to harvest"),
    end_year: int | None = typer.Option(None, "--end-year", help="Last year to harvest"),
    output_root: Path | None = typer.Option(None, "--output-root", "-o", help="Output directory"),
    deadline: float | None = typer.Option(
        None, "--deadline", help="Cancel the run after this many seconds"
    ),
) -> None:
    """Collect awards and write them to disk."""
    context: CommandContext = ctx.obj

    try:
        config = load_config(
            config_dir,
            environment,
            harvest_overrides={
                "mode": mode,
                "enrich": enrich,
                "concurrency": concurrency,
                "start_year": start_year,
                "end_year": end_year,
                "deadline_seconds": deadline,
            },
            output_overrides={"root": str(output_root) if output_root is not None else None},
        )
    except ConfigurationError as e:
        handle_error(e, context.console, EXIT_CONFIG_ERROR)
        return

    configure_logging_from_config(config.logging, verbose=context.verbose)

    try:
        orchestrator = HarvestOrchestrator(config, run_id=context.run_id)
        summary = asyncio.run(_run_harvest(orchestrator))
    except HarvesterError as e:
        logger.bind(error=e.to_dict()).error(f"Harvest aborted: {e.message}")
        handle_error(e, context.console, EXIT_FAILURE)
        return

    context.console.print(summary_table(summary))

    if summary.cancelled:
        context.console.print("[yellow]Harvest cancelled; no output was written[/yellow]")
        raise typer.Exit(code=EXIT_CANCELLED)
    if summary.all_failed:
        context.console.print("[red]Every partition failed; is the API reachable?[/red]")
        raise typer.Exit(code=EXIT_FAILURE)
    if summary.failed_partitions:
        context.console.print(
            f"[yellow]Failed partitions: {', '.join(summary.failed_partitions)}[/yellow]"
        )


@app.command()
def partitions(
    ctx: typer.Context,
    config_dir: Path | None = typer.Option(None, "--config-dir", help="Directory with base.yaml"),
    environment: str | None = typer.Option(None, "--environment", "-e"),
    mode: str | None = typer.Option(None, "--mode", help="partitioned or single_pass"),
    start_year: int | None = typer.Option(None, "--start-year"),
    end_year: int | None = typer.Option(None, "--end-year"),
) -> None:
    """Print the planned job set without calling the API."""
    context: CommandContext = ctx.obj
    try:
        config = load_config(
            config_dir,
            environment,
            harvest_overrides={"mode": mode, "start_year": start_year, "end_year": end_year},
        )
    except ConfigurationError as e:
        handle_error(e, context.console, EXIT_CONFIG_ERROR)
        return

    planned = HarvestOrchestrator(config, run_id=context.run_id).build_partitions()
    context.console.print(partitions_table(planned))


if __name__ == "__main__":
    app()
