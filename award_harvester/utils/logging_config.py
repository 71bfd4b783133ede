"""Structured logging configuration using loguru."""

from __future__ import annotations

import sys
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING

from loguru import logger

if TYPE_CHECKING:
    from ..config.schemas import LoggingConfig


def setup_logging(
    level: str = "INFO",
    format_type: str = "text",
    file_path: str | None = None,
    max_file_size_mb: int = 100,
    backup_count: int = 5,
    include_stage: bool = True,
    include_run_id: bool = True,
    include_timestamps: bool = True,
) -> None:
    """Set up console and optional rotating file sinks.

    Invalid level names fall back to INFO. Records carry `stage` and `run_id`
    extras; they default to "-" until something binds them.
    """
    logger.remove()
    logger.configure(extra={"stage": "-", "run_id": "-"})

    format_parts = []
    if include_timestamps:
        format_parts.append("<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green>")
    format_parts.append("<level>{level: <8}</level>")
    if include_stage:
        format_parts.append("<cyan>{extra[stage]: <10}</cyan>")
    if include_run_id:
        format_parts.append("<magenta>{extra[run_id]: <8}</magenta>")
    format_parts.append("<level>{message}</level>")

    if format_type == "json":
        log_format = "{message}"
        serialize = True
    else:
        log_format = " | ".join(format_parts)
        serialize = False

    try:
        logger.level(level.upper())
        safe_level = level.upper()
    except ValueError:
        safe_level = "INFO"

    logger.add(
        sys.stdout,
        level=safe_level,
        format=log_format,
        serialize=serialize,
        colorize=format_type != "json",
    )

    if file_path:
        log_file_path = Path(file_path)
        log_file_path.parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_file_path,
            level=safe_level,
            format=log_format,
            serialize=serialize,
            rotation=f"{max_file_size_mb} MB",
            retention=backup_count,
            encoding="utf-8",
        )

    if safe_level != level.upper():
        logger.warning(f"Invalid logging level '{level}' provided; falling back to 'INFO'")


def configure_logging_from_config(config: LoggingConfig, verbose: bool = False) -> None:
    """Configure logging from the `logging` section of the harvester config."""
    setup_logging(
        level="DEBUG" if verbose else config.level,
        format_type=config.format,
        file_path=config.file_path,
        max_file_size_mb=config.max_file_size_mb,
        backup_count=config.backup_count,
        include_stage=config.include_stage,
        include_run_id=config.include_run_id,
        include_timestamps=config.include_timestamps,
    )


@contextmanager
def log_context(stage: str | None = None, run_id: str | None = None) -> Iterator[None]:
    """Attach `stage` and/or `run_id` to every record logged inside the block.

    Backed by loguru's contextualize, so asyncio tasks created inside the
    block inherit the values.
    """
    extra = {}
    if stage:
        extra["stage"] = stage
    if run_id:
        extra["run_id"] = run_id
    with logger.contextualize(**extra):
        yield
