"""Shared state for CLI commands."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field

from loguru import logger
from rich.console import Console


@dataclass
class CommandContext:
    """Console, verbosity and run identifier shared by every command.

    Attributes:
        console: Rich console for formatted output
        verbose: Whether debug logging was requested
        run_id: Identifier of this CLI session, reused as the harvest run id
    """

    console: Console
    verbose: bool = False
    run_id: str = field(default_factory=lambda: uuid.uuid4().hex[:8])

    def __post_init__(self) -> None:
        self.logger = logger.bind(component="cli", run_id=self.run_id)

    @classmethod
    def create(cls, verbose: bool = False, console: Console | None = None) -> CommandContext:
        return cls(console=console or Console(), verbose=verbose)
