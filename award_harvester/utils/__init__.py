"""Shared utilities for the award harvester."""

from .logging_config import configure_logging_from_config, log_context, setup_logging


__all__ = ["configure_logging_from_config", "log_context", "setup_logging"]
