"""Configuration loading utilities."""

from .loader import build_config, get_config, load_config_from_files, reload_config
from .schemas import CategorySpec, HarvesterConfig


__all__ = [
    "CategorySpec",
    "HarvesterConfig",
    "build_config",
    "get_config",
    "load_config_from_files",
    "reload_config",
]
