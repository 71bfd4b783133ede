"""Configuration loader: YAML file merging + get_config that validates.

`load_config_from_files` only reads and deep-merges YAML files (base plus an
optional environment file). Environment variable overrides and validation
happen in `get_config()`.
"""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from ..exceptions import ConfigurationError, ErrorCode
from .schemas import HarvesterConfig


ENV_PREFIX = "AWARD_HARVESTER"


def _deep_merge_dicts(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Deep merge two dictionaries, with override taking precedence."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge_dicts(result[key], value)
        else:
            result[key] = value
    return result


def _convert_env_value(value: str) -> Any:
    """Convert environment variable string to appropriate type."""
    if value.lower() in ("true", "false"):
        return value.lower() == "true"

    try:
        return int(value)
    except ValueError:
        pass

    try:
        return float(value)
    except ValueError:
        pass

    return value


def _apply_env_overrides(config_dict: dict[str, Any], prefix: str = ENV_PREFIX) -> dict[str, Any]:
    """Apply environment variable overrides to configuration dictionary.

    Example:
      AWARD_HARVESTER__HARVEST__CONCURRENCY=4 -> config_dict["harvest"]["concurrency"] = 4
    """
    result = config_dict.copy()

    for env_key, env_value in os.environ.items():
        if not env_key.startswith(f"{prefix}__"):
            continue

        config_path = env_key[len(f"{prefix}__") :].lower().split("__")

        current = result
        for path_part in config_path[:-1]:
            if path_part not in current or not isinstance(current[path_part], dict):
                current[path_part] = {}
            else:
                current[path_part] = dict(current[path_part])
            current = current[path_part]

        current[config_path[-1]] = _convert_env_value(env_value)

    return result


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        with open(path, encoding="utf-8") as f:
            loaded = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(
            f"Failed to parse config file {path}: {e}",
            operation="load_config_from_files",
            details={"file_path": str(path)},
            status_code=ErrorCode.CONFIG_LOAD_FAILED,
            cause=e,
        ) from e
    if not isinstance(loaded, dict):
        raise ConfigurationError(
            f"Config file {path} must contain a mapping at the top level",
            operation="load_config_from_files",
            details={"file_path": str(path)},
            status_code=ErrorCode.CONFIG_LOAD_FAILED,
        )
    return loaded


def load_config_from_files(
    environment: str | None = None, config_dir: Path | str | None = None
) -> dict[str, Any]:
    """Load `base.yaml` and merge an optional `<environment>.yaml` on top of it."""
    config_dir = Path(config_dir) if config_dir is not None else Path("config")

    base_file = config_dir / "base.yaml"
    if not base_file.exists():
        raise ConfigurationError(
            f"Base configuration file not found: {base_file}",
            operation="load_config_from_files",
            details={"file_path": str(base_file), "config_dir": str(config_dir)},
            status_code=ErrorCode.CONFIG_LOAD_FAILED,
        )

    config = _read_yaml(base_file)

    if environment:
        env_file = config_dir / f"{environment}.yaml"
        if env_file.exists():
            config = _deep_merge_dicts(config, _read_yaml(env_file))

    return config


def build_config(
    config_dict: dict[str, Any], apply_env_overrides_flag: bool = True
) -> HarvesterConfig:
    """Validate a raw config dictionary into a HarvesterConfig."""
    if apply_env_overrides_flag:
        config_dict = _apply_env_overrides(config_dict)
    try:
        return HarvesterConfig(**config_dict)
    except ValidationError as e:
        raise ConfigurationError(
            f"Configuration validation failed: {e}",
            operation="build_config",
            cause=e,
        ) from e


@lru_cache(maxsize=4)
def get_config(
    environment: str | None = None,
    config_dir: Path | str | None = None,
    apply_env_overrides_flag: bool = True,
) -> HarvesterConfig:
    """Get validated configuration with caching.

    Environment name defaults to `AWARD_HARVESTER__PIPELINE__ENVIRONMENT`, then
    "development"; the config directory to `AWARD_HARVESTER_CONFIG_DIR`, then
    `./config`.
    """
    if environment is None:
        environment = os.getenv(f"{ENV_PREFIX}__PIPELINE__ENVIRONMENT", "development")
    if config_dir is None:
        config_dir = os.getenv(f"{ENV_PREFIX}_CONFIG_DIR", "config")

    config_dict = load_config_from_files(environment=environment, config_dir=config_dir)
    config_dict.setdefault("pipeline", {})
    if isinstance(config_dict["pipeline"], dict):
        config_dict["pipeline"].setdefault("environment", environment)

    return build_config(config_dict, apply_env_overrides_flag=apply_env_overrides_flag)


def reload_config() -> None:
    """Clear configuration cache to force reload on next access."""
    get_config.cache_clear()
