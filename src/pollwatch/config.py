"""Configuration loading utilities for the watch command."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml  # type: ignore

from .watcher import DEFAULT_INTERVAL

logger = logging.getLogger(__name__)


class ConfigError(Exception):
    """Raised when the configuration file is missing or invalid."""


@dataclass
class WatchConfig:
    """Options describing what to watch and how often to poll it."""

    path: Path
    recursive: bool = False
    interval: float = DEFAULT_INTERVAL


def load_config(path: Path) -> WatchConfig:
    """Load and validate the YAML configuration file."""

    if not path.exists():
        raise ConfigError(f"Configuration file not found: {path}")

    try:
        data = yaml.safe_load(path.read_text())
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse YAML configuration: {exc}") from exc

    if not isinstance(data, dict):
        raise ConfigError("Configuration root must be a mapping")

    config = _parse_watch_config(data.get("watch"), config_path=path)
    logger.debug("Loaded watch configuration from %s: %s", path, config)
    return config


def _parse_watch_config(raw: Any, *, config_path: Path) -> WatchConfig:
    if not isinstance(raw, dict):
        raise ConfigError("'watch' section must be a mapping")

    path_raw = raw.get("path")
    if not isinstance(path_raw, str) or not path_raw:
        raise ConfigError("watch.path must be a non-empty string")

    watch_path = Path(path_raw).expanduser()
    if not watch_path.is_absolute():
        watch_path = (config_path.parent / watch_path).resolve()

    interval = raw.get("interval", DEFAULT_INTERVAL)
    if isinstance(interval, bool):
        raise ConfigError("watch.interval must be numeric")
    try:
        interval_val = float(interval)
    except (TypeError, ValueError) as exc:
        raise ConfigError("watch.interval must be numeric") from exc
    if interval_val <= 0:
        raise ConfigError("watch.interval must be positive")

    recursive_flag = raw.get("recursive", False)
    if not isinstance(recursive_flag, bool):
        raise ConfigError("watch.recursive must be a boolean")

    return WatchConfig(path=watch_path, recursive=recursive_flag, interval=interval_val)
