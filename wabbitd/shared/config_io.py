"""Configuration I/O utilities for reading and writing TOML config files.

This module handles serialization/deserialization of WabbitdConfig to/from TOML format.
"""

import os
import platform
import tomllib  # Built-in Python 3.11+
from pathlib import Path
from typing import Any

import tomli_w

from wabbitd.domain.config import (
    EngineConfig,
    HealthConfig,
    PoolConfig,
    WabbitdConfig,
    WatchConfig,
)

LOCAL_CONFIG_NAME = "wabbitd.toml"


def get_global_config_path() -> Path:
    """Get the path to the global config file.

    The location is platform-dependent:
    - Linux/macOS: $XDG_CONFIG_HOME/wabbitd/config.toml or ~/.config/wabbitd/config.toml
    - Windows: %APPDATA%/wabbitd/config.toml

    Returns:
        Path to the global config file (may not exist)
    """
    if platform.system() == "Windows":
        appdata = os.environ.get("APPDATA", "")
        if appdata:
            return Path(appdata) / "wabbitd" / "config.toml"
        return Path.home() / ".config" / "wabbitd" / "config.toml"

    xdg_config = os.environ.get("XDG_CONFIG_HOME", "")
    if xdg_config:
        return Path(xdg_config) / "wabbitd" / "config.toml"
    return Path.home() / ".config" / "wabbitd" / "config.toml"


def load_config_data(path: Path) -> dict[str, Any]:
    """Load raw TOML data from a config file.

    Args:
        path: Path to a TOML config file

    Returns:
        Dictionary with parsed TOML data

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If config file is malformed
    """
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    try:
        with path.open("rb") as f:
            return tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ValueError(f"Invalid TOML in config file: {e}") from e


def merge_config_data(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Merge two config dictionaries, with override values taking precedence.

    Values are merged key by key inside each section, so an override file
    only needs to list the keys it changes.

    Args:
        base: Base configuration dictionary
        override: Override configuration dictionary (takes precedence)

    Returns:
        Merged configuration dictionary
    """
    result: dict[str, Any] = {}

    for section in set(base.keys()) | set(override.keys()):
        base_section = base.get(section, {})
        override_section = override.get(section, {})

        if isinstance(base_section, dict) and isinstance(override_section, dict):
            result[section] = {**base_section, **override_section}
        elif section in override:
            result[section] = override_section
        else:
            result[section] = base_section

    return result


def config_data_to_wabbitd_config(data: dict[str, Any]) -> WabbitdConfig:
    """Convert raw config data dictionary to WabbitdConfig.

    Args:
        data: Dictionary with config sections

    Returns:
        WabbitdConfig instance

    Raises:
        ValueError: If a section contains unknown keys or invalid values
    """
    sections = {
        "engine": EngineConfig,
        "health": HealthConfig,
        "pool": PoolConfig,
        "watch": WatchConfig,
    }
    parsed = {}
    for name, section_cls in sections.items():
        section_data = data.get(name, {})
        try:
            parsed[name] = section_cls(**section_data)
        except TypeError as e:
            raise ValueError(f"Invalid [{name}] section: {e}") from e

    return WabbitdConfig(**parsed)


def load_config(path: Path) -> WabbitdConfig:
    """Load configuration from a TOML file.

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If config file is malformed
    """
    data = load_config_data(path)
    return config_data_to_wabbitd_config(data)


def config_to_data(config: WabbitdConfig) -> dict[str, Any]:
    """Convert a WabbitdConfig to TOML-serializable sections."""
    pool: dict[str, Any] = {
        "host": config.pool.host,
        "connect_timeout": config.pool.connect_timeout,
    }
    # TOML has no null; an absent key means "block forever"
    if config.pool.checkout_timeout is not None:
        pool["checkout_timeout"] = config.pool.checkout_timeout

    return {
        "engine": {
            "binary": config.engine.binary,
            "port": config.engine.port,
            "workers": config.engine.workers,
            "model_path": config.engine.model_path,
            "test_mode": config.engine.test_mode,
            "quiet": config.engine.quiet,
            "updatable": config.engine.updatable,
        },
        "health": {
            "start_tries": config.health.start_tries,
            "start_delay_ms": config.health.start_delay_ms,
            "stop_tries": config.health.stop_tries,
            "stop_delay_ms": config.health.stop_delay_ms,
        },
        "pool": pool,
        "watch": {
            "interval": config.watch.interval,
        },
    }


def save_config(config: WabbitdConfig, path: Path) -> None:
    """Save configuration to a TOML file.

    Args:
        config: WabbitdConfig to save
        path: Destination path
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    with path.open("wb") as f:
        tomli_w.dump(config_to_data(config), f)
