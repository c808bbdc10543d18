"""TOML-based configuration provider.

Config loading priority (highest to lowest):
1. Explicit file passed on the command line
2. Local: ./wabbitd.toml (working directory)
3. Global: ~/.config/wabbitd/config.toml (user defaults)
4. Built-in defaults
"""

import logging
from pathlib import Path
from typing import Any

from wabbitd.domain.config import WabbitdConfig
from wabbitd.shared.config_io import (
    LOCAL_CONFIG_NAME,
    config_data_to_wabbitd_config,
    get_global_config_path,
    load_config_data,
    merge_config_data,
)

logger = logging.getLogger(__name__)


class TomlConfigProvider:
    """Configuration provider that loads from TOML files.

    Global and local files are optional and a broken one is skipped with a
    warning. An explicitly requested file must exist and parse.
    """

    def load(self, path: Path | None = None, cwd: Path | None = None) -> WabbitdConfig:
        """Load configuration with global fallback.

        Args:
            path: Explicit config file (errors are not tolerated)
            cwd: Directory searched for a local wabbitd.toml

        Returns:
            WabbitdConfig with merged values or defaults

        Raises:
            FileNotFoundError: If an explicit path does not exist
            ValueError: If the merged configuration is invalid
        """
        data: dict[str, Any] = {}

        global_path = get_global_config_path()
        local_path = (cwd or Path.cwd()) / LOCAL_CONFIG_NAME
        for optional in (global_path, local_path):
            if not optional.exists():
                continue
            try:
                data = merge_config_data(data, load_config_data(optional))
                logger.debug("Loaded config from %s", optional)
            except (FileNotFoundError, ValueError) as e:
                logger.warning("Failed to parse config at %s: %s. Ignoring it.", optional, e)

        if path is not None:
            data = merge_config_data(data, load_config_data(path))
            logger.debug("Loaded config from %s", path)

        if not data:
            return WabbitdConfig.default()
        return config_data_to_wabbitd_config(data)
