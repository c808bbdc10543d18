"""Factory classes for adapter instantiation.

Keeps the CLI layer free from direct adapter imports. The factories use
lazy imports so that commands which only read config never import the
process-control stack.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from wabbitd.adapters.config.toml_config_provider import TomlConfigProvider
    from wabbitd.adapters.daemon.handle import DaemonHandle
    from wabbitd.adapters.daemon.process import ProcessController
    from wabbitd.domain.config import WabbitdConfig


class DaemonFactory:
    """Factory for creating daemon handles from configuration.

    Args:
        config: WabbitdConfig with engine, health, pool and watch settings.
    """

    def __init__(self, config: WabbitdConfig) -> None:
        self._config = config

    def create_controller(self) -> ProcessController:
        """Create the process controller."""
        from wabbitd.adapters.daemon.process import ProcessController

        return ProcessController()

    def create_handle(
        self,
        updatable: bool | None = None,
        on_error: Callable[[BaseException], None] | None = None,
    ) -> DaemonHandle:
        """Create an unstarted daemon handle.

        Args:
            updatable: Override the config's engine.updatable flag.
            on_error: Called if the model watcher dies.

        Returns:
            DaemonHandle whose process has not been launched yet.

        Raises:
            ModelNotFoundError: If the configured model file does not exist.
        """
        from wabbitd.adapters.daemon.handle import DaemonHandle
        from wabbitd.core.supervisor import Supervisor

        engine = self._config.engine
        if updatable is None:
            updatable = engine.updatable

        supervisor = Supervisor(default_port=engine.port)
        return DaemonHandle.construct(
            binary=engine.binary,
            port=engine.port,
            workers=engine.workers,
            model_path=engine.model_path,
            test_mode=engine.test_mode,
            updatable=updatable,
            quiet=engine.quiet,
            controller=self.create_controller(),
            health=self._config.health,
            pool_config=self._config.pool,
            watch=self._config.watch,
            on_change=supervisor.recreate,
            on_error=on_error,
        )


class ConfigFactory:
    """Factory for creating configuration-related instances."""

    def create_config_provider(self) -> TomlConfigProvider:
        """Create a TomlConfigProvider instance."""
        from wabbitd.adapters.config.toml_config_provider import TomlConfigProvider

        return TomlConfigProvider()
