"""wabbitd CLI entrypoint.

Command-line interface for supervising a prediction engine daemon.
"""

from __future__ import annotations

import dataclasses
import functools
import logging
import signal
import sys
import threading
from pathlib import Path
from typing import TYPE_CHECKING

import click

from wabbitd.core.errors import WabbitdCliError, missing_model_error
from wabbitd.domain.exceptions import WabbitdError
from wabbitd.version import __version__

if TYPE_CHECKING:
    from wabbitd.domain.config import WabbitdConfig

logger = logging.getLogger("wabbitd")


def handle_cli_errors(command_name: str):
    """Decorator to handle common CLI errors.

    WabbitdError is converted to WabbitdCliError with its hint; anything
    else is reported as unexpected, with a traceback in verbose mode.

    Args:
        command_name: Name of the command for error messages.
    """

    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except WabbitdCliError:
                raise
            except WabbitdError as e:
                raise WabbitdCliError(e.message, hint=e.hint) from e
            except (FileNotFoundError, ValueError) as e:
                raise WabbitdCliError(
                    str(e),
                    hint="Check your wabbitd configuration",
                ) from e
            except Exception as e:
                ctx = click.get_current_context()
                if ctx.obj.get("verbose", False):
                    import traceback

                    traceback.print_exc()
                raise WabbitdCliError(
                    f"Unexpected error in {command_name}: {e}",
                    hint="Run with --verbose for more details",
                ) from e

        return wrapper

    return decorator


def _setup_logging(verbose: bool, quiet: bool) -> None:
    if verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.WARNING
    else:
        level = logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


def _load_config(config_path: Path | None) -> WabbitdConfig:
    """Load configuration via the config provider."""
    from wabbitd.adapters.factory import ConfigFactory

    return ConfigFactory().create_config_provider().load(config_path)


def _apply_engine_overrides(config: WabbitdConfig, **overrides) -> WabbitdConfig:
    """Return config with non-None engine overrides applied."""
    values = {key: value for key, value in overrides.items() if value is not None}
    if not values:
        return config
    return dataclasses.replace(
        config, engine=dataclasses.replace(config.engine, **values)
    )


def _create_handle(config: WabbitdConfig, updatable: bool, on_error=None):
    from wabbitd.adapters.factory import DaemonFactory

    if not config.engine.model_path:
        missing_model_error()
    return DaemonFactory(config).create_handle(updatable=updatable, on_error=on_error)


engine_options = [
    click.option("--model", "-m", "model_path", type=click.Path(), help="Model file."),
    click.option("--port", "-p", type=int, help="Daemon port."),
    click.option("--workers", "-w", type=int, help="Number of engine workers."),
    click.option("--binary", type=str, help="Engine executable."),
]


def with_engine_options(func):
    for option in reversed(engine_options):
        func = option(func)
    return func


@click.group()
@click.version_option(version=__version__, prog_name="wabbitd")
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose output.",
)
@click.option(
    "--quiet",
    "-q",
    is_flag=True,
    help="Suppress non-essential output.",
)
@click.option(
    "--config",
    "config_path",
    type=click.Path(path_type=Path),
    default=None,
    help="Config file (default: ./wabbitd.toml, then the global config).",
)
@click.pass_context
def cli(ctx: click.Context, verbose: bool, quiet: bool, config_path: Path | None) -> None:
    """wabbitd - supervise a prediction engine daemon.

    Pools connections to the daemon and hot-reloads it when its model
    file changes.
    """
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["config_path"] = config_path
    _setup_logging(verbose, quiet)


@cli.command()
@with_engine_options
@click.option("--no-watch", is_flag=True, help="Do not hot-reload on model changes.")
@click.pass_context
@handle_cli_errors("serve")
def serve(
    ctx: click.Context,
    model_path: str | None,
    port: int | None,
    workers: int | None,
    binary: str | None,
    no_watch: bool,
) -> None:
    """Run the daemon and hot-reload it until interrupted."""
    config = _apply_engine_overrides(
        _load_config(ctx.obj["config_path"]),
        model_path=model_path,
        port=port,
        workers=workers,
        binary=binary,
    )

    done = threading.Event()
    failure: list[BaseException] = []

    def on_watcher_error(error: BaseException) -> None:
        failure.append(error)
        done.set()

    def on_signal(signum, frame) -> None:
        logger.info(f"Received signal {signum}, shutting down...")
        done.set()

    handle = _create_handle(config, updatable=not no_watch, on_error=on_watcher_error)
    signal.signal(signal.SIGTERM, on_signal)
    signal.signal(signal.SIGINT, on_signal)

    try:
        handle.run()
        if not ctx.obj["quiet"]:
            click.echo(f"✓ Daemon running on port {handle.port} ({handle.workers} workers)")
        done.wait()
    finally:
        handle.close()

    if failure:
        error = failure[0]
        if isinstance(error, WabbitdError):
            raise error
        raise WabbitdCliError(f"Model watcher failed: {error}")


@cli.command()
@click.argument("examples", nargs=-1)
@with_engine_options
@click.pass_context
@handle_cli_errors("predict")
def predict(
    ctx: click.Context,
    examples: tuple[str, ...],
    model_path: str | None,
    port: int | None,
    workers: int | None,
    binary: str | None,
) -> None:
    """Start a daemon, predict EXAMPLES (or stdin lines), then stop it."""
    config = _apply_engine_overrides(
        _load_config(ctx.obj["config_path"]),
        model_path=model_path,
        port=port,
        workers=workers,
        binary=binary,
    )

    lines = examples or tuple(line.rstrip("\n") for line in sys.stdin if line.strip())
    if not lines:
        raise WabbitdCliError("No examples given", hint="Pass examples or pipe them on stdin")

    handle = _create_handle(config, updatable=False)
    try:
        handle.run()
        for line in lines:
            click.echo(str(handle.predict(line)))
    finally:
        handle.close()


@cli.command()
@click.option("--port", "-p", type=int, help="Default port of the rotation pair.")
@click.pass_context
@handle_cli_errors("status")
def status(ctx: click.Context, port: int | None) -> None:
    """Show engine processes on both rotation ports."""
    from wabbitd.adapters.factory import DaemonFactory
    from wabbitd.core.supervisor import Supervisor

    config = _apply_engine_overrides(_load_config(ctx.obj["config_path"]), port=port)
    controller = DaemonFactory(config).create_controller()
    supervisor = Supervisor(default_port=config.engine.port)
    expected = config.engine.workers + 1

    for candidate in (supervisor.default_port, supervisor.alternate_port(supervisor.default_port)):
        count = controller.count(candidate)
        if count == 0:
            click.echo(f"✗ Port {candidate}: not running")
        elif count == expected:
            click.echo(f"✓ Port {candidate}: running ({count} processes)")
        else:
            click.echo(f"! Port {candidate}: {count} processes (expected {expected})")


@cli.command()
@click.option("--port", "-p", type=int, help="Default port of the rotation pair.")
@click.pass_context
@handle_cli_errors("stop")
def stop(ctx: click.Context, port: int | None) -> None:
    """Kill engine daemons on both rotation ports."""
    from wabbitd.adapters.factory import DaemonFactory
    from wabbitd.core.supervisor import Supervisor

    config = _apply_engine_overrides(_load_config(ctx.obj["config_path"]), port=port)
    controller = DaemonFactory(config).create_controller()
    supervisor = Supervisor(default_port=config.engine.port)

    for candidate in (supervisor.default_port, supervisor.alternate_port(supervisor.default_port)):
        if controller.count(candidate) == 0:
            continue
        controller.stop(candidate, config.health.stop_tries, config.health.stop_delay_ms)
        click.echo(f"✓ Stopped daemon on port {candidate}")


@cli.group(name="config")
def config_group() -> None:
    """Inspect and create configuration files."""
    pass


@config_group.command(name="path")
def config_path_cmd() -> None:
    """Show config file locations."""
    from wabbitd.shared.config_io import LOCAL_CONFIG_NAME, get_global_config_path

    click.echo(f"global:{get_global_config_path()}")
    click.echo(f"local:{Path.cwd() / LOCAL_CONFIG_NAME}")


@config_group.command(name="show")
@click.pass_context
@handle_cli_errors("config show")
def config_show(ctx: click.Context) -> None:
    """Print the effective configuration as TOML."""
    import tomli_w

    from wabbitd.shared.config_io import config_to_data

    config = _load_config(ctx.obj["config_path"])
    click.echo(tomli_w.dumps(config_to_data(config)), nl=False)


@config_group.command(name="init")
@click.option("--force", "-f", is_flag=True, help="Overwrite an existing file.")
@handle_cli_errors("config init")
def config_init(force: bool) -> None:
    """Write a default ./wabbitd.toml."""
    from wabbitd.domain.config import WabbitdConfig
    from wabbitd.shared.config_io import LOCAL_CONFIG_NAME, save_config

    path = Path.cwd() / LOCAL_CONFIG_NAME
    if path.exists() and not force:
        raise WabbitdCliError(
            f"{path} already exists",
            hint="Use --force to overwrite it",
        )
    save_config(WabbitdConfig.default(), path)
    click.echo(f"✓ Wrote {path}")


def main() -> int:
    """Main entrypoint for the CLI."""
    try:
        cli(obj={})
        return 0
    except Exception as e:
        click.echo(f"Error: {e}", err=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
