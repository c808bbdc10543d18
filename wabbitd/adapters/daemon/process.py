"""Engine process control (start/stop/count).

Launches the prediction engine in daemon mode, kills it by port, and counts
its processes to decide whether it is healthy. A daemon is identified only
by the `--port <P>` pair on its command line; its parent and every forked
worker carry the same command line.
"""

import contextlib
import logging
import os
import subprocess
import time
from collections.abc import Callable, Iterable

import psutil

from wabbitd.adapters.daemon.timeouts import DaemonTimeouts
from wabbitd.domain.exceptions import (
    DaemonStartError,
    DaemonStopError,
    HealthCheckError,
)

logger = logging.getLogger(__name__)


def build_command(
    binary: str,
    port: int,
    workers: int,
    model_path: str | None = None,
    test_mode: bool = False,
    quiet: bool = True,
) -> list[str]:
    """Build the engine command line for daemon mode.

    Args:
        binary: Engine executable
        port: TCP port to listen on
        workers: Number of children to fork
        model_path: Model to load with -i (omitted if empty)
        test_mode: Add -t (ignore labels, no learning)
        quiet: Add --quiet

    Returns:
        Argument list suitable for subprocess
    """
    cmd = [binary, "--daemon", "--threads"]
    if quiet:
        cmd.append("--quiet")
    cmd.extend(["--port", str(port), "--num_children", str(workers)])

    if model_path:
        cmd.extend(["-i", str(model_path)])

    if test_mode:
        cmd.append("-t")

    return cmd


def matches_port(cmdline: Iterable[str] | None, port: int) -> bool:
    """Check whether a command line binds the given port.

    Accepts both `--port 26542` and `--port=26542`.
    """
    if not cmdline:
        return False

    args = list(cmdline)
    wanted = str(port)
    for i, arg in enumerate(args):
        if arg == "--port" and i + 1 < len(args) and args[i + 1] == wanted:
            return True
        if arg == f"--port={wanted}":
            return True
    return False


def _psutil_processes_on_port(port: int) -> list[psutil.Process]:
    """List live processes whose command line binds the port.

    The calling process is never included, so no correction for the
    observer is needed.

    Raises:
        HealthCheckError: If the process table cannot be read
    """
    own_pid = os.getpid()
    found = []
    try:
        for proc in psutil.process_iter(["pid", "cmdline"]):
            # cmdline is None for processes we may not inspect or that exited
            if proc.info["pid"] == own_pid:
                continue
            if matches_port(proc.info["cmdline"], port):
                found.append(proc)
    except (psutil.Error, OSError) as e:
        raise HealthCheckError(
            f"Can't read process table to count workers on port {port}: {e}"
        ) from e
    return found


class ProcessController:
    """Process controller for engine daemons.

    Args:
        lister: Returns the processes bound to a port. Defaults to a
            psutil-based process table scan.
        sleep: Sleep function used between polls (seconds).
    """

    def __init__(
        self,
        lister: Callable[[int], list] | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._lister = lister or _psutil_processes_on_port
        self._sleep = sleep
        # Launched parents, kept so they can be reaped after a kill
        self._launched: dict[int, subprocess.Popen] = {}

    def start(
        self,
        binary: str,
        port: int,
        workers: int,
        model_path: str | None = None,
        test_mode: bool = False,
        quiet: bool = True,
    ) -> None:
        """Launch a daemon in the background.

        Does not wait for the daemon; callers verify it with is_healthy().

        Raises:
            DaemonStartError: If the binary cannot be executed
        """
        cmd = build_command(binary, port, workers, model_path, test_mode, quiet)
        logger.info(f"Starting engine daemon: {' '.join(cmd)}")

        output = subprocess.DEVNULL if quiet else None
        try:
            process = subprocess.Popen(
                cmd,
                stdin=subprocess.DEVNULL,
                stdout=output,
                stderr=output,
                start_new_session=True,  # Detach from our process group
            )
        except OSError as e:
            raise DaemonStartError(
                f"Failed to launch {binary}: {e}",
                hint="Check that the engine binary exists and is executable",
            ) from e

        self._launched[port] = process

    def count(self, port: int) -> int:
        """Count processes (parent and workers) bound to the port.

        Raises:
            HealthCheckError: If the process table cannot be read
        """
        return len(self._lister(port))

    def is_healthy(
        self,
        port: int,
        workers: int,
        tries: int = DaemonTimeouts.START_TRIES,
        delay_ms: int = DaemonTimeouts.START_DELAY_MS,
    ) -> bool:
        """Check that the daemon and all its workers are running.

        Polls the process count up to `tries` times, sleeping `delay_ms`
        between polls (never after the last one).

        Args:
            port: Daemon port
            workers: Expected worker count; the parent adds one more process
            tries: Maximum number of polls
            delay_ms: Delay between polls in milliseconds

        Returns:
            True as soon as workers + 1 processes are observed

        Raises:
            HealthCheckError: If the process table cannot be read
        """
        expected = workers + 1
        count = 0
        for attempt in range(tries):
            count = self.count(port)
            if count == expected:
                logger.debug(
                    f"Daemon on port {port} healthy after {attempt + 1} poll(s)"
                )
                return True
            if attempt < tries - 1:
                self._sleep(delay_ms / 1000.0)

        logger.debug(
            f"Daemon on port {port} not healthy: saw {count} processes, "
            f"expected {expected}"
        )
        return False

    def wait_until_gone(
        self,
        port: int,
        tries: int = DaemonTimeouts.STOP_TRIES,
        delay_ms: int = DaemonTimeouts.STOP_DELAY_MS,
    ) -> bool:
        """Poll until no process is bound to the port.

        Returns:
            True if the port is free, False if processes remain after all tries
        """
        for attempt in range(tries):
            self._reap(port)
            if self.count(port) == 0:
                return True
            if attempt < tries - 1:
                self._sleep(delay_ms / 1000.0)
        return False

    def stop(
        self,
        port: int,
        tries: int = DaemonTimeouts.STOP_TRIES,
        delay_ms: int = DaemonTimeouts.STOP_DELAY_MS,
    ) -> None:
        """Force-kill every process bound to the port.

        Stopping a port with nothing on it is not an error.

        Raises:
            DaemonStopError: If processes are still observed afterwards
        """
        procs = self._lister(port)
        if procs:
            logger.info(f"Killing {len(procs)} engine process(es) on port {port}")
        for proc in procs:
            try:
                proc.kill()
            except psutil.NoSuchProcess:
                continue
            except psutil.AccessDenied:
                logger.warning(f"Permission denied killing process {proc.pid}")

        if not self.wait_until_gone(port, tries, delay_ms):
            raise DaemonStopError(
                f"Failed to stop daemon on port {port}",
                hint="Processes survived SIGKILL; manual cleanup required",
            )

        self._launched.pop(port, None)
        logger.info(f"Daemon on port {port} stopped")

    def _reap(self, port: int) -> None:
        """Reap the launched parent if it is our zombie child."""
        process = self._launched.get(port)
        if process is not None:
            with contextlib.suppress(OSError):
                process.poll()
