"""Daemon handle: one running engine instance and its connection pool.

A handle is the identity callers hold on to. Everything that describes the
current instance (port, worker count, model reference, pool) lives in one
immutable DaemonState, and the handle only ever swaps that state reference
as a whole. A hot-reload replaces the state in place, so every holder of the
handle sees the new instance on its next call without re-fetching anything.
"""

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass, replace

from wabbitd.adapters.daemon.pool import ConnectionPool, PooledConnection
from wabbitd.adapters.daemon.process import ProcessController
from wabbitd.adapters.daemon.watcher import ModelWatcher
from wabbitd.domain.config import HealthConfig, PoolConfig, WatchConfig
from wabbitd.domain.exceptions import DaemonNotHealthyError, DaemonNotRunningError
from wabbitd.domain.value_objects import (
    ModelReference,
    Prediction,
    ensure_line_terminated,
)
from wabbitd.ports.daemon import ProcessControl

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DaemonState:
    """Immutable description of one daemon instance.

    Attributes:
        binary: Engine executable
        port: Port the instance listens on
        workers: Number of forked workers
        model: Model reference the instance was started with
        test_mode: Whether the instance runs with -t
        quiet: Whether the instance runs with --quiet
        pool: Live connection pool, None until run() verified the instance
    """

    binary: str
    port: int
    workers: int
    model: ModelReference
    test_mode: bool = False
    quiet: bool = True
    pool: ConnectionPool | None = None


class DaemonHandle:
    """Handle to a supervised engine daemon.

    Use DaemonHandle.construct() rather than instantiating directly.
    """

    def __init__(
        self,
        state: DaemonState,
        controller: ProcessControl | None = None,
        health: HealthConfig | None = None,
        pool_config: PoolConfig | None = None,
        connector: Callable[[str, int, float], PooledConnection] | None = None,
    ):
        self._state = state
        self._lock = threading.RLock()
        self.controller = controller or ProcessController()
        self.health = health or HealthConfig()
        self.pool_config = pool_config or PoolConfig()
        self.connector = connector
        self.watcher: ModelWatcher | None = None

    @classmethod
    def construct(
        cls,
        binary: str,
        port: int,
        workers: int,
        model_path: str,
        test_mode: bool = False,
        updatable: bool = False,
        quiet: bool = True,
        controller: ProcessControl | None = None,
        health: HealthConfig | None = None,
        pool_config: PoolConfig | None = None,
        watch: WatchConfig | None = None,
        connector: Callable[[str, int, float], PooledConnection] | None = None,
        on_change: Callable[["DaemonHandle"], None] | None = None,
        on_error: Callable[[BaseException], None] | None = None,
        start_watcher: bool = True,
    ) -> "DaemonHandle":
        """Create an unstarted handle.

        Args:
            binary: Engine executable
            port: Port to run on
            workers: Number of engine workers
            model_path: Model artifact; must exist
            test_mode: Start the engine with -t
            updatable: Watch the model and hot-reload on change
            quiet: Start the engine with --quiet
            controller: Process controller (default: psutil-based)
            health: Health polling budgets
            pool_config: Connection pool settings
            watch: Model watcher settings
            connector: Opens pooled connections (default: TCP connect)
            on_change: Reload callback (default: Supervisor().recreate)
            on_error: Called if the watcher dies
            start_watcher: Start the watcher when updatable is set

        Returns:
            Handle whose process has not been launched yet

        Raises:
            ModelNotFoundError: If model_path does not exist
        """
        model = ModelReference.stat(model_path, updatable=updatable)
        handle = cls(
            DaemonState(
                binary=binary,
                port=port,
                workers=workers,
                model=model,
                test_mode=test_mode,
                quiet=quiet,
            ),
            controller=controller,
            health=health,
            pool_config=pool_config,
            connector=connector,
        )

        if updatable and start_watcher:
            if on_change is None:
                from wabbitd.core.supervisor import Supervisor

                on_change = Supervisor().recreate
            handle.watcher = ModelWatcher(
                handle,
                on_change,
                interval=(watch or WatchConfig()).interval,
                on_error=on_error,
            )
            handle.watcher.start()

        return handle

    # ------------------------------------------------------------------
    # State access
    # ------------------------------------------------------------------

    @property
    def state(self) -> DaemonState:
        with self._lock:
            return self._state

    @property
    def binary(self) -> str:
        return self.state.binary

    @property
    def port(self) -> int:
        return self.state.port

    @property
    def workers(self) -> int:
        return self.state.workers

    @property
    def model(self) -> ModelReference:
        return self.state.model

    @property
    def test_mode(self) -> bool:
        return self.state.test_mode

    @property
    def quiet(self) -> bool:
        return self.state.quiet

    @property
    def pool(self) -> ConnectionPool | None:
        return self.state.pool

    @property
    def is_running(self) -> bool:
        """True once run() verified the instance and filled its pool."""
        return self.state.pool is not None

    def replace_with(self, other: "DaemonHandle") -> DaemonState:
        """Adopt another handle's instance in a single state swap.

        The other handle gives up its pool; afterwards only this handle
        owns the new instance.

        Returns:
            The state that was replaced
        """
        with self._lock, other._lock:
            previous = self._state
            self._state = other._state
            other._state = replace(other._state, pool=None)
        return previous

    def snapshot(self) -> "DaemonHandle":
        """Copy the configuration of this handle.

        The copy shares neither the pool nor the watcher. It addresses the
        same port, so stopping it stops the instance this handle currently
        points at.
        """
        return DaemonHandle(
            replace(self.state, pool=None),
            controller=self.controller,
            health=self.health,
            pool_config=self.pool_config,
            connector=self.connector,
        )

    # ------------------------------------------------------------------
    # Process lifecycle
    # ------------------------------------------------------------------

    def run(self) -> None:
        """Launch the daemon, verify it, and open the connection pool.

        Any process already bound to the port is killed first.

        Raises:
            DaemonStartError: If the binary cannot be launched
            DaemonNotHealthyError: If the workers never all come up
            DaemonStopError: If a stale daemon on the port cannot be killed
            PoolError: If the pool cannot be filled
        """
        state = self.state

        if self.controller.count(state.port) > 0:
            logger.info(f"Daemon already running on port {state.port}, stopping it first")
            self.stop()

        self.controller.start(
            state.binary,
            state.port,
            state.workers,
            model_path=str(state.model.path),
            test_mode=state.test_mode,
            quiet=state.quiet,
        )

        if not self.controller.is_healthy(
            state.port,
            state.workers,
            self.health.start_tries,
            self.health.start_delay_ms,
        ):
            raise DaemonNotHealthyError(
                f"Failed to start daemon on port {state.port}: expected "
                f"{state.workers + 1} processes",
                hint="Check the engine binary, model file and port availability",
            )

        logger.info(f"Engine daemon is running on port {state.port}")

        pool = ConnectionPool(
            state.port,
            ConnectionPool.capacity_for(state.workers),
            host=self.pool_config.host,
            connect_timeout=self.pool_config.connect_timeout,
            connector=self.connector,
        )
        pool.fill()

        with self._lock:
            self._state = replace(self._state, pool=pool)

    def stop(self) -> None:
        """Kill the daemon and discard its pool.

        Raises:
            DaemonStopError: If processes survive the kill
        """
        state = self.state
        self.controller.stop(
            state.port, self.health.stop_tries, self.health.stop_delay_ms
        )

        with self._lock:
            pool = self._state.pool if self._state.port == state.port else None
            if pool is not None:
                self._state = replace(self._state, pool=None)
        if pool is not None:
            pool.close()

    def close(self) -> None:
        """Stop the model watcher and the daemon."""
        if self.watcher is not None:
            self.watcher.stop()
        self.stop()

    def workers_count(self) -> int:
        """Count live processes (parent included) on this handle's port.

        Raises:
            HealthCheckError: If the process table cannot be read
        """
        return self.controller.count(self.port)

    def is_healthy(self, tries: int = 1, delay_ms: int = 0) -> bool:
        """Check whether the daemon and all its workers are alive."""
        return self.controller.is_healthy(self.port, self.workers, tries, delay_ms)

    # ------------------------------------------------------------------
    # Prediction
    # ------------------------------------------------------------------

    def predict(self, data: bytes | str, timeout: float | None = None) -> Prediction:
        """Send one example to the daemon and parse its prediction.

        Args:
            data: Example in the engine's text format; a newline is
                appended if missing
            timeout: Seconds to wait for a free connection; defaults to
                the pool config's checkout_timeout

        Returns:
            The parsed prediction

        Raises:
            DaemonNotRunningError: If the handle has no live pool
            PoolTimeoutError: If no connection was free before the deadline
            TransportError: If the request or response fails
            PredictionParseError: If the response line is malformed
        """
        if isinstance(data, str):
            data = data.encode("utf-8")
        payload = ensure_line_terminated(data)

        pool = self.pool
        if pool is None:
            raise DaemonNotRunningError(
                f"Daemon on port {self.port} is not running",
                hint="Call run() before predict()",
            )

        if timeout is None:
            timeout = self.pool_config.checkout_timeout

        with pool.connection(timeout) as conn:
            line = conn.request(payload)

        return Prediction.from_line(line)

    def __repr__(self) -> str:
        state = self.state
        return (
            f"DaemonHandle(binary={state.binary!r}, port={state.port}, "
            f"workers={state.workers}, model={str(state.model.path)!r}, "
            f"running={state.pool is not None})"
        )
