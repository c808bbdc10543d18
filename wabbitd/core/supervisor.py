"""Hot-reload supervisor.

Replaces the instance behind a daemon handle with a freshly started one.
The replacement runs on the other port of a fixed pair (default and
default + 1), so it can never collide with the instance it replaces, and
repeated reloads never consume new ports.

Swap protocol:
1. Snapshot the current handle (drain placeholder, always released)
2. Pick the alternate port
3. Construct and run a replacement with identical settings
4. If it never becomes healthy, kill what it started, release the old
   instance and fail
5. Swap the handle's state for the replacement's in one step
6. Stop the snapshot (kills the old instance) and close the old pool
"""

import logging
import threading
from collections.abc import Callable

from wabbitd.adapters.daemon.handle import DaemonHandle
from wabbitd.domain.config import DEFAULT_PORT
from wabbitd.domain.exceptions import SwapError, WabbitdError

logger = logging.getLogger(__name__)

STABLE = "stable"
SWAPPING = "swapping"


class Supervisor:
    """Coordinates hot-reloads of daemon handles.

    Args:
        default_port: First port of the rotation pair
        factory: Builds the unstarted replacement handle; receives the
            same keyword arguments as DaemonHandle.construct
    """

    def __init__(
        self,
        default_port: int = DEFAULT_PORT,
        factory: Callable[..., DaemonHandle] = DaemonHandle.construct,
    ):
        self.default_port = default_port
        self.factory = factory
        self.state = STABLE
        self.swaps = 0
        self._lock = threading.Lock()

    def alternate_port(self, port: int) -> int:
        """Port the next instance should use."""
        if port == self.default_port:
            return self.default_port + 1
        return self.default_port

    def recreate(self, handle: DaemonHandle) -> DaemonHandle:
        """Swap a freshly started instance into the handle.

        Args:
            handle: Handle to reload in place

        Returns:
            The same handle, now pointing at the new instance

        Raises:
            SwapError: If the replacement cannot be started; the handle keeps
                its old configuration but its instance has been stopped
            DaemonStopError: If the old instance cannot be killed
        """
        with self._lock:
            self.state = SWAPPING
            try:
                self._swap(handle)
            finally:
                self.state = STABLE
        return handle

    def _swap(self, handle: DaemonHandle) -> None:
        drain = handle.snapshot()
        old_pool = handle.pool
        port = self.alternate_port(handle.port)
        logger.info(f"Recreating daemon: port {handle.port} -> {port}")

        swapped = False
        try:
            replacement = self._start_replacement(handle, port)
            handle.replace_with(replacement)
            swapped = True
            self.swaps += 1
            logger.info(f"Daemon swapped to port {port}")
        finally:
            if swapped:
                try:
                    drain.stop()
                finally:
                    if old_pool is not None:
                        old_pool.close()
            else:
                # The drain target is the instance still behind the handle
                handle.stop()

    def _start_replacement(self, handle: DaemonHandle, port: int) -> DaemonHandle:
        try:
            replacement = self.factory(
                binary=handle.binary,
                port=port,
                workers=handle.workers,
                model_path=str(handle.model.path),
                test_mode=handle.test_mode,
                updatable=handle.model.updatable,
                quiet=handle.quiet,
                controller=handle.controller,
                health=handle.health,
                pool_config=handle.pool_config,
                connector=handle.connector,
                # The reloaded handle keeps its own watcher
                start_watcher=False,
            )
        except WabbitdError as e:
            raise self._swap_error(port, e) from e

        try:
            replacement.run()
        except WabbitdError as e:
            # Whatever came up on the alternate port must not outlive the swap
            try:
                replacement.stop()
            except WabbitdError as stop_error:
                logger.error(f"Could not stop failed replacement on port {port}: {stop_error}")
            raise self._swap_error(port, e) from e
        return replacement

    @staticmethod
    def _swap_error(port: int, cause: WabbitdError) -> SwapError:
        return SwapError(
            f"Failed to start replacement daemon on port {port}: {cause.message}",
            hint="The previous daemon is stopped; check the new model file",
        )
