"""Background model artifact watcher.

Polls the model file of a daemon handle and triggers a hot-reload when its
modification time changes. The reload runs synchronously on the watcher
thread, so a failed reload ends the watcher instead of leaving it polling a
daemon that is known to serve a stale model.
"""

import logging
import threading
from collections.abc import Callable
from typing import TYPE_CHECKING

from wabbitd.adapters.daemon.timeouts import DaemonTimeouts

if TYPE_CHECKING:
    from wabbitd.adapters.daemon.handle import DaemonHandle

logger = logging.getLogger(__name__)


class ModelWatcher:
    """Cancellable polling loop bound to one daemon handle.

    Args:
        handle: Handle whose model reference is polled
        on_change: Called with the handle when the model changed
        interval: Seconds between checks
        on_error: Called with the exception that stopped the watcher
    """

    def __init__(
        self,
        handle: "DaemonHandle",
        on_change: Callable[["DaemonHandle"], None],
        interval: float = DaemonTimeouts.WATCH_INTERVAL,
        on_error: Callable[[BaseException], None] | None = None,
    ):
        self.handle = handle
        self.on_change = on_change
        self.interval = interval
        self.on_error = on_error
        self.error: BaseException | None = None
        self.reloads = 0

        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def is_alive(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start polling on a daemon thread."""
        if self.is_alive:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run,
            name=f"wabbitd-watcher-{self.handle.model.path.name}",
            daemon=True,
        )
        self._thread.start()
        logger.info(f"Watching model file {self.handle.model.path}")

    def stop(self, timeout: float = DaemonTimeouts.WATCHER_JOIN) -> None:
        """Cancel the loop and wait for the thread to exit."""
        self._stop_event.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
            if thread.is_alive():
                logger.warning("Model watcher did not exit in time (reload in progress?)")

    def check(self) -> bool:
        """Run one poll, reloading if the model changed.

        Returns:
            True if a reload was triggered

        Raises:
            ModelNotFoundError: If the model file disappeared
            WabbitdError: Whatever the reload raises
        """
        if not self.handle.model.has_changed():
            return False

        logger.info(f"Model file {self.handle.model.path} changed, reloading daemon")
        self.on_change(self.handle)
        self.reloads += 1
        return True

    def _run(self) -> None:
        try:
            while not self._stop_event.wait(self.interval):
                self.check()
        except Exception as e:
            self.error = e
            logger.exception(f"Model watcher stopped: {e}")
            if self.on_error is not None:
                self.on_error(e)
