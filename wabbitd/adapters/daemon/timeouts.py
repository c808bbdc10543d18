"""Centralized timeout configuration for daemon operations.

All polling budgets and socket timeouts used when supervising the engine are
defined here so they can be tuned in one place. The config file overrides
most of them; these are the built-in defaults.
"""


class DaemonTimeouts:
    """Centralized timeout configuration for daemon operations.

    Time values are in seconds unless the name ends in _MS.

    Groups:
        START_*: Waiting for a freshly launched daemon to fork its workers
        STOP_*: Confirming a killed daemon is gone
        CONNECT: Establishing pooled connections
        WATCH_*: Model artifact polling
    """

    # =========================================================================
    # Startup Health Polling
    # =========================================================================

    START_TRIES: int = 5
    """Number of worker-count polls after launching a daemon.

    Process startup is the one genuinely transient condition, so it is the
    only place where a bounded retry is used. With START_DELAY_MS this gives
    a daemon about two seconds to load its model and fork all children.
    """

    START_DELAY_MS: int = 500
    """Delay between startup polls, in milliseconds."""

    # =========================================================================
    # Shutdown Confirmation
    # =========================================================================

    STOP_TRIES: int = 5
    """Polls after SIGKILL before declaring the daemon unkillable."""

    STOP_DELAY_MS: int = 500
    """Delay between stop polls, in milliseconds."""

    # =========================================================================
    # Connections
    # =========================================================================

    CONNECT: float = 5.0
    """Timeout for establishing each pooled TCP connection.

    Only the connect is bounded; pooled sockets are switched back to
    blocking mode afterwards because prediction latency is unbounded.
    """

    # =========================================================================
    # Model Watching
    # =========================================================================

    WATCH_INTERVAL: float = 1.0
    """Seconds between model artifact mtime checks."""

    WATCHER_JOIN: float = 5.0
    """Seconds to wait for the watcher thread to exit when a handle closes."""
