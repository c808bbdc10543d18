"""Domain exceptions for wabbitd.

Every exception here represents a fail-fast condition. They are raised where
the fault is detected, propagate to the owner of the failing flow, and are
converted to user-facing messages at the application boundary (CLI).
"""


class WabbitdError(Exception):
    """Base exception for all wabbitd errors.

    Attributes:
        message: User-facing error message.
        hint: Optional actionable suggestion.
    """

    def __init__(self, message: str, hint: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.hint = hint


class ModelNotFoundError(WabbitdError):
    """Raised when the model artifact cannot be stat'ed."""

    pass


class DaemonStartError(WabbitdError):
    """Raised when the engine binary cannot be launched."""

    pass


class DaemonStopError(WabbitdError):
    """Raised when workers are still alive after a forced kill."""

    pass


class HealthCheckError(WabbitdError):
    """Raised when the process table cannot be queried."""

    pass


class DaemonNotHealthyError(WabbitdError):
    """Raised when the daemon never reaches its expected worker count."""

    pass


class DaemonNotRunningError(WabbitdError):
    """Raised when a handle without a live connection pool is used."""

    pass


class PoolError(WabbitdError):
    """Raised when the connection pool cannot be filled."""

    pass


class PoolTimeoutError(PoolError):
    """Raised when no pooled connection became available before the deadline."""

    pass


class TransportError(WabbitdError):
    """Raised when writing to or reading from a pooled connection fails."""

    pass


class PredictionParseError(WabbitdError):
    """Raised when a daemon response line is not '<value> <tag>'.

    Attributes:
        line: The raw response line that failed to parse.
    """

    def __init__(self, message: str, line: str, hint: str | None = None) -> None:
        super().__init__(message, hint=hint)
        self.line = line


class SwapError(WabbitdError):
    """Raised when a hot-reload cannot bring the replacement daemon up."""

    pass
