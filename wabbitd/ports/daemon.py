"""Port interface for engine process control.

Defines the protocol the daemon handle uses to start, stop and observe the
external prediction engine.
"""

from typing import Protocol


class ProcessControl(Protocol):
    """Protocol for controlling engine processes addressed by TCP port.

    Implementations identify a daemon purely by the port on its command
    line; a running daemon shows up as its parent plus one process per
    worker.
    """

    def start(
        self,
        binary: str,
        port: int,
        workers: int,
        model_path: str | None = None,
        test_mode: bool = False,
        quiet: bool = True,
    ) -> None:
        """Launch a daemon detached from the caller.

        Raises:
            DaemonStartError: If the binary cannot be launched
        """
        ...

    def stop(self, port: int, tries: int = 5, delay_ms: int = 500) -> None:
        """Force-kill every process bound to the port.

        Raises:
            DaemonStopError: If processes remain after killing
        """
        ...

    def count(self, port: int) -> int:
        """Count running processes bound to the port.

        Raises:
            HealthCheckError: If the process table cannot be read
        """
        ...

    def is_healthy(self, port: int, workers: int, tries: int, delay_ms: int) -> bool:
        """Poll until exactly workers + 1 processes are observed.

        Returns:
            True once the count matches, False after all tries
        """
        ...
