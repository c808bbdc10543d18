"""Bounded pool of TCP connections to one engine daemon.

The pool is filled once, right after the daemon is verified healthy, with
workers // 2 connections. Callers borrow a connection for exactly one
request/response exchange; when every connection is borrowed, checkout
blocks until one is returned or the optional deadline expires.
"""

import contextlib
import logging
import queue
import socket
import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager

from wabbitd.adapters.daemon.protocol import LineReader, send_line
from wabbitd.adapters.daemon.timeouts import DaemonTimeouts
from wabbitd.domain.exceptions import PoolError, PoolTimeoutError, TransportError

logger = logging.getLogger(__name__)


class PooledConnection:
    """One established connection plus its response reader."""

    def __init__(self, sock: socket.socket):
        self.sock = sock
        self.reader = LineReader(sock)

    def request(self, payload: bytes) -> str:
        """Send one request line and read one response line.

        Raises:
            TransportError: If the exchange fails
        """
        send_line(self.sock, payload)
        return self.reader.read_line()

    def close(self) -> None:
        with contextlib.suppress(OSError):
            self.sock.close()


def connect(host: str, port: int, timeout: float = DaemonTimeouts.CONNECT) -> PooledConnection:
    """Open a blocking TCP connection to the daemon.

    Raises:
        PoolError: If the connection cannot be established
    """
    try:
        sock = socket.create_connection((host, port), timeout=timeout)
    except OSError as e:
        raise PoolError(
            f"Error connecting to daemon at {host}:{port}: {e}",
            hint="Check that the daemon is listening on this port",
        ) from e
    # Only the connect is bounded; predictions may take arbitrarily long
    sock.settimeout(None)
    return PooledConnection(sock)


class ConnectionPool:
    """Fixed-size pool of connections bound to one port.

    Args:
        port: Daemon port
        capacity: Number of connections (workers // 2, see capacity_for)
        host: Daemon address
        connect_timeout: Timeout for each connection attempt
        connector: Factory returning a new connection; defaults to connect()
    """

    def __init__(
        self,
        port: int,
        capacity: int,
        host: str = "127.0.0.1",
        connect_timeout: float = DaemonTimeouts.CONNECT,
        connector: Callable[[str, int, float], PooledConnection] | None = None,
    ):
        if capacity <= 0:
            raise PoolError(f"Pool capacity must be positive, got {capacity}")

        self.port = port
        self.capacity = capacity
        self.host = host
        self.connect_timeout = connect_timeout
        self._connector = connector or connect
        self._idle: queue.Queue[PooledConnection | None] = queue.Queue(maxsize=capacity)
        self._lock = threading.Lock()
        self._size = 0
        self._checked_out = 0
        self._closed = False

    @staticmethod
    def capacity_for(workers: int) -> int:
        """Pool size for a daemon with the given worker count."""
        return workers // 2

    @property
    def size(self) -> int:
        """Number of live connections owned by the pool."""
        return self._size

    @property
    def available(self) -> int:
        """Number of connections waiting in the pool."""
        return self._idle.qsize()

    @property
    def checked_out(self) -> int:
        """Number of connections currently borrowed."""
        return self._checked_out

    @property
    def closed(self) -> bool:
        return self._closed

    def fill(self) -> None:
        """Open every connection up front.

        Partial pools are not supported: if any connection fails, the ones
        already opened are closed and the error is raised.

        Raises:
            PoolError: If a connection cannot be established
        """
        opened: list[PooledConnection] = []
        try:
            for _ in range(self.capacity):
                opened.append(self._connector(self.host, self.port, self.connect_timeout))
        except PoolError:
            for conn in opened:
                conn.close()
            raise

        for conn in opened:
            self._idle.put_nowait(conn)
        self._size = len(opened)
        logger.info(f"Connection pool for port {self.port} created: {self._size}")

    def checkout(self, timeout: float | None = None) -> PooledConnection:
        """Borrow a connection, blocking until one is free.

        Args:
            timeout: Seconds to wait; None waits indefinitely

        Raises:
            PoolTimeoutError: If no connection was returned before the deadline
            PoolError: If the pool is closed or has no live connections left
        """
        if self._closed:
            raise PoolError(f"Connection pool for port {self.port} is closed")
        if self._size == 0:
            raise PoolError(
                f"Connection pool for port {self.port} has no live connections",
                hint="The daemon is unreachable; it must be restarted",
            )

        try:
            conn = self._idle.get(timeout=timeout)
        except queue.Empty as e:
            raise PoolTimeoutError(
                f"No connection to port {self.port} available after {timeout}s",
                hint="All pooled connections are busy; raise checkout_timeout or workers",
            ) from e

        if conn is None:
            # Wake-up marker left by close(); pass it on to the next waiter
            with contextlib.suppress(queue.Full):
                self._idle.put_nowait(None)
            raise PoolError(f"Connection pool for port {self.port} is closed")

        with self._lock:
            self._checked_out += 1
        return conn

    def checkin(self, conn: PooledConnection) -> None:
        """Return a borrowed connection to the pool.

        Raises:
            PoolError: If more connections are returned than were borrowed
        """
        with self._lock:
            if self._checked_out <= 0:
                raise PoolError("Checkin without matching checkout")
            self._checked_out -= 1
            if not self._closed:
                self._idle.put_nowait(conn)
                return
        conn.close()

    def discard(self, conn: PooledConnection) -> None:
        """Drop a broken borrowed connection, replacing it if possible.

        When the last connection cannot be replaced the pool closes itself,
        so waiting and future checkouts fail instead of blocking forever.
        """
        conn.close()
        with self._lock:
            self._checked_out -= 1
            if self._closed:
                return

        try:
            replacement = self._connector(self.host, self.port, self.connect_timeout)
        except PoolError as e:
            with self._lock:
                self._size -= 1
                left = self._size
                if left == 0:
                    self._close_locked()
            logger.error(
                f"Could not replace broken connection to port {self.port} "
                f"({left} left): {e}"
            )
            return

        with self._lock:
            if not self._closed:
                self._idle.put_nowait(replacement)
                logger.warning(f"Replaced broken connection to port {self.port}")
                return
        replacement.close()

    @contextmanager
    def connection(self, timeout: float | None = None) -> Iterator[PooledConnection]:
        """Borrow a connection for the duration of the block.

        A connection that raised TransportError is discarded and replaced
        instead of being returned to the pool.

        Example:
            with pool.connection() as conn:
                line = conn.request(b"1 |f a:1\\n")
        """
        conn = self.checkout(timeout)
        try:
            yield conn
        except TransportError:
            self.discard(conn)
            raise
        except BaseException:
            self.checkin(conn)
            raise
        else:
            self.checkin(conn)

    def close(self) -> None:
        """Close idle connections and wake any blocked checkouts.

        Connections still borrowed are closed when they are checked in.
        """
        with self._lock:
            self._close_locked()

    def _close_locked(self) -> None:
        if self._closed:
            return
        self._closed = True

        while True:
            try:
                conn = self._idle.get_nowait()
            except queue.Empty:
                break
            if conn is not None:
                conn.close()

        # One marker per slot so every waiter wakes up
        for _ in range(self.capacity):
            try:
                self._idle.put_nowait(None)
            except queue.Full:
                break
        logger.debug(f"Connection pool for port {self.port} closed")
