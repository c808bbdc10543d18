"""Line protocol for engine daemon communication.

Requests are arbitrary bytes terminated by a newline; each request is
answered with exactly one newline-terminated text line.
"""

import logging
import socket

from wabbitd.domain.exceptions import TransportError
from wabbitd.domain.value_objects import LINE_TERMINATOR, ensure_line_terminated

logger = logging.getLogger(__name__)


def send_line(sock: socket.socket, payload: bytes) -> None:
    """Send one request line over a socket.

    Args:
        sock: Connected socket
        payload: Request bytes; a newline is appended if missing

    Raises:
        TransportError: If the send fails
    """
    try:
        sock.sendall(ensure_line_terminated(payload))
    except OSError as e:
        raise TransportError(f"Error writing to daemon connection: {e}") from e


class LineReader:
    """Buffered reader returning one newline-terminated line at a time.

    One reader belongs to one connection for the connection's lifetime, so
    bytes received past a newline are kept for the next read instead of
    being lost.
    """

    def __init__(self, sock: socket.socket, chunk_size: int = 4096):
        self.sock = sock
        self.chunk_size = chunk_size
        self._buffer = b""

    def read_line(self) -> str:
        """Read the next response line.

        Returns:
            The decoded line without its trailing newline

        Raises:
            TransportError: If the connection fails or closes mid-line
        """
        while LINE_TERMINATOR not in self._buffer:
            try:
                chunk = self.sock.recv(self.chunk_size)
            except OSError as e:
                raise TransportError(f"Error reading daemon response: {e}") from e
            if not chunk:
                raise TransportError("Daemon closed the connection")
            self._buffer += chunk

        line, self._buffer = self._buffer.split(LINE_TERMINATOR, 1)
        if self._buffer:
            logger.debug(f"{len(self._buffer)} bytes buffered after response line")
        return line.decode("utf-8", errors="replace")
