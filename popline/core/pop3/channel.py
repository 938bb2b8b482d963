"""Line-oriented wrapper around a connected socket."""

import socket
from typing import Optional

from popline.utils.errors import NetworkTimeoutError, POP3ConnectionError, ProtocolError
from popline.utils.logging import get_logger

from .constants import CRLF, MAX_LINE_LENGTH

logger = get_logger(__name__)


class LineChannel:
    """Sends and receives CRLF-terminated lines over a socket.

    The channel owns the socket: ``close`` releases it once and later
    calls are no-ops. Socket failures come out as ``POP3ConnectionError``.
    """

    def __init__(self, sock: socket.socket, encoding: str = "utf-8"):
        self._sock = sock
        self._file = sock.makefile("rb")
        self.encoding = encoding
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def send_line(self, line: str) -> None:
        """Send ``line`` followed by CRLF."""
        if self._closed:
            raise POP3ConnectionError("Channel is closed")

        data = line.encode(self.encoding) + CRLF
        try:
            self._sock.sendall(data)
        except socket.timeout as e:
            raise NetworkTimeoutError("Timed out sending to server") from e
        except OSError as e:
            raise POP3ConnectionError(
                f"Failed to send to server: {str(e)}",
                details={"error": str(e)},
            ) from e

    def read_line(self) -> Optional[str]:
        """Read one line with its CRLF (or bare LF) stripped.

        Returns None at end of stream. An empty string is a real empty line.
        """
        if self._closed:
            raise POP3ConnectionError("Channel is closed")

        try:
            raw = self._file.readline(MAX_LINE_LENGTH + 1)
        except ValueError as e:
            # file wrapper closed under us by close() from another thread
            raise POP3ConnectionError("Channel closed while reading") from e
        except socket.timeout as e:
            raise NetworkTimeoutError("Timed out waiting for server") from e
        except OSError as e:
            raise POP3ConnectionError(
                f"Failed to read from server: {str(e)}",
                details={"error": str(e)},
            ) from e

        if self._closed:
            raise POP3ConnectionError("Channel closed while reading")

        if not raw:
            return None

        if len(raw) > MAX_LINE_LENGTH:
            raise ProtocolError(
                "Line too long", details={"limit": MAX_LINE_LENGTH}
            )

        if raw.endswith(CRLF):
            raw = raw[:-2]
        elif raw.endswith(b"\n"):
            raw = raw[:-1]

        return raw.decode(self.encoding, "surrogateescape")

    def close(self) -> None:
        """Close the file wrapper and the socket exactly once.

        Safe to call from another thread while a read is pending: the
        socket is shut down first so the blocked read wakes up and fails
        with ``POP3ConnectionError``.
        """
        if self._closed:
            return
        self._closed = True

        try:
            self._sock.shutdown(socket.SHUT_RDWR)
        except OSError as e:
            logger.debug(f"Error shutting down socket: {str(e)}")

        try:
            self._file.close()
        finally:
            try:
                self._sock.close()
            except OSError as e:
                logger.debug(f"Error closing socket: {str(e)}")
