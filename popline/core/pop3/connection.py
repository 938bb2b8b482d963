"""POP3 connection management - transport setup, greeting and cleanup."""

import socket
import time
from typing import Optional

try:
    import ssl
except ImportError:  # interpreter built without OpenSSL
    ssl = None

from popline.utils.config import POP3Settings
from popline.utils.errors import (
    NetworkTimeoutError,
    POP3ConnectionError,
    PoplineError,
    ProtocolError,
    ServerError,
)
from popline.utils.logging import get_logger, log_call

from .channel import LineChannel
from .client import POP3Client
from .constants import POP3Ports, Timeouts, VerifyModes
from .protocol import read_short

logger = get_logger(__name__)


def tls_available() -> bool:
    """Whether this interpreter can open TLS connections."""
    return ssl is not None


def create_ssl_context(
    verify_mode: str = VerifyModes.VERIFY_PEER, ca_file: Optional[str] = None
) -> "ssl.SSLContext":
    """Build an SSL context for the given verification policy.

    Args:
        verify_mode: ``verify-peer`` checks the chain and host name,
            ``no-verify`` accepts any certificate
        ca_file: Optional PEM bundle used instead of the system store

    Raises:
        POP3ConnectionError: If TLS is unavailable
        ValueError: If ``verify_mode`` is unknown
    """
    if not tls_available():
        raise POP3ConnectionError("encryption unsupported")

    if verify_mode == VerifyModes.VERIFY_PEER:
        return ssl.create_default_context(cafile=ca_file)

    if verify_mode == VerifyModes.NO_VERIFY:
        context = ssl.create_default_context()
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
        return context

    raise ValueError(
        f"Unknown verify mode {verify_mode!r}, expected one of {VerifyModes.ALL}"
    )


def _open_socket(
    host: str,
    port: int,
    timeout: float,
    ssl_context: Optional["ssl.SSLContext"],
) -> socket.socket:
    """Open the TCP connection and run the TLS handshake when asked to."""
    try:
        sock = socket.create_connection((host, port), timeout=timeout)
    except socket.timeout as e:
        raise NetworkTimeoutError(
            f"Timed out connecting to {host}:{port}",
            details={"host": host, "port": port},
        ) from e
    except OSError as e:
        raise POP3ConnectionError(
            f"Failed to connect to {host}:{port}: {str(e)}",
            details={"host": host, "port": port},
        ) from e

    if ssl_context is None:
        return sock

    try:
        return ssl_context.wrap_socket(sock, server_hostname=host)
    except socket.timeout as e:
        sock.close()
        raise NetworkTimeoutError(
            "TLS handshake timed out", details={"host": host, "port": port}
        ) from e
    except (ssl.SSLError, OSError) as e:
        sock.close()
        raise POP3ConnectionError(
            f"TLS negotiation failed: {str(e)}",
            details={"host": host, "port": port},
        ) from e


@log_call
def connect(
    host: str,
    port: Optional[int] = None,
    use_tls: bool = True,
    *,
    timeout: float = Timeouts.POP3_IDLE,
    verify_mode: str = VerifyModes.VERIFY_PEER,
    ca_file: Optional[str] = None,
    ssl_context: Optional["ssl.SSLContext"] = None,
    encoding: str = "utf-8",
) -> POP3Client:
    """Connect to a POP3 server and read its greeting.

    Args:
        host: Server host name
        port: Server port, defaults to 995 with TLS and 110 without
        use_tls: Wrap the connection in TLS
        timeout: Connect and per-read idle timeout in seconds
        verify_mode: Certificate policy when no ``ssl_context`` is given
        ca_file: CA bundle for ``verify-peer``
        ssl_context: Caller-built context, overrides ``verify_mode``
        encoding: Text encoding for commands and replies

    Returns:
        POP3Client in the AUTHORIZATION state

    Raises:
        POP3ConnectionError: If the transport cannot be established
        ProtocolError: If the greeting is not a ``+OK`` line
    """
    if port is None:
        port = POP3Ports.TLS if use_tls else POP3Ports.PLAIN

    if use_tls:
        if not tls_available():
            raise POP3ConnectionError(
                "encryption unsupported", details={"host": host, "port": port}
            )
        if ssl_context is None:
            ssl_context = create_ssl_context(verify_mode, ca_file)
    else:
        ssl_context = None

    logger.info(
        f"Connecting {'with' if use_tls else 'without'} TLS to {host}:{port}",
        extra={"host": host, "port": port},
    )

    sock = _open_socket(host, port, timeout, ssl_context)
    channel = LineChannel(sock, encoding=encoding)

    try:
        greeting = read_short(channel)

    except ServerError as e:
        channel.close()
        raise ProtocolError(
            f"Server refused the session: {e.message}",
            details={"host": host, "port": port},
        ) from e

    except BaseException:
        channel.close()
        raise

    logger.debug(f"Greeting from {host}:{port}: '{greeting.status}'")
    return POP3Client(channel, host, port, use_tls, banner=greeting.status)


class POP3Connection:
    """Opens and authenticates a POP3 session from ``POP3Settings``.

    Use as a context manager: the client is logged in on entry and
    released on exit (QUIT on a clean exit, plain close otherwise).
    """

    def __init__(self, settings: POP3Settings):
        self.settings = settings
        self._client: Optional[POP3Client] = None
        self._connected_at: Optional[float] = None

    @property
    def client(self) -> Optional[POP3Client]:
        return self._client

    def open(self) -> POP3Client:
        """Connect, and log in when a username is configured."""
        settings = self.settings
        start_time = time.time()

        client = connect(
            settings.host,
            settings.port,
            settings.use_tls,
            timeout=settings.timeout,
            verify_mode=settings.verify_mode,
            ca_file=settings.ca_file,
            encoding=settings.encoding,
        )

        if settings.username:
            try:
                client.user(settings.username)
                client.pass_(settings.password.get_secret_value())

            except PoplineError:
                logger.warning(
                    "POP3 authentication failed",
                    extra={"host": settings.host, "username": settings.username},
                )
                client.close()
                raise

        self._client = client
        self._connected_at = time.time()
        logger.info(
            "POP3 connection established",
            extra={
                "host": settings.host,
                "username": settings.username,
                "duration_seconds": round(self._connected_at - start_time, 2),
            },
        )
        return client

    def close(self) -> None:
        """QUIT the session if it is still open."""
        if self._client is not None and not self._client.closed:
            self._client.quit()

    ## Context Manager Helpers

    def __enter__(self) -> POP3Client:
        return self.open()

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._client is not None:
            self._client.__exit__(exc_type, exc_val, exc_tb)
