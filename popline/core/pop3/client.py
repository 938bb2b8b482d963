"""POP3 client - typed commands over a connected line channel."""

import hashlib
import re
import time
from dataclasses import dataclass
from typing import List, Optional

from popline.utils.errors import PoplineError, ProtocolError, ServerError
from popline.utils.logging import SensitiveDataMasker, get_logger, log_call

from .channel import LineChannel
from .constants import Command, expects_multiline
from .protocol import Response, StatResult, parse_long, parse_stat, read_short
from .session import Session, SessionState

logger = get_logger(__name__)

# APOP timestamp in the greeting, e.g. <1896.697170952@dbc.mtview.ca.us>
_APOP_TIMESTAMP = re.compile(r"<[^<>]*>")

# PASS and APOP arguments are masked before any handler sees them
_masker = SensitiveDataMasker()


@dataclass
class ConnectionStats:
    """Tracks per-session command metrics."""

    operations_count: int = 0
    server_errors: int = 0
    total_operation_time: float = 0.0
    last_operation_time: Optional[float] = None

    def record_operation(self, duration: float) -> None:
        """Record a command round trip.

        Args:
            duration: Time taken for the command in seconds
        """
        self.operations_count += 1
        self.total_operation_time += duration
        self.last_operation_time = time.time()


def _message_number(value: int, name: str = "msg_num") -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ValueError(f"{name} must be a positive integer, got {value!r}")
    return value


def _encodable(text: str, encoding: str, what: str) -> None:
    try:
        text.encode(encoding)
    except UnicodeEncodeError as e:
        raise ValueError(f"{what} cannot be encoded as {encoding}") from e


def format_command(command: Command, args: tuple, encoding: str = "utf-8") -> str:
    """Render ``VERB arg1 arg2`` and refuse arguments that would split the line
    or that the channel encoding cannot carry."""
    parts = [command.value]
    for arg in args:
        text = str(arg)
        if "\r" in text or "\n" in text:
            raise ValueError(f"{command.value} argument contains a line break")
        _encodable(text, encoding, f"{command.value} argument")
        parts.append(text)
    return " ".join(parts)


class POP3Client:
    """A live POP3 session.

    Instances come from ``connect``; the greeting has already been read
    and the session starts in the AUTHORIZATION phase. The client owns
    the channel and closes it on QUIT, on a connection-ending error or
    on ``close``. Not safe for concurrent use from several threads.
    """

    def __init__(
        self,
        channel: LineChannel,
        host: str,
        port: int,
        use_tls: bool,
        banner: str,
    ):
        self._channel = channel
        self._host = host
        self._port = port
        self._use_tls = use_tls
        self._banner = banner
        self._session = Session()
        self._stats = ConnectionStats()

    def __repr__(self) -> str:
        return (
            f"<POP3Client {self._host}:{self._port} "
            f"tls={self._use_tls} state={self.state.value}>"
        )

    @property
    def host(self) -> str:
        return self._host

    @property
    def port(self) -> int:
        return self._port

    @property
    def use_tls(self) -> bool:
        return self._use_tls

    @property
    def banner(self) -> str:
        """Greeting text after ``+OK``, as sent by the server."""
        return self._banner

    @property
    def state(self) -> SessionState:
        return self._session.state

    @property
    def closed(self) -> bool:
        return self._session.is_closed

    def get_stats(self) -> ConnectionStats:
        return self._stats

    ## Command primitives

    def _short_command(self, command: Command, *args) -> Response:
        self._session.check(command)
        return self._exchange(command, args, multiline=False)

    def _long_command(self, command: Command, *args) -> Response:
        self._session.check(command)
        return self._exchange(command, args, multiline=True)

    def _command(self, command: Command, *args) -> Response:
        """Send a command whose reply shape depends on its arguments."""
        self._session.check(command)
        return self._exchange(command, args, expects_multiline(command, args))

    def _exchange(self, command: Command, args: tuple, multiline: bool) -> Response:
        line = format_command(command, args, self._channel.encoding)
        logger.debug(f"{'long' if multiline else 'short'} cmd: '{_masker.mask_string(line)}'")
        start_time = time.time()

        try:
            self._channel.send_line(line)
            if multiline:
                response = parse_long(self._channel)
            else:
                response = read_short(self._channel)

        except ServerError as e:
            self._stats.server_errors += 1
            logger.debug(f"{command.value} rejected: {e.message}")
            raise

        except PoplineError as e:
            if e.ends_connection:
                logger.warning(
                    f"{command.value} failed, dropping connection: {e.message}",
                    extra={"host": self._host, "port": self._port},
                )
                self._teardown()
            raise

        self._stats.record_operation(time.time() - start_time)
        return response

    def _teardown(self) -> None:
        self._channel.close()
        self._session.closed()

    ## Authorization

    def user(self, name: str) -> Response:
        """USER, send the user name."""
        return self._short_command(Command.USER, name)

    def pass_(self, password: str) -> Response:
        """PASS, send the password; on success the session enters TRANSACTION."""
        response = self._short_command(Command.PASS, password)
        self._session.authenticated()
        return response

    def apop(self, name: str, secret: str) -> Response:
        """APOP, authenticate with a digest of the greeting timestamp.

        Raises:
            ProtocolError: If the greeting carried no ``<timestamp>``
        """
        self._session.check(Command.APOP)
        match = _APOP_TIMESTAMP.search(self._banner)
        if not match:
            raise ProtocolError("APOP not supported by server")

        _encodable(secret, self._channel.encoding, "APOP secret")
        digest_source = (match.group(0) + secret).encode(self._channel.encoding)
        digest = hashlib.md5(digest_source).hexdigest()
        response = self._short_command(Command.APOP, name, digest)
        self._session.authenticated()
        return response

    ## Transaction

    def stat(self) -> StatResult:
        """STAT, get mailbox status.

        Raises:
            FormatError: If the reply is not two non-negative integers
        """
        response = self._short_command(Command.STAT)
        return parse_stat(response.status)

    def list(self, msg_num: Optional[int] = None) -> Response:
        """LIST, the whole scan listing or the size of one message."""
        self._session.check(Command.LIST)
        if msg_num is None:
            return self._command(Command.LIST)
        return self._command(Command.LIST, _message_number(msg_num))

    def retr(self, msg_num: int) -> Response:
        """RETR, retrieve a message."""
        self._session.check(Command.RETR)
        return self._long_command(Command.RETR, _message_number(msg_num))

    def dele(self, msg_num: int) -> Response:
        """DELE, mark a message for deletion."""
        self._session.check(Command.DELE)
        return self._short_command(Command.DELE, _message_number(msg_num))

    def noop(self) -> Response:
        """NOOP, do nothing."""
        return self._short_command(Command.NOOP)

    def rset(self) -> Response:
        """RSET, unmark messages marked for deletion."""
        return self._short_command(Command.RSET)

    def top(self, msg_num: int, max_lines: int) -> Response:
        """TOP, retrieve the headers and up to ``max_lines`` body lines."""
        self._session.check(Command.TOP)
        if isinstance(max_lines, bool) or not isinstance(max_lines, int) or max_lines < 0:
            raise ValueError(f"max_lines must be a non-negative integer, got {max_lines!r}")
        return self._long_command(Command.TOP, _message_number(msg_num), max_lines)

    def uidl(self, msg_num: Optional[int] = None) -> Response:
        """UIDL, the unique id of one message, or of all when ``msg_num`` is None."""
        self._session.check(Command.UIDL)
        if msg_num is None:
            return self._command(Command.UIDL)
        return self._command(Command.UIDL, _message_number(msg_num))

    def list_uidl(self) -> Response:
        """UIDL, unique ids for every message."""
        return self.uidl()

    def capa(self) -> List[str]:
        """CAPA, return server capabilities."""
        response = self._long_command(Command.CAPA)
        return list(response.body)

    ## Teardown

    @log_call
    def quit(self) -> Response:
        """QUIT, commit deletions and close the connection.

        The transport is closed once the reply is in, whatever it says;
        a ``-ERR`` reply is still raised as ServerError afterwards.
        """
        self._session.check(Command.QUIT)
        if self._session.state is SessionState.TRANSACTION:
            self._session.begin_update()

        try:
            return self._exchange(Command.QUIT, (), multiline=False)
        finally:
            self._teardown()
            logger.info(
                "POP3 session closed", extra={"host": self._host, "port": self._port}
            )

    def close(self) -> None:
        """Drop the connection without QUIT; pending deletions are discarded."""
        if not self.closed:
            logger.debug(f"Closing POP3 connection to {self._host}:{self._port}")
        self._teardown()

    ## Context Manager Helpers

    def __enter__(self) -> "POP3Client":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """QUIT on a clean exit, plain close when leaving on an exception."""
        if self.closed:
            return
        if exc_type is None:
            self.quit()
        else:
            self.close()
