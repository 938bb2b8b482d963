"""POP3 response parsing: status lines and dot-terminated bodies."""

from dataclasses import dataclass
from typing import Iterable, List, NamedTuple, Tuple

from popline.utils.errors import FormatError, POP3ConnectionError, ProtocolError, ServerError
from popline.utils.logging import get_logger

from .channel import LineChannel
from .constants import POP3Response

logger = get_logger(__name__)


@dataclass(frozen=True)
class Response:
    """A parsed server reply.

    Attributes:
        status: Text after ``+OK``, stripped
        body: Un-stuffed body lines; empty for single-line replies
    """

    status: str
    body: Tuple[str, ...] = ()


class StatResult(NamedTuple):
    """Mailbox summary returned by STAT."""

    message_count: int
    mailbox_size: int


class ListingEntry(NamedTuple):
    """One ``<msg> <value>`` line of a LIST or UIDL reply."""

    message_number: int
    value: str


def parse_short(line: str) -> Response:
    """Parse a single status line.

    Args:
        line: Reply line with its terminator already stripped

    Returns:
        Response with the trimmed status text and an empty body

    Raises:
        ServerError: If the line starts with ``-ERR``
        ProtocolError: If the line is empty or has no known marker
    """
    if line.startswith(POP3Response.OK):
        return Response(status=line[len(POP3Response.OK):].strip())

    if line.startswith(POP3Response.ERR):
        raise ServerError(line[len(POP3Response.ERR):].strip())

    if not line:
        raise ProtocolError("Empty line where a status line was expected")

    raise ProtocolError(
        "Status line has no +OK/-ERR marker", details={"line": line[:80]}
    )


def read_short(channel: LineChannel) -> Response:
    """Read one status line from ``channel`` and parse it."""
    line = channel.read_line()
    if line is None:
        raise POP3ConnectionError("Connection closed by server")

    logger.debug(f"short resp: '{line}'")
    return parse_short(line)


def parse_long(channel: LineChannel) -> Response:
    """Read a status line and the dot-terminated body that follows it.

    A line that is exactly ``.`` ends the body. A line starting with ``..``
    loses its first dot. Anything else is kept verbatim.

    Raises:
        ServerError: If the status line is ``-ERR`` (no body follows)
        ProtocolError: If the stream ends before the terminator line
    """
    response = read_short(channel)
    body: List[str] = []

    while True:
        line = channel.read_line()
        if line is None:
            raise ProtocolError(
                "unexpected end of stream",
                details={"lines_read": len(body)},
            )

        if line == POP3Response.TERMINATOR:
            break

        if line.startswith(POP3Response.TERMINATOR * 2):
            line = line[1:]

        body.append(line)

    logger.debug(f"long resp: '{response.status}' ({len(body)} lines)")
    return Response(status=response.status, body=tuple(body))


def parse_stat(status: str) -> StatResult:
    """Parse STAT status text ``"<count> <size>"``.

    Raises:
        FormatError: Unless the text is exactly two non-negative integers
    """
    tokens = status.split()
    if len(tokens) != 2 or not all(token.isdecimal() for token in tokens):
        raise FormatError(
            f"Malformed STAT reply: '{status}'", details={"status": status}
        )

    return StatResult(int(tokens[0]), int(tokens[1]))


def scan_listing(lines: Iterable[str]) -> List[ListingEntry]:
    """Split LIST or UIDL lines into ``(message_number, value)`` pairs.

    Pass ``response.body`` for a whole-mailbox listing, or
    ``[response.status]`` for a single-message reply (``"+OK 1 500"``).

    Raises:
        FormatError: If a line does not start with a message number
    """
    entries = []

    for line in lines:
        parts = line.split(None, 1)
        if len(parts) != 2 or not parts[0].isdecimal():
            raise FormatError(
                f"Malformed listing line: '{line}'", details={"line": line}
            )
        entries.append(ListingEntry(int(parts[0]), parts[1].split()[0]))

    return entries
