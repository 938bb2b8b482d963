"""POP3 constants and the command table."""

from enum import Enum
from typing import Sequence

CRLF = b"\r\n"

# RFC 1939 caps lines at 512 octets; real servers overshoot
MAX_LINE_LENGTH = 2048


class POP3Ports:
    """Default TCP ports."""

    PLAIN = 110
    TLS = 995


class POP3Response:
    """Status markers that open every server reply."""

    OK = "+OK"
    ERR = "-ERR"
    TERMINATOR = "."


class Timeouts:
    """Timeout values for POP3 operations (in seconds)."""

    POP3_IDLE = 30.0  # Per-read idle timeout, also used for connect


class VerifyModes:
    """Certificate verification policies for TLS connections."""

    VERIFY_PEER = "verify-peer"
    NO_VERIFY = "no-verify"

    ALL = (VERIFY_PEER, NO_VERIFY)


class Command(str, Enum):
    """POP3 command verbs."""

    USER = "USER"
    PASS = "PASS"
    APOP = "APOP"
    STAT = "STAT"
    LIST = "LIST"
    RETR = "RETR"
    DELE = "DELE"
    NOOP = "NOOP"
    RSET = "RSET"
    QUIT = "QUIT"
    TOP = "TOP"
    UIDL = "UIDL"
    CAPA = "CAPA"


# Always answered with a dot-terminated body
_MULTILINE = frozenset({Command.RETR, Command.TOP, Command.CAPA})

# Multi-line for the whole mailbox, single-line for one message
_MULTILINE_WITHOUT_ARGS = frozenset({Command.LIST, Command.UIDL})


def expects_multiline(command: Command, args: Sequence[object] = ()) -> bool:
    """Return True when ``command`` with ``args`` is answered by a long response."""
    if command in _MULTILINE:
        return True
    if command in _MULTILINE_WITHOUT_ARGS:
        return not args
    return False
