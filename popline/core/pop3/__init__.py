"""POP3 protocol implementation.

Low-level POP3 components:
- LineChannel: CRLF line framing over a socket
- protocol: status line and dot-terminated body parsing
- Session: phase tracking and command gating
- POP3Client: typed POP3 commands
- connect / POP3Connection: connection setup and cleanup

Usage
-----

    >>> from popline.core.pop3 import connect
    >>>
    >>> with connect("pop.example.com") as client:
    ...     client.user("alice")
    ...     client.pass_("secret")
    ...     count, size = client.stat()
    ...     message = client.retr(1).body
"""

from .channel import LineChannel
from .client import ConnectionStats, POP3Client
from .connection import POP3Connection, connect, create_ssl_context, tls_available
from .constants import Command, expects_multiline
from .protocol import (
    ListingEntry,
    Response,
    StatResult,
    parse_long,
    parse_short,
    parse_stat,
    scan_listing,
)
from .session import Session, SessionState

__all__ = [
    "Command",
    "ConnectionStats",
    "LineChannel",
    "ListingEntry",
    "POP3Client",
    "POP3Connection",
    "Response",
    "Session",
    "SessionState",
    "StatResult",
    "connect",
    "create_ssl_context",
    "expects_multiline",
    "parse_long",
    "parse_short",
    "parse_stat",
    "scan_listing",
    "tls_available",
]
