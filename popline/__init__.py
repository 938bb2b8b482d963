"""popline - a synchronous POP3 client library."""

from .core.pop3 import (
    POP3Client,
    POP3Connection,
    Response,
    SessionState,
    StatResult,
    connect,
)

__version__ = "0.1.0"

__all__ = [
    "POP3Client",
    "POP3Connection",
    "Response",
    "SessionState",
    "StatResult",
    "connect",
]
