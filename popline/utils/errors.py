"""Error types raised by popline.

Callers tell "the server said no" (``ServerError``) apart from "the
conversation broke" (``POP3ConnectionError``, ``ProtocolError``) by
exception type.
"""

from enum import Enum
from typing import Any, Dict

## Error Categories


class ErrorCategory(Enum):
    """Categories of errors for better handling."""

    NETWORK = "network"
    PROTOCOL = "protocol"
    SERVER = "server"
    STATE = "state"
    CONFIGURATION = "configuration"
    UNKNOWN = "unknown"


## Custom Exceptions


class PoplineError(Exception):
    """Base exception for all popline errors."""

    category = ErrorCategory.UNKNOWN
    user_message = "An error occurred"

    # Whether the client must drop its transport when this is raised mid-command
    ends_connection = False

    def __init__(
        self, message: str | None = None, details: Dict[str, Any] | None = None
    ):
        """Initialise PoplineError with optional message and details."""
        self.message = message or self.user_message
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert error details to a dictionary."""
        return {
            "error_type": self.__class__.__name__,
            "category": self.category.value,
            "message": self.message,
            "details": self.details,
        }


## Network Errors


class POP3ConnectionError(PoplineError):
    """Transport-level failure: refused connection, TLS failure, closed stream."""

    category = ErrorCategory.NETWORK
    user_message = "Failed to talk to the mail server"
    ends_connection = True


class NetworkTimeoutError(POP3ConnectionError):
    """Exception for network timeout errors."""

    user_message = "The connection timed out"


## Protocol Errors


class ProtocolError(PoplineError):
    """The byte stream broke the POP3 framing rules."""

    category = ErrorCategory.PROTOCOL
    user_message = "The server sent a malformed response"
    ends_connection = True


class FormatError(PoplineError):
    """A reply's status text does not have the expected shape."""

    category = ErrorCategory.PROTOCOL
    user_message = "The server response could not be parsed"


## Server Errors


class ServerError(PoplineError):
    """The server answered with ``-ERR``.

    ``message`` holds the server's text with the marker removed.
    """

    category = ErrorCategory.SERVER
    user_message = "The server rejected the command"

    def __init__(self, message: str = "", details: Dict[str, Any] | None = None):
        super().__init__(message, details)
        # A bare "-ERR" carries no text; keep it empty rather than the default
        self.message = message


## Session Errors


class StateError(PoplineError):
    """Command attempted in a session phase that forbids it."""

    category = ErrorCategory.STATE
    user_message = "Command not allowed in the current session state"


## Configuration Errors


class ConfigurationError(PoplineError):
    """Base exception for configuration-related errors."""

    category = ErrorCategory.CONFIGURATION
    user_message = "A configuration error occurred"


class InvalidConfigError(ConfigurationError):
    """Exception for invalid configuration settings."""

    user_message = "Invalid configuration settings"


## Utility Functions


def format_error_message(error: Exception) -> str:
    """Format an error message for display."""
    if isinstance(error, ServerError):
        return f"Server error: {error.message}"
    elif isinstance(error, PoplineError):
        return error.message
    else:
        return "An unexpected error occurred - check logs for details."
