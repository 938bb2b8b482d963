"""POP3 session phases and the commands each one admits."""

from enum import Enum

from popline.utils.errors import StateError
from popline.utils.logging import get_logger

from .constants import Command

logger = get_logger(__name__)


class SessionState(Enum):
    """Phase of a POP3 session (RFC 1939 section 3)."""

    AUTHORIZATION = "authorization"
    TRANSACTION = "transaction"
    UPDATE = "update"
    CLOSED = "closed"


ALLOWED_COMMANDS = {
    SessionState.AUTHORIZATION: frozenset(
        {Command.USER, Command.PASS, Command.APOP, Command.CAPA, Command.QUIT}
    ),
    SessionState.TRANSACTION: frozenset(
        {
            Command.STAT,
            Command.LIST,
            Command.RETR,
            Command.DELE,
            Command.NOOP,
            Command.RSET,
            Command.TOP,
            Command.UIDL,
            Command.CAPA,
            Command.QUIT,
        }
    ),
    SessionState.UPDATE: frozenset(),
    SessionState.CLOSED: frozenset(),
}


class Session:
    """Tracks the session phase and rejects out-of-phase commands."""

    def __init__(self):
        self._state = SessionState.AUTHORIZATION

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_closed(self) -> bool:
        return self._state is SessionState.CLOSED

    def check(self, command: Command) -> None:
        """Raise StateError unless ``command`` may be sent now."""
        if command not in ALLOWED_COMMANDS[self._state]:
            raise StateError(
                f"{command.value} not allowed in {self._state.value} state",
                details={"command": command.value, "state": self._state.value},
            )

    def authenticated(self) -> None:
        """USER/PASS or APOP succeeded."""
        self._transition(SessionState.AUTHORIZATION, SessionState.TRANSACTION)

    def begin_update(self) -> None:
        """QUIT has been sent from the transaction phase."""
        self._transition(SessionState.TRANSACTION, SessionState.UPDATE)

    def closed(self) -> None:
        """The transport is gone; terminal from any phase."""
        if self._state is not SessionState.CLOSED:
            logger.debug(f"Session {self._state.value} -> closed")
        self._state = SessionState.CLOSED

    def _transition(self, expected: SessionState, target: SessionState) -> None:
        if self._state is not expected:
            raise StateError(
                f"Cannot move to {target.value} from {self._state.value}",
                details={"state": self._state.value, "target": target.value},
            )
        logger.debug(f"Session {self._state.value} -> {target.value}")
        self._state = target
