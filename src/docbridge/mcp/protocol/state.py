"""Protocol state machine for the MCP session lifecycle."""

import logging
from enum import Enum, auto
from typing import Callable

logger = logging.getLogger(__name__)


class ProtocolState(Enum):
    """
    Session lifecycle states.

    State transitions:
        DISCONNECTED -> CONNECTING -> INITIALIZING -> READY -> CLOSING -> CLOSED
                                 \\                    /
                                  -> DISCONNECTED <-

    DISCONNECTED is reached from CONNECTING, INITIALIZING or READY when the
    server process exits or the channel breaks. A closed client may be
    reset to DISCONNECTED and connected again.
    """

    DISCONNECTED = auto()
    CONNECTING = auto()
    INITIALIZING = auto()
    READY = auto()
    CLOSING = auto()
    CLOSED = auto()

    def __str__(self) -> str:
        return self.name


class InvalidStateTransition(Exception):
    """Raised when an invalid state transition is attempted."""

    def __init__(self, from_state: ProtocolState, to_state: ProtocolState):
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(
            f"Invalid state transition: {from_state.name} -> {to_state.name}"
        )


StateTransitionCallback = Callable[[ProtocolState, ProtocolState], None]


class ProtocolStateMachine:
    """
    Tracks the session lifecycle state.

    Enforces valid transitions and notifies listeners when they occur.
    """

    VALID_TRANSITIONS: dict[ProtocolState, list[ProtocolState]] = {
        ProtocolState.DISCONNECTED: [ProtocolState.CONNECTING],
        ProtocolState.CONNECTING: [
            ProtocolState.INITIALIZING,
            ProtocolState.DISCONNECTED,  # spawn failed
        ],
        ProtocolState.INITIALIZING: [
            ProtocolState.READY,
            ProtocolState.CLOSING,
            ProtocolState.DISCONNECTED,  # handshake failed
        ],
        ProtocolState.READY: [
            ProtocolState.CLOSING,
            ProtocolState.DISCONNECTED,  # process exited
        ],
        ProtocolState.CLOSING: [
            ProtocolState.CLOSED,
            ProtocolState.DISCONNECTED,
        ],
        ProtocolState.CLOSED: [ProtocolState.DISCONNECTED],
    }

    def __init__(self, initial_state: ProtocolState = ProtocolState.DISCONNECTED):
        self._state = initial_state
        self._listeners: list[StateTransitionCallback] = []

    @property
    def state(self) -> ProtocolState:
        """Current protocol state."""
        return self._state

    @property
    def is_connected(self) -> bool:
        """Check if in a connected state (INITIALIZING or READY)."""
        return self._state in (ProtocolState.INITIALIZING, ProtocolState.READY)

    @property
    def is_ready(self) -> bool:
        """Check if the handshake completed."""
        return self._state == ProtocolState.READY

    def can_transition_to(self, new_state: ProtocolState) -> bool:
        """Check if transition to new_state is valid."""
        return new_state in self.VALID_TRANSITIONS.get(self._state, [])

    def transition(self, new_state: ProtocolState) -> None:
        """
        Transition to a new state.

        Raises:
            InvalidStateTransition: If the transition is not valid.
        """
        if not self.can_transition_to(new_state):
            raise InvalidStateTransition(self._state, new_state)
        self._set(new_state)

    def force_state(self, new_state: ProtocolState) -> None:
        """Set a state without validation, for error recovery."""
        self._set(new_state)

    def on_transition(self, callback: StateTransitionCallback) -> None:
        """Register a callback called with (old_state, new_state)."""
        self._listeners.append(callback)

    def _set(self, new_state: ProtocolState) -> None:
        old_state = self._state
        self._state = new_state
        logger.debug(f"Protocol state {old_state} -> {new_state}")

        for listener in self._listeners:
            try:
                listener(old_state, new_state)
            except Exception:
                logger.exception("State listener failed")

    def __repr__(self) -> str:
        return f"ProtocolStateMachine(state={self._state!r})"
