"""Peer session state machine for managing state transitions."""

from peerstream.schemas import PeerSessionState


class PeerSessionStateMachine:
    """State machine for managing peer session state transitions.

    State flow with triggers:
    - IDLE (session object built) -> NEGOTIATING (transport created and handlers bound) | CLOSED
    - NEGOTIATING -> CONNECTED (transport connect / ICE connected) | RESTARTING | CLOSED
    - CONNECTED -> RESTARTING (ICE disconnected or failed) | CLOSED
    - RESTARTING -> CONNECTED (ICE connected again) | CLOSED
    - CLOSED is terminal

    Detailed triggers:
    1. NEGOTIATING: Set by start() once the transport exists; payloads flow both ways
    2. CONNECTED: Set when the transport reports connect, or ICE reaches connected/completed
    3. RESTARTING: Set when ICE reports disconnected/failed; restart_ice() is called and
       the grace timer armed
    4. CLOSED: Set by destroy(), from transport close, unrecoverable negotiation errors,
       restart grace expiry with ICE still failed, or local teardown
    """

    # State transition map defining valid state flows
    TRANSITIONS: dict[PeerSessionState, set[PeerSessionState]] = {
        PeerSessionState.IDLE: {
            PeerSessionState.NEGOTIATING,
            PeerSessionState.CLOSED,
        },
        PeerSessionState.NEGOTIATING: {
            PeerSessionState.CONNECTED,
            PeerSessionState.RESTARTING,
            PeerSessionState.CLOSED,
        },
        PeerSessionState.CONNECTED: {
            PeerSessionState.RESTARTING,
            PeerSessionState.CLOSED,
        },
        PeerSessionState.RESTARTING: {
            PeerSessionState.CONNECTED,
            PeerSessionState.CLOSED,
        },
        PeerSessionState.CLOSED: set(),
    }

    # Terminal states that cannot transition further
    TERMINAL_STATES: set[PeerSessionState] = {PeerSessionState.CLOSED}

    @classmethod
    def can_transition(cls, current: PeerSessionState, new: PeerSessionState) -> bool:
        """Check if state transition is valid.

        Args:
            current: Current session state
            new: Target state to transition to

        Returns:
            True if transition is valid, False otherwise
        """
        return new in cls.TRANSITIONS.get(current, set())

    @classmethod
    def is_terminal(cls, state: PeerSessionState) -> bool:
        """Check if a state is terminal (no further transitions allowed)."""
        return state in cls.TERMINAL_STATES

    @classmethod
    def get_valid_transitions(cls, state: PeerSessionState) -> set[PeerSessionState]:
        """Get all valid transitions from a given state."""
        return cls.TRANSITIONS.get(state, set())

    @classmethod
    def get_valid_sources(cls, target: PeerSessionState) -> set[PeerSessionState]:
        """Get all states that can transition to the target state."""
        return {state for state, targets in cls.TRANSITIONS.items() if target in targets}
