"""Common enums used across schemas."""

from enum import Enum


class PeerSessionState(str, Enum):
    """Peer session lifecycle states.

    State Transition Flow:

    IDLE → NEGOTIATING → CONNECTED ⇄ RESTARTING
               ↓             ↓           ↓
             CLOSED        CLOSED      CLOSED

    State Descriptions:
    - IDLE: Pre-creation. A session object exists but no transport has been bound yet.
    - NEGOTIATING: Transport created, offer/answer and ICE candidates being exchanged.
    - CONNECTED: Transport reported connected. Remote media flows.
    - RESTARTING: ICE reported disconnected/failed. An ICE restart is in flight and a
      grace period is armed.
    - CLOSED: Transport released and registry entry removed. Terminal.
    """

    IDLE = "idle"
    NEGOTIATING = "negotiating"
    CONNECTED = "connected"
    RESTARTING = "restarting"
    CLOSED = "closed"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def signal_states(cls) -> list["PeerSessionState"]:
        """States in which inbound negotiation payloads are applied."""
        return [
            PeerSessionState.NEGOTIATING,
            PeerSessionState.CONNECTED,
            PeerSessionState.RESTARTING,
        ]


class IceConnectionState(str, Enum):
    """ICE connectivity states reported by the negotiated transport."""

    NEW = "new"
    CHECKING = "checking"
    CONNECTED = "connected"
    COMPLETED = "completed"
    DISCONNECTED = "disconnected"
    FAILED = "failed"
    CLOSED = "closed"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def parse(cls, value: "IceConnectionState | str") -> "IceConnectionState | None":
        try:
            return cls(str(value).lower())
        except ValueError:
            return None

    @property
    def is_up(self) -> bool:
        return self in (IceConnectionState.CONNECTED, IceConnectionState.COMPLETED)

    @property
    def is_down(self) -> bool:
        return self in (IceConnectionState.DISCONNECTED, IceConnectionState.FAILED)


__all__ = ["IceConnectionState", "PeerSessionState"]
