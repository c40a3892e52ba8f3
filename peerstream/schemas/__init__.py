"""Pydantic schemas and enums shared by the server and the client."""

from .session_state import IceConnectionState, PeerSessionState
from .signaling import RoomIdIn, SignalDelivery, SignalEnvelope, SignalingEvent
from .stream import LiveStreamOut, StreamEntry

__all__ = [
    "IceConnectionState",
    "LiveStreamOut",
    "PeerSessionState",
    "RoomIdIn",
    "SignalDelivery",
    "SignalEnvelope",
    "SignalingEvent",
    "StreamEntry",
]
