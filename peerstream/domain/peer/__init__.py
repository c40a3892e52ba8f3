"""Client-side peer session management."""

from .connection_registry import ConnectionRegistry, SessionFactory
from .errors import JoinTimeoutError, MediaCaptureError, MediaPermissionError, NegotiationError
from .media import CaptureMode, LocalMedia, MediaCapture, MediaHandle, acquire_local_media
from .peer_session import PeerSession, RestartAttempt
from .session_state_machine import PeerSessionStateMachine
from .session_supervisor import SessionSupervisor
from .status_feed import StatusFeed
from .transport import (
    IceConfig,
    IceServer,
    NegotiatedTransport,
    TransportError,
    TransportEvent,
    TransportFactory,
)

__all__ = [
    "CaptureMode",
    "ConnectionRegistry",
    "IceConfig",
    "IceServer",
    "JoinTimeoutError",
    "LocalMedia",
    "MediaCapture",
    "MediaCaptureError",
    "MediaHandle",
    "MediaPermissionError",
    "NegotiatedTransport",
    "NegotiationError",
    "PeerSession",
    "PeerSessionStateMachine",
    "RestartAttempt",
    "SessionFactory",
    "SessionSupervisor",
    "StatusFeed",
    "TransportError",
    "TransportEvent",
    "TransportFactory",
    "acquire_local_media",
]
