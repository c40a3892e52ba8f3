"""PeerStream: signaling server and peer session client for live streaming."""

__version__ = "0.1.0"
