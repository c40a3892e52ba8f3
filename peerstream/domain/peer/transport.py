"""Contract for the negotiated peer transport and the options it is created with.

The transport is an opaque WebRTC-like peer connection. NAT traversal and codec
negotiation happen inside it; peer sessions only see the events listed in
`TransportEvent` and the handful of methods on `NegotiatedTransport`.
"""

from typing import Any, Callable, Literal, Protocol

from pydantic import BaseModel, Field, field_validator

from peerstream.app_config import AppEnvironConfig

from .media import MediaHandle

ICE_CONNECTION_FAILURE = "ERR_ICE_CONNECTION_FAILURE"


class TransportEvent:
    """Events emitted by a negotiated transport."""

    SIGNAL = "signal"  # outbound negotiation payload (offer, answer, candidate)
    CONNECT = "connect"
    STREAM = "stream"  # remote media handle
    ICE_STATE_CHANGE = "iceStateChange"
    ERROR = "error"
    CLOSE = "close"


class TransportError(Exception):
    """Error reported by a transport through its `error` event."""

    def __init__(self, message: str, code: str | None = None):
        super().__init__(message)
        self.code = code

    @property
    def is_ice_failure(self) -> bool:
        return self.code == ICE_CONNECTION_FAILURE


class NegotiatedTransport(Protocol):
    @property
    def ice_connection_state(self) -> str: ...

    def on(self, event: str, handler: Callable[..., Any]) -> None: ...

    def signal(self, payload: Any) -> None: ...

    def restart_ice(self) -> None: ...

    def destroy(self) -> None: ...


class IceServer(BaseModel):
    urls: list[str]
    username: str | None = None
    credential: str | None = None

    @field_validator("urls", mode="before")
    @classmethod
    def coerce_urls(cls, v: Any) -> Any:
        if isinstance(v, str):
            return [v]
        return v


class IceConfig(BaseModel):
    """Options handed to the transport factory for every new peer connection."""

    ice_servers: list[IceServer] = Field(default_factory=list)
    ice_candidate_pool_size: int = 10
    ice_transport_policy: Literal["all", "relay"] = "all"
    bundle_policy: Literal["balanced", "max-compat", "max-bundle"] = "max-bundle"
    rtcp_mux_policy: Literal["negotiate", "require"] = "require"
    trickle: bool = True
    video_bitrate_kbps: int = Field(default=2000, gt=0)

    @classmethod
    def from_app_config(cls, cfg: AppEnvironConfig) -> "IceConfig":
        return cls(
            ice_servers=[IceServer.model_validate(s) for s in cfg.ICE_SERVERS],
            ice_candidate_pool_size=cfg.ICE_CANDIDATE_POOL_SIZE,
            video_bitrate_kbps=cfg.VIDEO_BITRATE_KBPS,
        )

    def rtc_configuration(self) -> dict:
        """Configuration in the camelCase shape RTCPeerConnection implementations expect."""
        return {
            "iceServers": [s.model_dump(exclude_none=True) for s in self.ice_servers],
            "iceCandidatePoolSize": self.ice_candidate_pool_size,
            "iceTransportPolicy": self.ice_transport_policy,
            "bundlePolicy": self.bundle_policy,
            "rtcpMuxPolicy": self.rtcp_mux_policy,
        }

    def sdp_transform(self, sdp: str) -> str:
        return limit_video_bandwidth(sdp, self.video_bitrate_kbps)


def limit_video_bandwidth(sdp: str, kbps: int) -> str:
    """Pin the video section bandwidth with `b=AS` (kbps) and `b=TIAS` (bps) lines."""
    return sdp.replace(
        "a=mid:video\r\n",
        f"a=mid:video\r\nb=AS:{kbps}\r\nb=TIAS:{kbps * 1000}\r\n",
    )


class TransportFactory(Protocol):
    def __call__(
        self,
        *,
        initiator: bool,
        local_media: MediaHandle | None,
        config: IceConfig,
    ) -> NegotiatedTransport: ...


__all__ = [
    "ICE_CONNECTION_FAILURE",
    "IceConfig",
    "IceServer",
    "NegotiatedTransport",
    "TransportError",
    "TransportEvent",
    "TransportFactory",
    "limit_video_bandwidth",
]
