"""Client-side failures reported to the UI-facing layer."""

from peerstream.utils.app_errors import AppError, AppErrorCode, HttpStatusCode


class MediaPermissionError(AppError):
    """The user (or the platform) refused access to capture devices."""

    def __init__(self, errmesg: str = "Microphone access denied"):
        super().__init__(
            errcode=AppErrorCode.E_MEDIA_PERMISSION_DENIED,
            errmesg=errmesg,
            status_code=HttpStatusCode.FORBIDDEN,
        )


class MediaCaptureError(AppError):
    """Neither camera capture nor the screen share fallback produced a stream."""

    def __init__(self, errmesg: str):
        super().__init__(
            errcode=AppErrorCode.E_MEDIA_CAPTURE_FAILED,
            errmesg=errmesg,
            status_code=HttpStatusCode.INTERNAL_SERVER_ERROR,
        )


class NegotiationError(AppError):
    """The transport could not complete or keep up negotiation with a peer."""

    def __init__(self, peer_id: str, errmesg: str):
        self.peer_id = peer_id
        super().__init__(
            errcode=AppErrorCode.E_NEGOTIATION_FAILED,
            errmesg=f"Negotiation with {peer_id} failed: {errmesg}",
            status_code=HttpStatusCode.INTERNAL_SERVER_ERROR,
        )


class JoinTimeoutError(AppError):
    """No remote media arrived before the viewer join deadline."""

    def __init__(self, room_id: str | None, timeout_seconds: float):
        self.room_id = room_id
        self.timeout_seconds = timeout_seconds
        super().__init__(
            errcode=AppErrorCode.E_JOIN_TIMEOUT,
            errmesg=f"Connection to room {room_id} timed out after {timeout_seconds:g}s",
            status_code=HttpStatusCode.REQUEST_TIMEOUT,
        )


__all__ = [
    "JoinTimeoutError",
    "MediaCaptureError",
    "MediaPermissionError",
    "NegotiationError",
]
