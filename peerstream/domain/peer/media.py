"""Local media acquisition with permission check and screen share fallback.

Capture itself is done by a `MediaCapture` collaborator (browser bridge, native
capture library, test double). This module only decides what to ask for, in
which order, and makes sure partially acquired handles are released.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Protocol

from loguru import logger

from .errors import MediaCaptureError, MediaPermissionError

AUDIO_CONSTRAINTS: dict = {
    "echoCancellation": True,
    "noiseSuppression": True,
    "autoGainControl": True,
}

VIDEO_CONSTRAINTS: dict = {
    "width": {"ideal": 1280},
    "height": {"ideal": 720},
}


class PermissionState(str, Enum):
    GRANTED = "granted"
    DENIED = "denied"
    PROMPT = "prompt"


class CaptureMode(str, Enum):
    CAMERA = "camera"
    SCREEN = "screen"


class MediaHandle(Protocol):
    @property
    def audio_tracks(self) -> list[Any]: ...

    @property
    def video_tracks(self) -> list[Any]: ...

    def add_track(self, track: Any) -> None: ...

    def stop(self) -> None: ...


class MediaCapture(Protocol):
    async def permission_state(self, name: str = "microphone") -> str: ...

    async def get_user_media(self, *, audio: bool | dict, video: bool | dict) -> MediaHandle: ...

    async def get_display_media(self, *, audio: bool = True) -> MediaHandle: ...

    def combine(self, tracks: list[Any]) -> MediaHandle: ...


@dataclass
class LocalMedia:
    handle: MediaHandle
    mode: CaptureMode


async def check_audio_permission(capture: MediaCapture) -> PermissionState:
    """Query the microphone permission, treating an unsupported query as a prompt."""
    try:
        state = await capture.permission_state("microphone")
    except Exception as e:
        logger.debug("Permission query unavailable: {}", e)
        return PermissionState.PROMPT

    try:
        return PermissionState(state)
    except ValueError:
        return PermissionState.PROMPT


async def request_audio_permission(capture: MediaCapture) -> bool:
    """Open and immediately stop a microphone stream so the user is asked once."""
    try:
        probe = await capture.get_user_media(audio=True, video=False)
    except Exception as e:
        logger.warning("Audio permission denied: {}", e)
        return False
    probe.stop()
    return True


async def _capture_camera(capture: MediaCapture) -> MediaHandle:
    audio = await capture.get_user_media(audio=AUDIO_CONSTRAINTS, video=False)
    try:
        video = await capture.get_user_media(audio=False, video=VIDEO_CONSTRAINTS)
    except Exception:
        audio.stop()
        raise
    try:
        return capture.combine([*audio.audio_tracks, *video.video_tracks])
    except Exception:
        audio.stop()
        video.stop()
        raise


async def _capture_screen(capture: MediaCapture) -> MediaHandle:
    screen = await capture.get_display_media(audio=True)
    if not screen.audio_tracks:
        # Screen share without system audio: borrow the microphone
        try:
            mic = await capture.get_user_media(audio=AUDIO_CONSTRAINTS, video=False)
        except Exception as e:
            logger.warning("Could not add microphone audio to screen share: {}", e)
        else:
            if mic.audio_tracks:
                screen.add_track(mic.audio_tracks[0])
    return screen


async def acquire_local_media(capture: MediaCapture) -> LocalMedia:
    """Acquire the streamer's local media.

    Camera and microphone are tried first. If that fails, a screen share is used
    instead (with the microphone added when the share carries no audio).

    Raises:
        MediaPermissionError: Microphone access is denied
        MediaCaptureError: Neither camera nor screen share could be captured
    """
    permission = await check_audio_permission(capture)
    if permission is PermissionState.DENIED:
        raise MediaPermissionError()
    if permission is PermissionState.PROMPT and not await request_audio_permission(capture):
        raise MediaPermissionError("Audio permission denied")

    try:
        handle = await _capture_camera(capture)
    except Exception as camera_error:
        logger.warning("Camera capture failed, falling back to screen share: {}", camera_error)
        try:
            handle = await _capture_screen(capture)
        except Exception as screen_error:
            raise MediaCaptureError(
                f"Media error: {camera_error}; screen share error: {screen_error}"
            ) from screen_error
        logger.info("Got screen share stream")
        return LocalMedia(handle=handle, mode=CaptureMode.SCREEN)

    logger.info(
        "Got local stream with {} audio and {} video tracks",
        len(handle.audio_tracks),
        len(handle.video_tracks),
    )
    return LocalMedia(handle=handle, mode=CaptureMode.CAMERA)


__all__ = [
    "AUDIO_CONSTRAINTS",
    "CaptureMode",
    "LocalMedia",
    "MediaCapture",
    "MediaHandle",
    "PermissionState",
    "VIDEO_CONSTRAINTS",
    "acquire_local_media",
    "check_audio_permission",
    "request_audio_permission",
]
