"""Tests for local media acquisition and the screen share fallback."""

from unittest.mock import MagicMock

import pytest

from peerstream.domain.peer import (
    CaptureMode,
    MediaCaptureError,
    MediaPermissionError,
    acquire_local_media,
)
from peerstream.domain.peer.media import PermissionState, check_audio_permission
from tests.fixtures.fakes import FakeMediaCapture


class TestCheckAudioPermission:
    async def test_granted(self):
        assert await check_audio_permission(FakeMediaCapture()) is PermissionState.GRANTED

    async def test_query_unsupported_is_prompt(self):
        """Test a platform without a permission query is treated as prompt."""
        capture = FakeMediaCapture(permission=NotImplementedError("no permissions API"))

        assert await check_audio_permission(capture) is PermissionState.PROMPT

    async def test_unknown_value_is_prompt(self):
        capture = FakeMediaCapture(permission="maybe")

        assert await check_audio_permission(capture) is PermissionState.PROMPT


class TestAcquireLocalMedia:
    """Tests for acquire_local_media."""

    async def test_camera_and_microphone(self, media_capture):
        """Test camera capture combines microphone audio and camera video."""
        local = await acquire_local_media(media_capture)

        assert local.mode is CaptureMode.CAMERA
        assert local.handle.audio_tracks == ["audio-mic"]
        assert local.handle.video_tracks == ["video-camera"]

    async def test_permission_denied(self):
        """Test a denied microphone permission fails before any capture."""
        capture = FakeMediaCapture(permission="denied")

        with pytest.raises(MediaPermissionError) as exc_info:
            await acquire_local_media(capture)

        assert exc_info.value.errmesg == "Microphone access denied"
        assert capture.requests == []

    async def test_prompt_probes_microphone(self):
        """Test a prompt state opens and stops a probe stream first."""
        capture = FakeMediaCapture(permission="prompt")

        local = await acquire_local_media(capture)

        assert local.mode is CaptureMode.CAMERA
        assert capture.handles[0].stopped is True
        assert capture.requests[0] == ("user", True, False)

    async def test_prompt_refused(self):
        """Test a refused probe reports a permission error."""
        capture = FakeMediaCapture(permission="prompt", audio_error=PermissionError("NotAllowedError"))

        with pytest.raises(MediaPermissionError):
            await acquire_local_media(capture)

    async def test_camera_failure_falls_back_to_screen(self):
        """Test screen share with microphone audio is used when the camera fails."""
        capture = FakeMediaCapture(video_error=RuntimeError("NotFoundError: no camera"))

        local = await acquire_local_media(capture)

        assert local.mode is CaptureMode.SCREEN
        assert local.handle.video_tracks == ["video-screen"]
        assert local.handle.audio_tracks == ["audio-mic"]

    async def test_camera_failure_releases_microphone(self):
        """Test the microphone opened for the camera attempt is stopped on failure."""
        capture = FakeMediaCapture(video_error=RuntimeError("NotReadableError"))

        await acquire_local_media(capture)

        camera_audio = capture.handles[0]
        assert camera_audio.audio_tracks == ["audio-mic"]
        assert camera_audio.stopped is True

    async def test_combine_failure_releases_camera_handles(self):
        """Test both camera-side handles are stopped when combining them fails."""
        capture = FakeMediaCapture(display_error=RuntimeError("share cancelled"))
        capture.combine = MagicMock(side_effect=RuntimeError("cannot combine tracks"))

        with pytest.raises(MediaCaptureError):
            await acquire_local_media(capture)

        audio, video = capture.handles[0], capture.handles[1]
        assert audio.audio_tracks == ["audio-mic"]
        assert video.video_tracks == ["video-camera"]
        assert audio.stopped is True
        assert video.stopped is True

    async def test_screen_share_with_system_audio(self):
        """Test a screen share that carries audio is used as is."""
        capture = FakeMediaCapture(video_error=RuntimeError("no camera"), display_audio=True)

        local = await acquire_local_media(capture)

        assert local.handle.audio_tracks == ["audio-system"]

    async def test_both_captures_fail(self):
        """Test a capture error naming both failures when the fallback fails too."""
        capture = FakeMediaCapture(
            video_error=RuntimeError("no camera"),
            display_error=RuntimeError("share cancelled"),
        )

        with pytest.raises(MediaCaptureError) as exc_info:
            await acquire_local_media(capture)

        assert "no camera" in exc_info.value.errmesg
        assert "share cancelled" in exc_info.value.errmesg
