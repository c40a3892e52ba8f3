"""Addresses published by the external RTMP ingest / HLS packaging service.

The service is never called. A room name maps to its ingest and playback
locations by convention:

    rtmp://<ingest>/<app>/<room>              publish
    http://<hls>/<app>/<room>/index.m3u8      play
"""

from urllib.parse import quote

from peerstream.app_config import AppEnvironConfig, get_app_environ_config
from peerstream.schemas import LiveStreamOut


class MediaIngestService:
    def __init__(self, cfg: AppEnvironConfig | None = None) -> None:
        self._cfg = cfg or get_app_environ_config()

    def _stream_path(self, room_id: str) -> str:
        return f"{self._cfg.MEDIA_APP_NAME}/{quote(room_id, safe='')}"

    def playback_url(self, room_id: str) -> str:
        return f"{self._cfg.HLS_BASE_URL}/{self._stream_path(room_id)}/index.m3u8"

    def ingest_url(self, room_id: str) -> str:
        return f"{self._cfg.RTMP_INGEST_BASE_URL}/{self._stream_path(room_id)}"

    def describe(self, room_id: str) -> LiveStreamOut:
        return LiveStreamOut(
            room_id=room_id,
            playback_url=self.playback_url(room_id),
            ingest_url=self.ingest_url(room_id),
        )


media_ingest_service = MediaIngestService()
