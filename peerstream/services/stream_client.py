"""Streaming client: signaling connection, peer sessions and stream directory.

Usage:
    client = StreamClient(transport_factory=my_transport_factory, media_capture=my_capture)
    await client.connect("http://localhost:3001")

    # Streamer: capture local media, announce the room, wait for viewers
    await client.start_streaming("default-room")

    # Viewer: join the room and wait (up to the join timeout) for remote media
    await client.watch("default-room")

    await client.close()
"""

from __future__ import annotations

from collections.abc import Callable
from enum import Enum
from typing import Any

import socketio
from loguru import logger
from pydantic import ValidationError

from peerstream.app_config import AppEnvironConfig, get_app_environ_config
from peerstream.domain.peer import (
    ConnectionRegistry,
    IceConfig,
    JoinTimeoutError,
    LocalMedia,
    MediaCapture,
    PeerSession,
    SessionFactory,
    SessionSupervisor,
    StatusFeed,
    TransportFactory,
    acquire_local_media,
)
from peerstream.schemas import SignalDelivery, SignalingEvent
from peerstream.utils.app_errors import AppError, AppErrorCode, HttpStatusCode


class ClientRole(str, Enum):
    VIEWER = "viewer"
    STREAMER = "streamer"

    def __str__(self) -> str:
        return self.value


class StreamClient:
    """One participant: either the streamer of a room or a viewer of it.

    Owns its ConnectionRegistry, SessionSupervisor, local media and the mirror
    of the server's live stream directory.
    """

    def __init__(
        self,
        transport_factory: TransportFactory,
        media_capture: MediaCapture | None = None,
        *,
        sio: socketio.AsyncClient | None = None,
        cfg: AppEnvironConfig | None = None,
        on_remote_media: Callable[[str, Any], None] | None = None,
        on_timeout: Callable[[JoinTimeoutError], None] | None = None,
    ):
        self._cfg = cfg or get_app_environ_config()
        self._transport_factory = transport_factory
        self._media_capture = media_capture
        self._on_remote_media_cb = on_remote_media
        self._on_timeout_cb = on_timeout

        self.sio = sio or socketio.AsyncClient(
            logger=False,  # loguru handles our logging
            engineio_logger=False,
        )
        self.connections = ConnectionRegistry()
        self.supervisor = SessionSupervisor(
            timeout_seconds=self._cfg.JOIN_TIMEOUT_SECONDS,
            on_timeout=self._handle_join_timeout,
        )
        self.status = StatusFeed(self._cfg.STATUS_HISTORY_SIZE)
        self.ice_config = IceConfig.from_app_config(self._cfg)

        self.role = ClientRole.VIEWER
        self.room_id = self._cfg.DEFAULT_ROOM_ID
        self.active_streams: list[str] = []
        self.local_media: LocalMedia | None = None
        self.remote_media: Any = None
        self.last_error: AppError | None = None

        self._register_event_handlers()

    # --- properties -----------------------------------------------------------------

    @property
    def connection_id(self) -> str | None:
        return self.sio.sid

    @property
    def is_streamer(self) -> bool:
        return self.role is ClientRole.STREAMER

    @property
    def is_loading(self) -> bool:
        return self.supervisor.loading

    # --- lifecycle ------------------------------------------------------------------

    async def connect(self, url: str) -> None:
        """Open the signaling channel."""
        await self.sio.connect(url, socketio_path=self._cfg.SIGNALING_PATH)

    async def close(self) -> None:
        """Tear down sessions, release local media and leave the signaling server."""
        self.supervisor.abandon()
        self.connections.destroy_all(reason="client closed")
        self._release_local_media()
        if self.sio.connected:
            await self.sio.disconnect()

    def set_role(self, role: ClientRole) -> None:
        """Switch between streamer and viewer, dropping everything tied to the old role."""
        if role is self.role:
            return
        logger.info("Switching role {} -> {}", self.role, role)
        self.supervisor.abandon()
        self.connections.destroy_all(reason=f"switched to {role}")
        self._release_local_media()
        self.remote_media = None
        self.role = role

    async def start_streaming(self, room_id: str | None = None) -> bool:
        """Capture local media, announce the stream and join the room as its streamer.

        Returns:
            False if local media could not be acquired (see `last_error`)
        """
        self.set_role(ClientRole.STREAMER)
        self._switch_room(room_id)
        self.status.reset("Initializing WebRTC...")
        self._ensure_connected()

        if self._media_capture is None:
            self._fail(
                AppError(
                    errcode=AppErrorCode.E_MEDIA_CAPTURE_FAILED,
                    errmesg="No media capture available",
                    status_code=HttpStatusCode.BAD_REQUEST,
                )
            )
            return False

        if self.local_media is not None:
            # Already streaming this room: live sessions keep using the same capture
            self.status.add(f"Reusing local stream ({self.local_media.mode.value})")
        else:
            try:
                self.local_media = await acquire_local_media(self._media_capture)
            except AppError as e:
                self._fail(e)
                return False
            self.status.add(f"Got local stream ({self.local_media.mode.value})")

        await self.sio.emit(SignalingEvent.START_STREAM, self.room_id)
        await self.sio.emit(SignalingEvent.JOIN_ROOM, self.room_id)
        self.status.add("Joined room as streamer")
        return True

    async def watch(self, room_id: str | None = None) -> None:
        """Join a room as a viewer and arm the join deadline."""
        self.set_role(ClientRole.VIEWER)
        self._switch_room(room_id)
        self.status.reset("Initializing WebRTC...")
        self._ensure_connected()

        self.last_error = None
        self.supervisor.begin_attempt(self.room_id)
        await self.sio.emit(SignalingEvent.JOIN_ROOM, self.room_id)
        self.status.add("Joined room as viewer")

    def initiate_call(self, peer_id: str) -> PeerSession:
        """Start a fresh negotiation with `peer_id`, replacing any existing session."""
        return self.connections.ensure_session(peer_id, self._session_factory(initiator=self.is_streamer))

    # --- signaling events -----------------------------------------------------------

    def _register_event_handlers(self) -> None:
        self.sio.on(SignalingEvent.CONNECT)(self._handle_connect)
        self.sio.on(SignalingEvent.DISCONNECT)(self._handle_disconnect)
        self.sio.on(SignalingEvent.USER_JOINED)(self._handle_user_joined)
        self.sio.on(SignalingEvent.SIGNAL)(self._handle_signal)
        self.sio.on(SignalingEvent.ACTIVE_STREAMS)(self._handle_active_streams)
        self.sio.on(SignalingEvent.STREAM_STARTED)(self._handle_stream_started)
        self.sio.on(SignalingEvent.STREAM_ENDED)(self._handle_stream_ended)

    async def _handle_connect(self) -> None:
        self.status.add("Connected to signaling server")

    async def _handle_disconnect(self, *args: Any) -> None:
        self.supervisor.abandon()
        self.connections.destroy_all(reason="signaling disconnected")
        self.status.add("Disconnected from server")

    async def _handle_user_joined(self, peer_id: str) -> None:
        self.status.add(f"User joined: {peer_id}")
        if self.is_streamer:
            self.initiate_call(peer_id)

    async def _handle_signal(self, data: Any) -> None:
        try:
            delivery = SignalDelivery.model_validate(data)
        except ValidationError as e:
            logger.warning("Ignoring malformed signal: {}", e.errors())
            return

        self.status.add(f"Received signal from: {delivery.from_}")
        session, created = self.connections.get_or_create(
            delivery.from_, self._session_factory(initiator=False)
        )
        if created:
            logger.info("Created session for unknown peer {} on inbound signal", delivery.from_)
        session.apply_signal(delivery.payload)

    async def _handle_active_streams(self, rooms: list[str]) -> None:
        self.active_streams = list(dict.fromkeys(r for r in rooms or [] if isinstance(r, str)))
        self.status.add("Received active streams list")

    async def _handle_stream_started(self, room_id: str) -> None:
        if room_id not in self.active_streams:
            self.active_streams.append(room_id)
        self.status.add(f"New stream started: {room_id}")

    async def _handle_stream_ended(self, room_id: str) -> None:
        self.active_streams = [r for r in self.active_streams if r != room_id]
        self.status.add(f"Stream ended: {room_id}")

    # --- peer session wiring --------------------------------------------------------

    def _session_factory(self, initiator: bool) -> SessionFactory:
        local_media = self.local_media.handle if self.local_media else None

        def factory(peer_id: str) -> PeerSession:
            return PeerSession.create(
                peer_id,
                self._transport_factory,
                initiator=initiator,
                local_media=local_media,
                ice_config=self.ice_config,
                send_signal=self._send_signal,
                on_remote_media=self._handle_remote_media,
                on_status=self.status.add,
                restart_grace_seconds=self._cfg.ICE_RESTART_GRACE_SECONDS,
            )

        return factory

    async def _send_signal(self, peer_id: str, payload: Any) -> None:
        await self.sio.emit(
            SignalingEvent.SIGNAL,
            {"to": peer_id, "from": self.connection_id, "payload": payload},
        )

    def _handle_remote_media(self, peer_id: str, media: Any) -> None:
        self.remote_media = media
        self.supervisor.on_remote_media()
        if self._on_remote_media_cb is not None:
            self._on_remote_media_cb(peer_id, media)

    def _handle_join_timeout(self, error: JoinTimeoutError) -> None:
        self.last_error = error
        self.status.add("Connection timed out. Please try again.")
        if self._on_timeout_cb is not None:
            self._on_timeout_cb(error)

    # --- helpers --------------------------------------------------------------------

    def _switch_room(self, room_id: str | None) -> None:
        if room_id and room_id != self.room_id:
            # Local media and sessions belong to the previous room
            self.supervisor.abandon()
            self.connections.destroy_all(reason=f"switched to room {room_id}")
            self._release_local_media()
            self.room_id = room_id

    def _ensure_connected(self) -> None:
        if not self.sio.connected:
            raise AppError(
                errcode=AppErrorCode.E_NOT_CONNECTED,
                errmesg="Not connected to the signaling server",
                status_code=HttpStatusCode.BAD_REQUEST,
            )

    def _fail(self, error: AppError) -> None:
        self.last_error = error
        self.status.add(f"Error: {error.errmesg}")
        logger.warning("{} {}", error.errcode, error.errmesg)

    def _release_local_media(self) -> None:
        if self.local_media is None:
            return
        media, self.local_media = self.local_media, None
        try:
            media.handle.stop()
        except Exception as e:
            logger.warning("Error stopping local media: {}", e)


__all__ = ["ClientRole", "StreamClient"]
