"""Socket.IO signaling server.

Binds the named signaling events to the stream registry and the signal relay.
One gateway (and therefore one registry) exists per server process.
"""

from typing import Any

import socketio
from loguru import logger
from pydantic import ValidationError

from peerstream.domain.signaling import SignalRelay, StreamRegistry
from peerstream.schemas import RoomIdIn, SignalEnvelope, SignalingEvent


class SocketIOChannelHub:
    """ChannelHub backed by a Socket.IO server.

    Tracks which sids are connected so that the relay can drop envelopes for
    dead targets instead of emitting into an empty room.
    """

    def __init__(self, sio: socketio.AsyncServer):
        self._sio = sio
        self._connected: set[str] = set()

    def attach(self, connection_id: str) -> None:
        self._connected.add(connection_id)

    def detach(self, connection_id: str) -> None:
        self._connected.discard(connection_id)

    def is_connected(self, connection_id: str) -> bool:
        return connection_id in self._connected

    async def send(self, connection_id: str, event: str, data: Any) -> None:
        if connection_id not in self._connected:
            return
        await self._sio.emit(event, data, to=connection_id)

    async def broadcast(self, event: str, data: Any) -> None:
        await self._sio.emit(event, data)


def parse_room_id(data: Any) -> str:
    """Accept a bare room name or an object carrying `roomId` / `room_id`."""
    if isinstance(data, dict):
        data = data.get("roomId", data.get("room_id"))
    return RoomIdIn.model_validate({"room_id": data}).room_id


class SignalingGateway:
    """
    Socket.IO server wiring for the signaling protocol.

    Events handled:
    - connect: register the connection and send it the `active-streams` snapshot
    - join-room: room membership, `user-joined` to the other members
    - start-stream: stream directory entry, `stream-started` to everyone
    - signal: relay `{from, payload}` to the `to` connection
    - disconnect: drop the connection's streams and memberships
    """

    def __init__(
        self,
        sio: socketio.AsyncServer | None = None,
        cors_allowed_origins: str | list[str] = "*",
    ):
        self.sio = sio or socketio.AsyncServer(
            async_mode="asgi",
            cors_allowed_origins=cors_allowed_origins,
            logger=False,  # loguru handles our logging
            engineio_logger=False,
        )
        self.hub = SocketIOChannelHub(self.sio)
        self.registry = StreamRegistry(self.hub)
        self.relay = SignalRelay(self.hub)

        self._register_event_handlers()

    def _register_event_handlers(self) -> None:
        self.sio.on(SignalingEvent.CONNECT)(self.handle_connect)
        self.sio.on(SignalingEvent.DISCONNECT)(self.handle_disconnect)
        self.sio.on(SignalingEvent.JOIN_ROOM)(self.handle_join_room)
        self.sio.on(SignalingEvent.START_STREAM)(self.handle_start_stream)
        self.sio.on(SignalingEvent.SIGNAL)(self.handle_signal)

    async def handle_connect(self, sid: str, environ: dict | None = None, auth: Any = None) -> None:
        logger.info("Client connected: {}", sid)
        self.hub.attach(sid)
        await self.hub.send(sid, SignalingEvent.ACTIVE_STREAMS, self.registry.snapshot())

    async def handle_disconnect(self, sid: str, *args: Any) -> None:
        self.hub.detach(sid)
        ended = await self.registry.on_disconnect(sid)
        logger.info("Client disconnected: {} (ended streams: {})", sid, ended)

    async def handle_join_room(self, sid: str, data: Any) -> None:
        try:
            room_id = parse_room_id(data)
        except ValidationError as e:
            logger.warning("Ignoring join-room from {} with invalid room: {}", sid, e.errors())
            return
        await self.registry.join(sid, room_id)

    async def handle_start_stream(self, sid: str, data: Any) -> None:
        try:
            room_id = parse_room_id(data)
        except ValidationError as e:
            logger.warning("Ignoring start-stream from {} with invalid room: {}", sid, e.errors())
            return
        await self.registry.start_stream(sid, room_id)

    async def handle_signal(self, sid: str, data: Any) -> None:
        try:
            envelope = SignalEnvelope.model_validate(data)
        except ValidationError as e:
            logger.warning("Ignoring malformed signal from {}: {}", sid, e.errors())
            return
        await self.relay.relay(envelope, sender_id=sid)


__all__ = ["SignalingGateway", "SocketIOChannelHub", "parse_room_id"]
