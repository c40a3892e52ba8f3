"""Room membership and live stream directory for one signaling server process."""

from datetime import datetime, timezone

from loguru import logger

from peerstream.schemas import SignalingEvent, StreamEntry

from .channel_hub import ChannelHub


class StreamRegistry:
    """Owns the room -> streamer mapping and per-room membership.

    Every mutation completes before the first awaited delivery, so an event
    handler that suspends while notifying clients never leaves the registry
    half-updated for the next handler.

    Invariants:
    - At most one StreamEntry per room id (last `start_stream` wins).
    - `snapshot()` lists exactly the rooms with a live entry, in arrival order.
    - After `on_disconnect(c)` no entry owned by `c` remains.
    """

    def __init__(self, hub: ChannelHub):
        self._hub = hub
        self._streams: dict[str, StreamEntry] = {}
        self._members: dict[str, set[str]] = {}
        self._rooms_by_connection: dict[str, set[str]] = {}

    async def join(self, connection_id: str, room_id: str) -> bool:
        """Add a connection to a room and tell the other members about it.

        Joining is idempotent for membership, but the other members are notified
        on every call so that a viewer retrying its join gets a fresh offer.

        Args:
            connection_id: Joining connection
            room_id: Room name

        Returns:
            True if the connection was not a member before
        """
        members = self._members.setdefault(room_id, set())
        is_new = connection_id not in members
        members.add(connection_id)
        self._rooms_by_connection.setdefault(connection_id, set()).add(room_id)

        others = sorted(m for m in members if m != connection_id)
        logger.info(
            "Connection {} joined room {} (new={}, notifying {} members)",
            connection_id,
            room_id,
            is_new,
            len(others),
        )

        for member_id in others:
            await self._hub.send(member_id, SignalingEvent.USER_JOINED, connection_id)

        return is_new

    async def start_stream(self, connection_id: str, room_id: str) -> StreamEntry:
        """Register `connection_id` as the streamer of `room_id` and announce it to everyone.

        Any connection may claim any room name. A previous streamer of the same
        room is replaced without notice.

        Args:
            connection_id: Streaming connection
            room_id: Room name

        Returns:
            The new stream entry
        """
        previous = self._streams.get(room_id)
        if previous and previous.connection_id != connection_id:
            logger.warning(
                "Room {} taken over by {}, previous streamer {} orphaned",
                room_id,
                connection_id,
                previous.connection_id,
            )

        entry = StreamEntry(
            room_id=room_id,
            connection_id=connection_id,
            started_at=datetime.now(timezone.utc),
        )
        self._streams[room_id] = entry
        logger.info("Stream started: room={} streamer={}", room_id, connection_id)

        await self._hub.broadcast(SignalingEvent.STREAM_STARTED, room_id)

        return entry

    async def on_disconnect(self, connection_id: str) -> list[str]:
        """Drop everything owned by a closed connection.

        Removes its stream entries and room memberships, then broadcasts
        `stream-ended` for every room it was streaming to.

        Args:
            connection_id: Disconnected connection

        Returns:
            Room ids whose stream ended
        """
        ended = [
            room_id
            for room_id, entry in self._streams.items()
            if entry.connection_id == connection_id
        ]
        for room_id in ended:
            del self._streams[room_id]

        for room_id in self._rooms_by_connection.pop(connection_id, set()):
            members = self._members.get(room_id)
            if members is None:
                continue
            members.discard(connection_id)
            if not members:
                del self._members[room_id]

        for room_id in ended:
            logger.info("Stream ended: room={} streamer={}", room_id, connection_id)
            await self._hub.broadcast(SignalingEvent.STREAM_ENDED, room_id)

        return ended

    def snapshot(self) -> list[str]:
        """Room ids with a live stream, in the order they first went live."""
        return list(self._streams.keys())

    def get(self, room_id: str) -> StreamEntry | None:
        return self._streams.get(room_id)

    def members(self, room_id: str) -> set[str]:
        return set(self._members.get(room_id, set()))

    def rooms_of(self, connection_id: str) -> set[str]:
        return set(self._rooms_by_connection.get(connection_id, set()))


__all__ = ["StreamRegistry"]
