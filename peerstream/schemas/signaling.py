"""Wire schemas for the signaling channel."""

from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class SignalingEvent:
    """Named events exchanged over the signaling channel."""

    CONNECT = "connect"
    DISCONNECT = "disconnect"

    # Client → Server
    JOIN_ROOM = "join-room"
    START_STREAM = "start-stream"

    # Server → Client
    USER_JOINED = "user-joined"
    STREAM_STARTED = "stream-started"
    STREAM_ENDED = "stream-ended"
    ACTIVE_STREAMS = "active-streams"

    # Both directions
    SIGNAL = "signal"


class RoomIdIn(BaseModel):
    """Room name carried by `join-room` and `start-stream`."""

    room_id: str = Field(min_length=1, description="User-chosen room name")

    @field_validator("room_id")
    @classmethod
    def strip_room_id(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("room_id must not be blank")
        return v


class SignalEnvelope(BaseModel):
    """Negotiation payload addressed from one connection to another.

    The payload is opaque to the server. Older clients send it under the `signal` key.
    """

    model_config = ConfigDict(populate_by_name=True)

    to: str = Field(min_length=1, description="Target connection id")
    from_: str | None = Field(
        default=None,
        validation_alias=AliasChoices("from", "from_"),
        serialization_alias="from",
        description="Sender connection id",
    )
    payload: Any = Field(
        validation_alias=AliasChoices("payload", "signal"),
        description="Opaque negotiation payload",
    )


class SignalDelivery(BaseModel):
    """What the target connection receives for a relayed envelope."""

    model_config = ConfigDict(populate_by_name=True)

    from_: str = Field(
        validation_alias=AliasChoices("from", "from_"),
        serialization_alias="from",
    )
    payload: Any

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True)


__all__ = ["RoomIdIn", "SignalDelivery", "SignalEnvelope", "SignalingEvent"]
