"""Stream directory schemas."""

from datetime import datetime

from pydantic import BaseModel, Field


class StreamEntry(BaseModel):
    """A live stream: the room name and the connection currently streaming to it."""

    room_id: str
    connection_id: str
    started_at: datetime = Field(description="When the current streamer declared the stream")


class LiveStreamOut(BaseModel):
    room_id: str
    playback_url: str = Field(description="HLS playback URL published by the ingest service")
    ingest_url: str = Field(description="RTMP ingest URL for the room")


__all__ = ["LiveStreamOut", "StreamEntry"]
