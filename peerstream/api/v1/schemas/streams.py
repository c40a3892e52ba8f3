from pydantic import BaseModel

from peerstream.schemas import LiveStreamOut


class ListStreamsOut(BaseModel):
    streams: list[LiveStreamOut]
    total: int
