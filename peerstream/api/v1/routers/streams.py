"""Live stream directory endpoints.

The same directory is pushed to Socket.IO clients (`active-streams`,
`stream-started`, `stream-ended`); these endpoints let plain HTTP consumers
such as HLS players find what is live and where to play it.
"""

from fastapi import APIRouter, Path

from peerstream.api.v1.dependency import MediaIngest, Registry
from peerstream.api.v1.schemas.base import ApiOut
from peerstream.api.v1.schemas.streams import ListStreamsOut
from peerstream.schemas import LiveStreamOut
from peerstream.utils.app_errors import AppError, AppErrorCode, HttpStatusCode

router = APIRouter(prefix="/streams", tags=["Streams"])


@router.get("")
async def list_streams(registry: Registry, ingest: MediaIngest) -> ApiOut[ListStreamsOut]:
    """List live rooms in the order they went live."""
    streams = [ingest.describe(room_id) for room_id in registry.snapshot()]
    return ApiOut[ListStreamsOut](results=ListStreamsOut(streams=streams, total=len(streams)))


@router.get("/{room_id}")
async def get_stream(
    registry: Registry,
    ingest: MediaIngest,
    room_id: str = Path(..., description="Room name"),
) -> ApiOut[LiveStreamOut]:
    """Get playback and ingest URLs for a live room.

    Raises:
        404: No live stream for the room
    """
    if registry.get(room_id) is None:
        raise AppError(
            errcode=AppErrorCode.E_STREAM_NOT_FOUND,
            errmesg=f"No live stream in room: {room_id}",
            status_code=HttpStatusCode.NOT_FOUND,
        )

    return ApiOut[LiveStreamOut](results=ingest.describe(room_id))
