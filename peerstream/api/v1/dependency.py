from typing import Annotated

from fastapi import Depends, Request

from peerstream.domain.signaling import StreamRegistry
from peerstream.services.media_ingest import MediaIngestService, media_ingest_service


def get_stream_registry(request: Request) -> StreamRegistry:
    """The registry owned by the signaling gateway of this server process."""
    return request.app.state.stream_registry


def get_media_ingest_service() -> MediaIngestService:
    return media_ingest_service


Registry = Annotated[StreamRegistry, Depends(get_stream_registry)]
MediaIngest = Annotated[MediaIngestService, Depends(get_media_ingest_service)]
