import orjson
from loguru import logger
from pydantic import BaseModel

from peerstream.shared.config import config

# Public STUN servers plus the open relay TURN project, used when ICE_SERVERS_JSON is unset.
DEFAULT_ICE_SERVERS: list[dict] = [
    {
        "urls": [
            "stun:stun.l.google.com:19302",
            "stun:stun1.l.google.com:19302",
            "stun:stun2.l.google.com:19302",
        ]
    },
    {
        "urls": [
            "turn:a.relay.metered.ca:80",
            "turn:a.relay.metered.ca:80?transport=tcp",
            "turn:a.relay.metered.ca:443",
            "turn:a.relay.metered.ca:443?transport=tcp",
        ],
        "username": "openrelayproject",
        "credential": "openrelayproject",
    },
]


def _load_ice_servers() -> list[dict]:
    raw = config.get_str("ICE_SERVERS_JSON")
    if not raw:
        return DEFAULT_ICE_SERVERS
    try:
        servers = orjson.loads(raw)
    except orjson.JSONDecodeError as e:
        logger.warning("Invalid ICE_SERVERS_JSON, using defaults: {}", e)
        return DEFAULT_ICE_SERVERS
    if not isinstance(servers, list):
        logger.warning("ICE_SERVERS_JSON must be a list, using defaults")
        return DEFAULT_ICE_SERVERS
    return servers


class AppEnvironConfig(BaseModel):
    # Server
    API_HOST: str = config.get_str("API_HOST", "0.0.0.0")
    API_PORT: int = config.get_int("API_PORT", 3001)
    API_WORKERS: int = config.get_int("API_WORKERS", 1)
    API_CORS_ORIGINS: list[str] = config.get_list("API_CORS_ORIGINS", "*")
    DEBUG: bool = config.get_bool("DEBUG")
    LOG_LEVEL: str = config.get_str("LOG_LEVEL", "INFO").upper()

    # Signaling
    SIGNALING_PATH: str = config.get_str("SIGNALING_PATH", "api/socket").strip("/")
    DEFAULT_ROOM_ID: str = config.get_str("DEFAULT_ROOM_ID", "default-room")

    # Peer session timing
    JOIN_TIMEOUT_SECONDS: float = config.get_float("JOIN_TIMEOUT_SECONDS", 15.0)
    ICE_RESTART_GRACE_SECONDS: float = config.get_float("ICE_RESTART_GRACE_SECONDS", 10.0)

    # Transport
    ICE_SERVERS: list[dict] = _load_ice_servers()
    ICE_CANDIDATE_POOL_SIZE: int = config.get_int("ICE_CANDIDATE_POOL_SIZE", 10)
    VIDEO_BITRATE_KBPS: int = config.get_int("VIDEO_BITRATE_KBPS", 2000)

    # Media ingest/transcode service (addressed by convention only)
    HLS_BASE_URL: str = config.get_str("HLS_BASE_URL", "http://127.0.0.1:8000").rstrip("/")
    RTMP_INGEST_BASE_URL: str = config.get_str(
        "RTMP_INGEST_BASE_URL", "rtmp://127.0.0.1:1935"
    ).rstrip("/")
    MEDIA_APP_NAME: str = config.get_str("MEDIA_APP_NAME", "live").strip("/")

    # Client status feed
    STATUS_HISTORY_SIZE: int = config.get_int("STATUS_HISTORY_SIZE", 200)


_app_environ_config = AppEnvironConfig()


def get_app_environ_config() -> AppEnvironConfig:
    return _app_environ_config
