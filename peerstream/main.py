import time
import traceback
import uuid
from contextlib import asynccontextmanager

import socketio
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse
from granian import Granian
from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware

from peerstream import __version__
from peerstream.api import health
from peerstream.api.errors import app_error_handler
from peerstream.api.v1.routers import streams
from peerstream.app_config import AppEnvironConfig, get_app_environ_config
from peerstream.services.signaling_gateway import SignalingGateway
from peerstream.shared.api.errors import E_INTERNAL
from peerstream.shared.api.utils import api_failure, init_logger, validation_exception_handler
from peerstream.utils.app_errors import AppError


class HTTPLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):  # type: ignore
        start_time = time.time()
        request_id = str(uuid.uuid4())[:8]

        logger.info(f"[{request_id}] {request.method} {request.url.path}")

        try:
            response = await call_next(request)

            process_time = (time.time() - start_time) * 1000

            logger.info(
                f"[{request_id}] {request.method} {request.url.path} - "
                f"Status: {response.status_code} - "
                f"Duration: {process_time:.2f}ms"
            )

            return response

        except Exception as exc:
            process_time = (time.time() - start_time) * 1000

            logger.error(
                f"[{request_id}] Unhandled exception in {request.method} {request.url.path} - "
                f"Duration: {process_time:.2f}ms - "
                f"Error: {type(exc).__name__}: {exc}\n"
                f"Traceback:\n{traceback.format_exc()}"
            )

            failure = api_failure(
                errcode=E_INTERNAL,
                errmesg=f"Internal server error (request_id: {request_id})",
            )
            return ORJSONResponse(
                status_code=500,
                content=failure.model_dump(),
            )


@asynccontextmanager
async def lifespan(server: FastAPI):
    init_logger(server.state.config.LOG_LEVEL)

    logger.info("Signaling server startup...")

    yield

    logger.info("Signaling server shutdown...")


def create_api(gateway: SignalingGateway, cfg: AppEnvironConfig) -> FastAPI:
    """HTTP side of the server. The gateway's registry is exposed through `app.state`."""
    api = FastAPI(
        version=__version__,
        title="PeerStream Signaling API",
        docs_url="/docs" if cfg.DEBUG else None,
        redoc_url=None,
        openapi_url="/openapi.json" if cfg.DEBUG else None,
        default_response_class=ORJSONResponse,
        lifespan=lifespan,
    )
    api.state.config = cfg
    api.state.gateway = gateway
    api.state.stream_registry = gateway.registry

    api.add_middleware(HTTPLoggingMiddleware)

    api.add_middleware(
        CORSMiddleware,  # type: ignore
        allow_origins=cfg.API_CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    api.add_exception_handler(RequestValidationError, validation_exception_handler)  # type: ignore
    api.add_exception_handler(AppError, app_error_handler)  # type: ignore

    api.include_router(health.router)
    api.include_router(streams.router, prefix="/api/v1")

    return api


def create_app(cfg: AppEnvironConfig | None = None) -> socketio.ASGIApp:
    """Combined ASGI app: Socket.IO signaling on SIGNALING_PATH, FastAPI for everything else."""
    cfg = cfg or get_app_environ_config()

    cors = cfg.API_CORS_ORIGINS
    gateway = SignalingGateway(cors_allowed_origins="*" if cors == ["*"] else cors)
    api = create_api(gateway, cfg)

    return socketio.ASGIApp(gateway.sio, other_asgi_app=api, socketio_path=cfg.SIGNALING_PATH)


app = create_app()


def build_granian_kwargs(cfg: AppEnvironConfig):
    # The stream registry lives in process memory, so the server runs a single worker.
    if cfg.API_WORKERS != 1:
        logger.warning("API_WORKERS={} ignored, signaling state is per process", cfg.API_WORKERS)

    return {
        "interface": "asgi",
        "address": cfg.API_HOST,
        "port": cfg.API_PORT,
        "workers": 1,
        "reload": cfg.DEBUG,
    }


if __name__ == "__main__":
    init_logger()
    granian_kwargs = build_granian_kwargs(get_app_environ_config())
    Granian("peerstream.main:app", **granian_kwargs).serve()
