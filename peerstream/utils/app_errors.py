"""Application error types shared by the signaling server and the streaming client."""

import inspect
from enum import Enum, IntEnum
from uuid import uuid4


class HttpStatusCode(IntEnum):
    OK = 200
    BAD_REQUEST = 400
    FORBIDDEN = 403
    NOT_FOUND = 404
    REQUEST_TIMEOUT = 408
    INTERNAL_SERVER_ERROR = 500


class AppErrorCode(str, Enum):
    """Error codes surfaced in API failures and client status events."""

    E_INTERNAL_ERROR = "E_INTERNAL_ERROR"
    E_STREAM_NOT_FOUND = "E_STREAM_NOT_FOUND"
    E_MEDIA_PERMISSION_DENIED = "E_MEDIA_PERMISSION_DENIED"
    E_MEDIA_CAPTURE_FAILED = "E_MEDIA_CAPTURE_FAILED"
    E_NEGOTIATION_FAILED = "E_NEGOTIATION_FAILED"
    E_JOIN_TIMEOUT = "E_JOIN_TIMEOUT"
    E_NOT_CONNECTED = "E_NOT_CONNECTED"

    def __str__(self) -> str:
        return self.value


class AppError(Exception):
    """Error carrying an error code, a message and the HTTP status to answer with.

    The caller location is captured when the error is raised so that handlers can
    log where it came from.
    """

    def __init__(
        self,
        errcode: AppErrorCode | str = AppErrorCode.E_INTERNAL_ERROR,
        errmesg: str = "We are sorry, an error occurred.",
        status_code: int = HttpStatusCode.INTERNAL_SERVER_ERROR,
    ):
        self.errcode = errcode.value if isinstance(errcode, AppErrorCode) else str(errcode)
        self.errmesg = errmesg
        self.status_code = int(status_code)
        self.erresid = uuid4().hex[:10]
        self.caller_info = self._capture_caller()
        super().__init__(f"{self.errcode}: {errmesg}")

    @staticmethod
    def _capture_caller() -> str:
        frame = inspect.currentframe()
        try:
            # Skip __init__ frames of AppError and its subclasses
            caller = frame.f_back if frame else None
            while caller and caller.f_code.co_name == "__init__":
                caller = caller.f_back
            if caller is None:
                return "unknown"
            module = caller.f_globals.get("__name__", caller.f_code.co_filename)
            return f"{module}:{caller.f_code.co_name}:{caller.f_lineno}"
        finally:
            del frame
