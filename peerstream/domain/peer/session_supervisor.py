"""Deadline for a viewer's attempt to receive a stream."""

import asyncio
from collections.abc import Callable

from loguru import logger

from .errors import JoinTimeoutError

DEFAULT_JOIN_TIMEOUT_SECONDS = 15.0


class SessionSupervisor:
    """UI-facing join deadline.

    `begin_attempt()` arms the timer and sets `loading`. The first remote media
    disarms it. If the timer fires first the attempt is abandoned: `loading` is
    cleared and a JoinTimeoutError is reported. Peer sessions are never touched
    here; their own restart policy decides whether they live or die.
    """

    def __init__(
        self,
        timeout_seconds: float = DEFAULT_JOIN_TIMEOUT_SECONDS,
        on_timeout: Callable[[JoinTimeoutError], None] | None = None,
    ):
        self.timeout_seconds = timeout_seconds
        self.loading = False
        self.room_id: str | None = None
        self.last_error: JoinTimeoutError | None = None
        self._on_timeout = on_timeout
        self._handle: asyncio.TimerHandle | None = None
        self._attempt_no = 0

    @property
    def armed(self) -> bool:
        return self._handle is not None

    def begin_attempt(self, room_id: str | None = None) -> None:
        """Start a new join attempt, replacing any attempt still pending."""
        self._disarm()
        self._attempt_no += 1
        self.room_id = room_id
        self.loading = True
        self.last_error = None

        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(self.timeout_seconds, self._expire, self._attempt_no)
        logger.debug(
            "Join attempt {} for room {} armed ({}s)", self._attempt_no, room_id, self.timeout_seconds
        )

    def on_remote_media(self) -> bool:
        """Remote media arrived. Returns True if a pending deadline was disarmed."""
        was_armed = self._disarm()
        self.loading = False
        if was_armed:
            logger.debug("Join attempt {} succeeded", self._attempt_no)
        return was_armed

    def abandon(self) -> None:
        """Clear the pending attempt without reporting an error (disconnect, shutdown)."""
        self._disarm()
        self.loading = False

    def _disarm(self) -> bool:
        if self._handle is None:
            return False
        self._handle.cancel()
        self._handle = None
        return True

    def _expire(self, attempt_no: int) -> None:
        if attempt_no != self._attempt_no or self._handle is None:
            return

        self._handle = None
        self.loading = False
        error = JoinTimeoutError(self.room_id, self.timeout_seconds)
        self.last_error = error
        logger.warning("{}", error.errmesg)

        if self._on_timeout is not None:
            self._on_timeout(error)


__all__ = ["SessionSupervisor"]
