"""Lifecycle of one negotiated transport connection to a remote participant."""

from __future__ import annotations

import asyncio
from collections import deque
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from loguru import logger

from peerstream.schemas import IceConnectionState, PeerSessionState
from peerstream.utils.app_errors import AppError, AppErrorCode

from .errors import NegotiationError
from .media import MediaHandle
from .session_state_machine import PeerSessionStateMachine
from .transport import IceConfig, NegotiatedTransport, TransportError, TransportEvent, TransportFactory

SendSignal = Callable[[str, Any], Awaitable[None]]
RemoteMediaCallback = Callable[[str, Any], None]
StatusCallback = Callable[[str], None]
CloseCallback = Callable[["PeerSession"], None]

DEFAULT_RESTART_GRACE_SECONDS = 10.0


@dataclass
class RestartAttempt:
    """Pending ICE restart window, measured on the event loop clock."""

    started_at: float


class PeerSession:
    """Owns one negotiated transport and drives it through the session state machine.

    Transport callbacks and inbound payloads are turned into queued events and
    processed one at a time. A callback fired while an event is being handled
    (for example a transport that emits `close` from inside `destroy()`) is
    queued behind it instead of re-entering the handler.

    `destroy()` is the only way out: it releases the transport once and runs the
    close callbacks, which is how the owning ConnectionRegistry drops the entry.
    """

    def __init__(
        self,
        peer_id: str,
        transport: NegotiatedTransport,
        *,
        initiator: bool,
        send_signal: SendSignal,
        on_remote_media: RemoteMediaCallback | None = None,
        on_status: StatusCallback | None = None,
        restart_grace_seconds: float = DEFAULT_RESTART_GRACE_SECONDS,
    ):
        self.peer_id = peer_id
        self.initiator = initiator
        self.state = PeerSessionState.IDLE
        self.attempt: RestartAttempt | None = None
        self.remote_media: Any = None
        self.restart_grace_seconds = restart_grace_seconds

        self._transport = transport
        self._send_signal = send_signal
        self._on_remote_media = on_remote_media
        self._on_status = on_status
        self._close_callbacks: list[CloseCallback] = []

        self._queue: deque[tuple[str, Any]] = deque()
        self._draining = False
        self._grace_handle: asyncio.TimerHandle | None = None
        self._pending_sends: set[asyncio.Future] = set()
        self._transport_released = False

        self._handlers: dict[str, Callable[[Any], None]] = {
            "outbound_signal": self._handle_outbound_signal,
            "inbound_signal": self._handle_inbound_signal,
            TransportEvent.CONNECT: self._handle_connect,
            TransportEvent.STREAM: self._handle_stream,
            TransportEvent.ICE_STATE_CHANGE: self._handle_ice_state,
            TransportEvent.ERROR: self._handle_error,
            TransportEvent.CLOSE: self._handle_close,
            "restart_grace_elapsed": self._handle_restart_grace_elapsed,
        }

    @classmethod
    def create(
        cls,
        peer_id: str,
        transport_factory: TransportFactory,
        *,
        initiator: bool,
        local_media: MediaHandle | None,
        ice_config: IceConfig,
        send_signal: SendSignal,
        on_remote_media: RemoteMediaCallback | None = None,
        on_status: StatusCallback | None = None,
        restart_grace_seconds: float = DEFAULT_RESTART_GRACE_SECONDS,
    ) -> PeerSession:
        """Build a session around a freshly created transport. Call `start()` to begin."""
        transport = transport_factory(
            initiator=initiator,
            local_media=local_media,
            config=ice_config,
        )
        return cls(
            peer_id,
            transport,
            initiator=initiator,
            send_signal=send_signal,
            on_remote_media=on_remote_media,
            on_status=on_status,
            restart_grace_seconds=restart_grace_seconds,
        )

    # --- public API -----------------------------------------------------------------

    @property
    def transport(self) -> NegotiatedTransport:
        return self._transport

    @property
    def is_closed(self) -> bool:
        return self.state == PeerSessionState.CLOSED

    def add_close_callback(self, callback: CloseCallback) -> None:
        self._close_callbacks.append(callback)

    def start(self) -> None:
        """Bind transport events and enter NEGOTIATING."""
        if self.state != PeerSessionState.IDLE:
            return

        t = self._transport
        t.on(TransportEvent.SIGNAL, lambda payload: self._post("outbound_signal", payload))
        t.on(TransportEvent.CONNECT, lambda *_: self._post(TransportEvent.CONNECT))
        t.on(TransportEvent.STREAM, lambda media: self._post(TransportEvent.STREAM, media))
        t.on(
            TransportEvent.ICE_STATE_CHANGE,
            lambda state: self._post(TransportEvent.ICE_STATE_CHANGE, state),
        )
        t.on(TransportEvent.ERROR, lambda err: self._post(TransportEvent.ERROR, err))
        t.on(TransportEvent.CLOSE, lambda *_: self._post(TransportEvent.CLOSE))

        self._transition(PeerSessionState.NEGOTIATING)
        logger.info(
            "Peer session {} negotiating (initiator={})", self.peer_id, self.initiator
        )

    def apply_signal(self, payload: Any) -> bool:
        """Feed an inbound negotiation payload into the transport.

        Returns:
            False if the session can no longer accept payloads
        """
        if self.state not in PeerSessionState.signal_states():
            logger.debug(
                "Ignoring signal for peer {} in state {}", self.peer_id, self.state
            )
            return False
        self._post("inbound_signal", payload)
        return True

    def destroy(self, reason: str = "destroyed") -> bool:
        """Close the session. Safe to call any number of times from any state.

        Returns:
            True if this call closed the session, False if it was already closed
        """
        if self.state == PeerSessionState.CLOSED:
            return False

        previous = self.state
        self._transition(PeerSessionState.CLOSED)
        self._disarm_restart()
        self._queue.clear()

        for future in list(self._pending_sends):
            future.cancel()
        self._pending_sends.clear()

        self._release_transport()

        logger.info(
            "Peer session {} closed from {} ({})", self.peer_id, previous, reason
        )
        self._status(f"Peer connection closed with: {self.peer_id}")

        callbacks = list(self._close_callbacks)
        self._close_callbacks.clear()
        for callback in callbacks:
            callback(self)

        return True

    # --- event queue ----------------------------------------------------------------

    def _post(self, kind: str, arg: Any = None) -> None:
        self._queue.append((kind, arg))
        if self._draining:
            return

        self._draining = True
        try:
            while self._queue:
                kind, arg = self._queue.popleft()
                if self.state == PeerSessionState.CLOSED:
                    continue
                try:
                    self._handlers[kind](arg)
                except Exception as e:
                    logger.exception("Peer session {} failed handling {}: {}", self.peer_id, kind, e)
                    self.destroy(reason=f"{kind} handler error")
        finally:
            self._draining = False

    def _transition(self, new_state: PeerSessionState) -> None:
        if not PeerSessionStateMachine.can_transition(self.state, new_state):
            raise AppError(
                errcode=AppErrorCode.E_INTERNAL_ERROR,
                errmesg=f"Invalid peer session transition: {self.state} -> {new_state}",
            )
        logger.debug("Peer session {}: {} -> {}", self.peer_id, self.state, new_state)
        self.state = new_state

    # --- handlers -------------------------------------------------------------------

    def _handle_outbound_signal(self, payload: Any) -> None:
        future = asyncio.ensure_future(self._send_signal(self.peer_id, payload))
        self._pending_sends.add(future)
        future.add_done_callback(self._on_send_done)

    def _on_send_done(self, future: asyncio.Future) -> None:
        self._pending_sends.discard(future)
        if future.cancelled():
            return
        exc = future.exception()
        if exc is not None:
            # Signaling is best-effort; the transport tolerates lost payloads.
            logger.warning("Failed to send signal to {}: {}", self.peer_id, exc)

    def _handle_inbound_signal(self, payload: Any) -> None:
        if self.state not in PeerSessionState.signal_states():
            return
        try:
            self._transport.signal(payload)
        except Exception as e:
            error = NegotiationError(self.peer_id, str(e))
            logger.warning("{}", error.errmesg)
            self._status(f"Peer error: {e}")
            self.destroy(reason="negotiation error")

    def _handle_connect(self, _: Any) -> None:
        self._status("Peer connection established")
        self._mark_connected()

    def _handle_stream(self, media: Any) -> None:
        self.remote_media = media
        self._status(f"Received remote stream from: {self.peer_id}")
        if self._on_remote_media is not None:
            self._on_remote_media(self.peer_id, media)

    def _handle_ice_state(self, raw_state: Any) -> None:
        self._status(f"ICE state: {raw_state}")
        state = IceConnectionState.parse(raw_state)
        if state is None:
            logger.debug("Unknown ICE state {} from peer {}", raw_state, self.peer_id)
            return

        if state.is_up:
            if self.state in (PeerSessionState.NEGOTIATING, PeerSessionState.RESTARTING):
                self._mark_connected()
        elif state.is_down:
            self._begin_restart(reason=f"ICE {state}")

    def _handle_error(self, err: Any) -> None:
        self._status(f"Peer error: {err}")
        if isinstance(err, TransportError) and err.is_ice_failure:
            self._begin_restart(reason="ICE connection failure")
            return

        error = NegotiationError(self.peer_id, str(err))
        logger.warning("{}", error.errmesg)
        self.destroy(reason="transport error")

    def _handle_close(self, _: Any) -> None:
        self.destroy(reason="transport closed")

    def _handle_restart_grace_elapsed(self, attempt: RestartAttempt) -> None:
        if self.state != PeerSessionState.RESTARTING or self.attempt is not attempt:
            return

        self._grace_handle = None
        self.attempt = None

        ice_state = IceConnectionState.parse(self._transport.ice_connection_state)
        if ice_state == IceConnectionState.FAILED:
            logger.warning(
                "ICE restart for peer {} did not recover within {}s, closing",
                self.peer_id,
                self.restart_grace_seconds,
            )
            self._status("ICE restart failed, cleaning up connection")
            self.destroy(reason="ICE restart grace expired")
            return

        logger.info(
            "ICE restart window for peer {} ended in state {}, waiting for transport",
            self.peer_id,
            ice_state,
        )

    # --- helpers --------------------------------------------------------------------

    def _mark_connected(self) -> None:
        self._disarm_restart()
        if self.state != PeerSessionState.CONNECTED:
            self._transition(PeerSessionState.CONNECTED)
            logger.info("Peer session {} connected", self.peer_id)

    def _begin_restart(self, reason: str) -> None:
        if self.state in (PeerSessionState.NEGOTIATING, PeerSessionState.CONNECTED):
            self._transition(PeerSessionState.RESTARTING)
        elif self.state != PeerSessionState.RESTARTING or self.attempt is not None:
            # Either not restartable or a restart window is already open
            return

        loop = asyncio.get_running_loop()
        attempt = RestartAttempt(started_at=loop.time())
        self.attempt = attempt

        logger.info("Restarting ICE for peer {} ({})", self.peer_id, reason)
        self._status("Attempting to restart ICE")
        self._transport.restart_ice()

        self._grace_handle = loop.call_later(
            self.restart_grace_seconds,
            self._post,
            "restart_grace_elapsed",
            attempt,
        )

    def _disarm_restart(self) -> None:
        if self._grace_handle is not None:
            self._grace_handle.cancel()
            self._grace_handle = None
        self.attempt = None

    def _release_transport(self) -> None:
        if self._transport_released:
            return
        self._transport_released = True
        try:
            self._transport.destroy()
        except Exception as e:
            logger.warning("Error releasing transport for peer {}: {}", self.peer_id, e)

    def _status(self, line: str) -> None:
        if self._on_status is not None:
            self._on_status(line)


__all__ = ["PeerSession", "RestartAttempt"]
