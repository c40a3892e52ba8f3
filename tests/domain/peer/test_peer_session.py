"""Tests for PeerSession lifecycle, ICE restart policy and teardown."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

from peerstream.domain.peer import IceConfig, PeerSession, TransportError
from peerstream.domain.peer.transport import ICE_CONNECTION_FAILURE
from peerstream.schemas import PeerSessionState

GRACE = 0.05


def make_session(transport, *, grace: float = GRACE, initiator: bool = True, **kwargs) -> PeerSession:
    kwargs.setdefault("send_signal", AsyncMock())
    session = PeerSession(
        "peer-1",
        transport,
        initiator=initiator,
        restart_grace_seconds=grace,
        **kwargs,
    )
    session.start()
    return session


class TestStart:
    """Tests for PeerSession.start and PeerSession.create."""

    async def test_start_enters_negotiating(self, transport):
        """Test start binds the transport and moves IDLE -> NEGOTIATING."""
        session = make_session(transport)

        assert session.state == PeerSessionState.NEGOTIATING
        assert set(transport.handlers) == {
            "signal",
            "connect",
            "stream",
            "iceStateChange",
            "error",
            "close",
        }

    async def test_start_twice_is_noop(self, transport):
        """Test a second start does not bind handlers again."""
        session = make_session(transport)

        session.start()

        assert len(transport.handlers["signal"]) == 1
        assert session.state == PeerSessionState.NEGOTIATING

    async def test_create_uses_factory(self, transport_factory):
        """Test create passes role, local media and ICE config to the factory."""
        ice_config = IceConfig()
        local_media = object()

        session = PeerSession.create(
            "peer-1",
            transport_factory,
            initiator=True,
            local_media=local_media,
            ice_config=ice_config,
            send_signal=AsyncMock(),
        )

        assert session.state == PeerSessionState.IDLE
        assert session.transport is transport_factory.last
        assert transport_factory.last.initiator is True
        assert transport_factory.last.local_media is local_media
        assert transport_factory.last.config is ice_config


class TestSignals:
    """Tests for negotiation payload flow in both directions."""

    async def test_outbound_signal_sent_to_peer(self, transport):
        """Test transport signal events are sent addressed to the remote peer."""
        send_signal = AsyncMock()
        make_session(transport, send_signal=send_signal)

        transport.emit("signal", {"type": "offer", "sdp": "v=0"})
        await asyncio.sleep(0.01)

        send_signal.assert_awaited_once_with("peer-1", {"type": "offer", "sdp": "v=0"})

    async def test_send_failure_is_tolerated(self, transport):
        """Test a failed send does not close the session."""
        send_signal = AsyncMock(side_effect=ConnectionError("socket gone"))
        session = make_session(transport, send_signal=send_signal)

        transport.emit("signal", {"type": "offer"})
        await asyncio.sleep(0.01)

        assert session.state == PeerSessionState.NEGOTIATING

    async def test_apply_signal_feeds_transport(self, transport):
        """Test inbound payloads reach the transport in order."""
        session = make_session(transport)

        assert session.apply_signal({"type": "answer"}) is True
        assert session.apply_signal({"candidate": "a"}) is True

        assert transport.signals == [{"type": "answer"}, {"candidate": "a"}]

    async def test_apply_signal_before_start_rejected(self, transport):
        """Test an IDLE session does not accept payloads."""
        session = PeerSession("peer-1", transport, initiator=False, send_signal=AsyncMock())

        assert session.apply_signal({"type": "offer"}) is False
        assert transport.signals == []

    async def test_apply_signal_after_close_rejected(self, transport):
        """Test a closed session ignores late payloads."""
        session = make_session(transport)
        session.destroy()

        assert session.apply_signal({"type": "offer"}) is False
        assert transport.signals == []

    async def test_invalid_signal_closes_session(self, transport):
        """Test a payload the transport rejects tears the session down."""
        status = MagicMock()
        session = make_session(transport, on_status=status)
        transport.signal_error = ValueError("bad sdp")

        session.apply_signal({"type": "offer", "sdp": "garbage"})

        assert session.state == PeerSessionState.CLOSED
        assert transport.destroy_count == 1
        status.assert_any_call("Peer error: bad sdp")


class TestConnect:
    """Tests for reaching CONNECTED and receiving remote media."""

    async def test_connect_event(self, transport):
        """Test transport connect moves NEGOTIATING -> CONNECTED."""
        session = make_session(transport)

        transport.emit("connect")

        assert session.state == PeerSessionState.CONNECTED

    async def test_ice_connected_event(self, transport):
        """Test ICE connected moves NEGOTIATING -> CONNECTED."""
        session = make_session(transport)

        transport.emit("iceStateChange", "connected")

        assert session.state == PeerSessionState.CONNECTED

    async def test_ice_checking_keeps_negotiating(self, transport):
        """Test intermediate ICE states do not change the session state."""
        session = make_session(transport)

        transport.emit("iceStateChange", "checking")

        assert session.state == PeerSessionState.NEGOTIATING

    async def test_remote_stream_reported(self, transport):
        """Test remote media is stored and handed to the callback."""
        on_remote_media = MagicMock()
        session = make_session(transport, on_remote_media=on_remote_media)
        media = object()

        transport.emit("stream", media)

        assert session.remote_media is media
        on_remote_media.assert_called_once_with("peer-1", media)


class TestIceRestart:
    """Tests for the ICE restart policy and its grace period."""

    async def test_disconnected_triggers_restart(self, transport):
        """Test ICE disconnected moves CONNECTED -> RESTARTING and restarts ICE once."""
        session = make_session(transport)
        transport.emit("connect")

        transport.ice_connection_state = "disconnected"
        transport.emit("iceStateChange", "disconnected")

        assert session.state == PeerSessionState.RESTARTING
        assert transport.restart_count == 1
        assert session.attempt is not None

    async def test_repeated_down_reports_during_window_ignored(self, transport):
        """Test only one restart is issued while a restart window is open."""
        session = make_session(transport)
        transport.emit("connect")

        transport.emit("iceStateChange", "disconnected")
        transport.emit("iceStateChange", "failed")
        transport.emit("error", TransportError("ice failed", code=ICE_CONNECTION_FAILURE))

        assert session.state == PeerSessionState.RESTARTING
        assert transport.restart_count == 1

    async def test_recovery_within_grace(self, transport):
        """Test ICE reconnecting before the deadline keeps the session."""
        session = make_session(transport)
        transport.emit("connect")
        transport.ice_connection_state = "failed"
        transport.emit("iceStateChange", "failed")

        transport.ice_connection_state = "connected"
        transport.emit("iceStateChange", "connected")
        await asyncio.sleep(GRACE * 2)

        assert session.state == PeerSessionState.CONNECTED
        assert session.attempt is None
        assert transport.destroy_count == 0

    async def test_grace_expiry_while_failed_closes(self, transport):
        """Test a restart still failed after the grace period closes the session."""
        session = make_session(transport)
        closed = MagicMock()
        session.add_close_callback(closed)
        transport.emit("connect")

        transport.ice_connection_state = "failed"
        transport.emit("iceStateChange", "failed")
        await asyncio.sleep(GRACE * 2)

        assert session.state == PeerSessionState.CLOSED
        assert transport.destroy_count == 1
        closed.assert_called_once_with(session)

    async def test_grace_expiry_while_disconnected_waits(self, transport):
        """Test a restart not failed at the deadline keeps waiting for the transport."""
        session = make_session(transport)
        transport.emit("connect")

        transport.ice_connection_state = "disconnected"
        transport.emit("iceStateChange", "disconnected")
        await asyncio.sleep(GRACE * 2)

        assert session.state == PeerSessionState.RESTARTING
        assert session.attempt is None
        assert transport.destroy_count == 0

    async def test_next_down_report_opens_new_window(self, transport):
        """Test a down report after an expired window restarts ICE again."""
        session = make_session(transport)
        transport.emit("connect")
        transport.ice_connection_state = "disconnected"
        transport.emit("iceStateChange", "disconnected")
        await asyncio.sleep(GRACE * 2)

        transport.ice_connection_state = "failed"
        transport.emit("iceStateChange", "failed")

        assert transport.restart_count == 2
        assert session.attempt is not None

        await asyncio.sleep(GRACE * 2)
        assert session.state == PeerSessionState.CLOSED

    async def test_failure_before_connect_restarts(self, transport):
        """Test ICE failing during negotiation also goes through a restart."""
        session = make_session(transport)

        transport.emit("iceStateChange", "failed")

        assert session.state == PeerSessionState.RESTARTING
        assert transport.restart_count == 1

    async def test_ice_failure_error_restarts(self, transport):
        """Test an ICE failure error code takes the restart path."""
        session = make_session(transport)
        transport.emit("connect")

        transport.emit("error", TransportError("ice failed", code=ICE_CONNECTION_FAILURE))

        assert session.state == PeerSessionState.RESTARTING
        assert transport.restart_count == 1

    async def test_other_error_closes(self, transport):
        """Test any other transport error closes the session."""
        session = make_session(transport)
        transport.emit("connect")

        transport.emit("error", TransportError("dtls handshake failed", code="ERR_DTLS"))

        assert session.state == PeerSessionState.CLOSED
        assert transport.restart_count == 0


class TestDestroy:
    """Tests for PeerSession.destroy."""

    async def test_destroy_is_idempotent(self, transport):
        """Test repeated destroy releases the transport exactly once."""
        session = make_session(transport)
        closed = MagicMock()
        session.add_close_callback(closed)

        assert session.destroy() is True
        assert session.destroy() is False

        assert transport.destroy_count == 1
        closed.assert_called_once_with(session)

    async def test_transport_close_event_destroys(self, transport):
        """Test the transport closing on its own closes the session."""
        status = MagicMock()
        session = make_session(transport, on_status=status)

        transport.emit("close")

        assert session.state == PeerSessionState.CLOSED
        assert transport.destroy_count == 1
        status.assert_any_call("Peer connection closed with: peer-1")

    async def test_close_emitted_from_destroy_is_not_reentrant(self, transport):
        """Test a transport that emits close while being destroyed is released once."""
        transport.close_on_destroy = True
        session = make_session(transport)
        closed = MagicMock()
        session.add_close_callback(closed)

        session.destroy()

        assert transport.destroy_count == 1
        closed.assert_called_once_with(session)

    async def test_destroy_cancels_restart_timer(self, transport):
        """Test closing during a restart window leaves no timer behind."""
        session = make_session(transport)
        transport.emit("connect")
        transport.ice_connection_state = "failed"
        transport.emit("iceStateChange", "failed")

        session.destroy()
        await asyncio.sleep(GRACE * 2)

        assert session.attempt is None
        assert transport.destroy_count == 1

    async def test_events_after_close_ignored(self, transport):
        """Test late transport events do not resurrect a closed session."""
        on_remote_media = MagicMock()
        session = make_session(transport, on_remote_media=on_remote_media)
        session.destroy()

        transport.emit("stream", object())
        transport.emit("iceStateChange", "failed")

        assert session.state == PeerSessionState.CLOSED
        assert session.remote_media is None
        assert transport.restart_count == 0
        on_remote_media.assert_not_called()

    async def test_transport_destroy_error_still_closes(self, transport):
        """Test an exception while releasing the transport does not escape destroy."""
        transport.destroy = MagicMock(side_effect=RuntimeError("already gone"))
        session = make_session(transport)

        assert session.destroy() is True
        assert session.state == PeerSessionState.CLOSED

    async def test_destroy_idle_session(self, transport):
        """Test a session that was never started can be closed."""
        session = PeerSession("peer-1", transport, initiator=False, send_signal=AsyncMock())

        assert session.destroy() is True
        assert session.state == PeerSessionState.CLOSED
        assert transport.destroy_count == 1
