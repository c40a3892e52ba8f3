"""Client-side set of live peer sessions, one per remote connection id."""

from collections.abc import Callable

from loguru import logger

from .peer_session import PeerSession

SessionFactory = Callable[[str], PeerSession]


class ConnectionRegistry:
    """Owns the live PeerSessions of one client.

    Entries are added here and removed only by the session's own `destroy()`
    through its close callback. Factories return sessions still in IDLE; the
    registry adopts them before starting them so that a transport closing during
    start still finds its entry to remove.
    """

    def __init__(self):
        self._sessions: dict[str, PeerSession] = {}

    def ensure_session(self, peer_id: str, factory: SessionFactory) -> PeerSession:
        """Replace any session for `peer_id` with a fresh one from `factory`.

        Used when calling a peer and whenever a new negotiation must start from
        scratch. The existing session is destroyed before the new one exists.
        """
        existing = self._sessions.get(peer_id)
        if existing is not None:
            logger.info("Replacing existing session for peer {}", peer_id)
            existing.destroy(reason="replaced by new negotiation")

        return self._adopt(peer_id, factory(peer_id))

    def get_or_create(self, peer_id: str, factory: SessionFactory) -> tuple[PeerSession, bool]:
        """Return the live session for `peer_id`, creating it if there is none.

        Lookup and insert happen without yielding to the event loop, so two
        inbound signals from an unknown peer share the same session.

        Returns:
            (session, created)
        """
        existing = self._sessions.get(peer_id)
        if existing is not None and not existing.is_closed:
            return existing, False

        return self._adopt(peer_id, factory(peer_id)), True

    def remove(self, peer_id: str, session: PeerSession) -> bool:
        """Drop the entry for `peer_id` if it still points at `session`."""
        if self._sessions.get(peer_id) is not session:
            return False
        del self._sessions[peer_id]
        logger.debug("Removed session for peer {}", peer_id)
        return True

    def destroy_all(self, reason: str = "local shutdown") -> int:
        """Destroy every live session.

        Returns:
            Number of sessions destroyed
        """
        destroyed = 0
        for peer_id in list(self._sessions.keys()):
            session = self._sessions.get(peer_id)
            if session is not None and session.destroy(reason=reason):
                destroyed += 1
        if destroyed:
            logger.info("Destroyed {} peer sessions ({})", destroyed, reason)
        return destroyed

    def get(self, peer_id: str) -> PeerSession | None:
        return self._sessions.get(peer_id)

    def peer_ids(self) -> list[str]:
        return list(self._sessions.keys())

    def __contains__(self, peer_id: object) -> bool:
        return peer_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)

    def _adopt(self, peer_id: str, session: PeerSession) -> PeerSession:
        self._sessions[peer_id] = session
        session.add_close_callback(lambda s: self.remove(peer_id, s))
        session.start()
        return session


__all__ = ["ConnectionRegistry", "SessionFactory"]
