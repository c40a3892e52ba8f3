"""Message channel capability used by the room registry and the signal relay."""

from typing import Any, Protocol


class ChannelHub(Protocol):
    """Addressing surface over the live message channels of one server process.

    Implementations deliver named events to a single connection or to every
    connected client. Delivery to a connection that is gone is a silent no-op.
    """

    def is_connected(self, connection_id: str) -> bool: ...

    async def send(self, connection_id: str, event: str, data: Any) -> None: ...

    async def broadcast(self, event: str, data: Any) -> None: ...


__all__ = ["ChannelHub"]
