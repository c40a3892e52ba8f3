"""Point-to-point relay for negotiation payloads."""

from loguru import logger

from peerstream.schemas import SignalDelivery, SignalEnvelope, SignalingEvent

from .channel_hub import ChannelHub


class SignalRelay:
    """Forwards signal envelopes to their target connection.

    Stateless per call: nothing is buffered or retried. Envelopes addressed to a
    connection that is not live are dropped without telling the sender, since
    peer sessions already tolerate lost negotiation messages.
    """

    def __init__(self, hub: ChannelHub):
        self._hub = hub

    async def relay(self, envelope: SignalEnvelope, sender_id: str | None = None) -> bool:
        """
        Deliver `{from, payload}` to `envelope.to`.

        Args:
            envelope: Envelope received from the sender
            sender_id: Connection the envelope arrived on, used when it carries no `from`

        Returns:
            True if the target was live and the envelope was handed to its channel
        """
        from_id = envelope.from_ or sender_id
        if not from_id:
            logger.warning("Dropping signal to {} without a sender id", envelope.to)
            return False

        if not self._hub.is_connected(envelope.to):
            logger.debug("Dropping signal {} -> {}: target not connected", from_id, envelope.to)
            return False

        delivery = SignalDelivery(from_=from_id, payload=envelope.payload)
        await self._hub.send(envelope.to, SignalingEvent.SIGNAL, delivery.to_wire())
        logger.debug("Relayed signal {} -> {}", from_id, envelope.to)
        return True


__all__ = ["SignalRelay"]
