from .channel_hub import ChannelHub
from .signal_relay import SignalRelay
from .stream_registry import StreamRegistry

__all__ = ["ChannelHub", "SignalRelay", "StreamRegistry"]
