"""Message channels connecting the bridge to its peer."""

from ipc_bridge.channel.base_channel import MessageChannel
from ipc_bridge.channel.local import LocalChannel
from ipc_bridge.channel.websocket import WebSocketChannel

__all__ = ["LocalChannel", "MessageChannel", "WebSocketChannel", "open_channel"]


def open_channel(settings) -> MessageChannel:
    """Build the channel selected by settings. The caller starts it."""
    if settings.channel == "nats":
        from ipc_bridge.channel.nats import NATSChannel

        return NATSChannel(settings.nats_url, settings.request_subject, settings.response_subject)
    return WebSocketChannel(settings.peer_url)
