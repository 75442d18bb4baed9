from ipc_bridge.channel.nats.channel import NATSChannel

__all__ = ["NATSChannel"]
