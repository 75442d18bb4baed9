"""HTTPS bridge forwarding requests to a peer process and correlating its replies."""

from .channel import LocalChannel, MessageChannel, WebSocketChannel
from .config import Settings, get_settings
from .correlation import CorrelationTable, IdAllocator, PendingEntry
from .dispatcher import ResponseDispatcher
from .errors import (
    BridgeError,
    BridgeShutdownError,
    ChannelError,
    DuplicateRequestError,
    IdentifierExhaustedError,
    PendingLimitError,
    PortInUseError,
    RequestTimeoutError,
)
from .models import RequestEvent, ResponseEvent
from .server import BridgeServer
from .translator import RequestTranslator

__all__ = [
    "BridgeError",
    "BridgeServer",
    "BridgeShutdownError",
    "ChannelError",
    "CorrelationTable",
    "DuplicateRequestError",
    "IdAllocator",
    "IdentifierExhaustedError",
    "LocalChannel",
    "MessageChannel",
    "PendingEntry",
    "PendingLimitError",
    "PortInUseError",
    "RequestEvent",
    "RequestTimeoutError",
    "RequestTranslator",
    "ResponseDispatcher",
    "ResponseEvent",
    "Settings",
    "WebSocketChannel",
    "get_settings",
]
