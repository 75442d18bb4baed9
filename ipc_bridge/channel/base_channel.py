"""Abstract base class for the peer message channel."""

from abc import ABC, abstractmethod
from collections.abc import Callable

from pydantic import ValidationError

from ipc_bridge.errors import ChannelError
from ipc_bridge.logging import get_logger
from ipc_bridge.models import RequestEvent, ResponseEvent

logger = get_logger(__name__)

MessageHandler = Callable[[ResponseEvent], None]
CloseHandler = Callable[[], None]


class MessageChannel(ABC):
    """
    Ordered, asynchronous link to the single peer that handles requests.

    Subclasses move raw frames across the process boundary. This class owns the
    open/closed state, decodes inbound frames and hands them to the registered
    handler one at a time in the order they arrived.
    """

    def __init__(self) -> None:
        self._message_handler: MessageHandler | None = None
        self._close_handlers: list[CloseHandler] = []
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def on_message(self, handler: MessageHandler) -> None:
        """Register the callback invoked once per inbound response event."""
        self._message_handler = handler

    def on_close(self, handler: CloseHandler) -> None:
        """Register a callback invoked once when the channel closes."""
        self._close_handlers.append(handler)

    async def start(self) -> None:
        """Begin receiving from the peer."""

    async def send(self, event: RequestEvent) -> None:
        """
        Send a request event to the peer.

        Raises:
            ChannelError: If the channel is closed or the peer cannot be reached
        """
        if self._closed:
            raise ChannelError("Channel is closed")
        try:
            await self._send(event)
        except ChannelError:
            raise
        except Exception as exc:
            raise ChannelError(f"Failed to send request {event.request_id}: {exc}") from exc

    async def close(self) -> None:
        """Close the channel. No events are delivered afterwards."""
        if self._mark_closed():
            await self._shutdown()

    @abstractmethod
    async def _send(self, event: RequestEvent) -> None:
        """Write one encoded event to the peer."""
        pass

    @abstractmethod
    async def _shutdown(self) -> None:
        """Release the underlying transport."""
        pass

    def _deliver(self, frame: str | bytes | dict) -> None:
        """Decode one inbound frame and pass it to the message handler."""
        if self._closed:
            return

        try:
            if isinstance(frame, dict):
                event = ResponseEvent.model_validate(frame)
            else:
                event = ResponseEvent.model_validate_json(frame)
        except ValidationError as exc:
            logger.warning(f"Dropping malformed response event: {exc.error_count()} validation error(s)")
            return

        if self._message_handler is None:
            logger.debug(f"No handler registered, dropping response for request {event.request_id}")
            return
        self._message_handler(event)

    def _mark_closed(self) -> bool:
        """Flip to closed and notify listeners. Returns False if already closed."""
        if self._closed:
            return False
        self._closed = True
        logger.info(f"{type(self).__name__} closed")

        for handler in self._close_handlers:
            handler()
        return True
