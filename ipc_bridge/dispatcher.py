"""Routing of inbound response events to the requests awaiting them."""

from .channel import MessageChannel
from .correlation import CorrelationTable
from .errors import BridgeShutdownError
from .logging import get_logger
from .models import ResponseEvent

logger = get_logger(__name__)


class ResponseDispatcher:
    """Resolves pending requests from channel events and fails them when the channel closes."""

    def __init__(self, table: CorrelationTable) -> None:
        self._table = table

    def attach(self, channel: MessageChannel) -> None:
        """Subscribe to a channel's responses and closure."""
        channel.on_message(self.dispatch)
        channel.on_close(self.fail_pending)

    def dispatch(self, event: ResponseEvent) -> bool:
        """Resolve the request matching the event. Returns False for stale responses."""
        resolved = self._table.resolve(event.request_id, event)
        if not resolved:
            # Reply arrived after its request timed out or was abandoned.
            logger.debug(f"Discarding stale response for request {event.request_id}")
        return resolved

    def fail_pending(self) -> int:
        """Fail every pending request with a shutdown error. Returns how many were failed."""
        completions = self._table.drain()
        for completion in completions:
            completion.set_exception(BridgeShutdownError())

        if completions:
            logger.warning(f"Failed {len(completions)} pending request(s): bridge shutting down")
        return len(completions)
