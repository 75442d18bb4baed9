"""NATS implementation of the peer channel."""

from nats.aio.client import Client as NATSClient
from nats.aio.msg import Msg
from nats.aio.subscription import Subscription

from ipc_bridge.channel.base_channel import MessageChannel
from ipc_bridge.channel.nats.client import cleanup_nats, setup_nats
from ipc_bridge.logging import get_logger
from ipc_bridge.models import RequestEvent

logger = get_logger(__name__)


class NATSChannel(MessageChannel):
    """Publishes requests on one subject and consumes responses from another."""

    def __init__(self, nats_url: str, request_subject: str, response_subject: str):
        """
        Initialize NATS channel.

        Args:
            nats_url: NATS server URL
            request_subject: Subject the peer subscribes to for requests
            response_subject: Subject the peer publishes responses on
        """
        super().__init__()
        self._nats_url = nats_url
        self._request_subject = request_subject
        self._response_subject = response_subject
        self._nats_client: NATSClient | None = None
        self._subscription: Subscription | None = None

    async def start(self) -> None:
        """Connect to NATS and subscribe to the response subject."""
        self._nats_client = await setup_nats(self._nats_url, closed_cb=self._on_connection_closed)
        # A single subscription callback is invoked sequentially, preserving peer order.
        self._subscription = await self._nats_client.subscribe(self._response_subject, cb=self._on_msg)
        logger.info(f"Listening for responses on {self._response_subject}")

    async def _send(self, event: RequestEvent) -> None:
        if self._nats_client is None:
            raise ConnectionError("NATS client is not initialized")

        logger.debug(f"Publishing request {event.request_id} to {self._request_subject}")
        await self._nats_client.publish(self._request_subject, event.model_dump_json().encode())

    async def _on_msg(self, msg: Msg) -> None:
        self._deliver(msg.data)

    async def _on_connection_closed(self) -> None:
        if self._mark_closed():
            logger.warning("NATS connection closed")

    async def _shutdown(self) -> None:
        await cleanup_nats(self._nats_client)
