"""In-process channel for embedding a peer in the same event loop."""

import asyncio

from ipc_bridge.channel.base_channel import MessageChannel
from ipc_bridge.errors import ChannelError
from ipc_bridge.models import RequestEvent, ResponseEvent


class LocalChannel(MessageChannel):
    """
    Channel backed by two asyncio queues.

    The bridge side uses the normal channel API. The peer side pulls requests
    with receive_request() and answers with reply(). Replies are delivered by a
    pump task so they arrive asynchronously and in the order they were queued.
    """

    def __init__(self) -> None:
        super().__init__()
        self._requests: asyncio.Queue[RequestEvent] = asyncio.Queue()
        self._replies: asyncio.Queue[ResponseEvent | dict] = asyncio.Queue()
        self._pump: asyncio.Task | None = None

    async def start(self) -> None:
        if self._pump is None:
            self._pump = asyncio.create_task(self._run_pump(), name="local-channel-pump")

    async def _send(self, event: RequestEvent) -> None:
        self._requests.put_nowait(event)

    async def _shutdown(self) -> None:
        if self._pump is not None:
            self._pump.cancel()
            try:
                await self._pump
            except asyncio.CancelledError:
                pass
            self._pump = None

    async def _run_pump(self) -> None:
        while True:
            reply = await self._replies.get()
            if isinstance(reply, ResponseEvent):
                reply = reply.model_dump()
            self._deliver(reply)

    # Peer side

    async def receive_request(self) -> RequestEvent:
        """Wait for the next request the bridge sent."""
        return await self._requests.get()

    def pending_requests(self) -> int:
        """Number of sent requests the peer has not picked up yet."""
        return self._requests.qsize()

    async def reply(self, response: ResponseEvent | dict) -> None:
        """Queue a response for delivery back to the bridge."""
        if self.closed:
            raise ChannelError("Channel is closed")
        await self._replies.put(response)
