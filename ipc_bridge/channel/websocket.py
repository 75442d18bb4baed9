"""WebSocket channel to a peer process."""

import asyncio

import aiohttp

from ipc_bridge.channel.base_channel import MessageChannel
from ipc_bridge.logging import get_logger
from ipc_bridge.models import RequestEvent

logger = get_logger(__name__)


class WebSocketChannel(MessageChannel):
    """Channel that dials the peer's WebSocket endpoint and exchanges JSON text frames."""

    def __init__(self, peer_url: str, heartbeat: float | None = 30.0):
        """
        Initialize WebSocket channel.

        Args:
            peer_url: ws:// or wss:// URL the peer listens on
            heartbeat: Ping interval in seconds, None to disable
        """
        super().__init__()
        self._peer_url = peer_url
        self._heartbeat = heartbeat
        self._session: aiohttp.ClientSession | None = None
        self._ws: aiohttp.ClientWebSocketResponse | None = None
        self._reader: asyncio.Task | None = None

    async def start(self) -> None:
        """Connect to the peer and start reading its frames."""
        self._session = aiohttp.ClientSession()
        try:
            self._ws = await self._session.ws_connect(self._peer_url, heartbeat=self._heartbeat)
        except Exception:
            await self._session.close()
            raise
        logger.info(f"Connected to peer at {self._peer_url}")

        self._reader = asyncio.create_task(self._read_loop(), name="websocket-channel-reader")

    async def _send(self, event: RequestEvent) -> None:
        if self._ws is None or self._ws.closed:
            raise ConnectionError("WebSocket is not connected")
        await self._ws.send_str(event.model_dump_json())

    async def _read_loop(self) -> None:
        assert self._ws is not None
        try:
            async for msg in self._ws:
                if msg.type == aiohttp.WSMsgType.TEXT:
                    self._deliver(msg.data)
                elif msg.type == aiohttp.WSMsgType.BINARY:
                    self._deliver(msg.data)
                elif msg.type == aiohttp.WSMsgType.ERROR:
                    logger.error(f"WebSocket error: {self._ws.exception()}")
                    break
        finally:
            if self._mark_closed():
                logger.warning(f"Peer at {self._peer_url} disconnected")
                await self._release()

    async def _shutdown(self) -> None:
        if self._reader is not None and self._reader is not asyncio.current_task():
            self._reader.cancel()
            try:
                await self._reader
            except asyncio.CancelledError:
                pass
        await self._release()

    async def _release(self) -> None:
        if self._ws is not None:
            await self._ws.close()
        if self._session is not None:
            await self._session.close()
