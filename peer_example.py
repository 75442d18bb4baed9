"""
IPC Bridge Peer Example
Accepts the bridge's WebSocket connection and answers its requests by
calling a local HTTP service.
"""

import asyncio
import logging
import sys

import aiohttp
from aiohttp import web

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


class BridgePeer:
    """Peer process that handles requests forwarded by the bridge."""

    def __init__(self, local_port: int, local_host: str = "localhost"):
        self.local_host = local_host
        self.local_port = local_port
        self._tasks: set[asyncio.Task] = set()

    async def handle_bridge(self, request: web.Request) -> web.WebSocketResponse:
        """Serve one bridge connection."""
        ws = web.WebSocketResponse(heartbeat=30.0)
        await ws.prepare(request)
        logger.info("Bridge connected")

        async with aiohttp.ClientSession() as session:
            async for msg in ws:
                if msg.type == aiohttp.WSMsgType.TEXT:
                    # Replies may complete out of order; the bridge correlates them by request_id.
                    task = asyncio.create_task(self._forward_request(ws, session, msg.json()))
                    self._tasks.add(task)
                    task.add_done_callback(self._tasks.discard)
                elif msg.type == aiohttp.WSMsgType.ERROR:
                    logger.error(f"WebSocket error: {ws.exception()}")
                    break

        logger.info("Bridge disconnected")
        return ws

    async def _forward_request(
        self,
        ws: web.WebSocketResponse,
        session: aiohttp.ClientSession,
        data: dict,
    ):
        """Forward a request event to the local service and send the response event back."""
        request_id = data.get("request_id")
        method = data.get("method", "GET")
        path = data.get("path", "/")
        body = data.get("body", "")

        logger.info(f"Forwarding {method} {path}")

        headers = {k: v for k, v in data.get("headers", {}).items() if k not in ("host", "content-length")}
        local_url = f"http://{self.local_host}:{self.local_port}{path}"

        try:
            async with session.request(
                method=method,
                url=local_url,
                headers=headers,
                data=body.encode("utf-8") if body else None,
            ) as response:
                await ws.send_json({
                    "request_id": request_id,
                    "status": response.status,
                    "body": await response.text(),
                })
                logger.info(f"Response sent: {response.status}")

        except Exception as e:
            logger.error(f"Error forwarding request: {e}")
            await ws.send_json({
                "request_id": request_id,
                "status": 502,
                "body": f"Error forwarding request: {str(e)}",
            })


async def run_local_test_server(port: int = 3000):
    """Run a simple local HTTP server for testing."""

    async def handle_request(request: web.Request) -> web.Response:
        """Handle test requests."""
        return web.Response(
            text=f"Hello from local server!\nPath: {request.path}\nMethod: {request.method}",
            content_type="text/plain",
        )

    app = web.Application()
    app.router.add_route("*", "/{tail:.*}", handle_request)

    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, "localhost", port)
    await site.start()

    logger.info(f"Local test server running on http://localhost:{port}")


async def main():
    """Main entry point."""
    peer_port = int(sys.argv[1]) if len(sys.argv) > 1 else 3322
    local_port = int(sys.argv[2]) if len(sys.argv) > 2 else 3000

    await run_local_test_server(local_port)

    peer = BridgePeer(local_port)
    app = web.Application()
    app.router.add_get("/bridge", peer.handle_bridge)

    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, "127.0.0.1", peer_port)
    await site.start()
    logger.info(f"Peer waiting for the bridge on ws://127.0.0.1:{peer_port}/bridge")

    await asyncio.Event().wait()


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Peer stopped by user")
