"""
IPC Bridge - HTTPS front door for a request handler in another process.
Forwards every HTTP request to the peer over a message channel and writes
back the correlated response.
"""

import asyncio
import errno
import signal
import sys

import uvloop
from aiohttp import web

from .channel import MessageChannel, open_channel
from .config import Settings, get_settings
from .correlation import CorrelationTable, IdAllocator
from .dispatcher import ResponseDispatcher
from .errors import BridgeError, ChannelError, PortInUseError
from .handlers import RequestHandlers
from .logging import get_logger, setup_logging
from .manifest import load_manifest
from .middleware import cors_middleware
from .tls import load_ssl_context
from .translator import RequestTranslator

logger = get_logger(__name__)


class BridgeServer:
    """Owns one bridge: its correlation state, channel and HTTP listener."""

    def __init__(self, channel: MessageChannel, settings: Settings | None = None) -> None:
        self.settings = settings or get_settings()
        self.channel = channel
        self.allocator = IdAllocator()
        self.table = CorrelationTable(max_pending=self.settings.max_pending_requests)
        self.translator = RequestTranslator(self.allocator)
        self.dispatcher = ResponseDispatcher(self.table)
        self.handlers = RequestHandlers(
            self.settings,
            self.table,
            self.translator,
            self.channel,
            load_manifest(self.settings),
        )
        self.dispatcher.attach(self.channel)
        self._runner: web.AppRunner | None = None

    def setup_routes(self, app: web.Application) -> None:
        """Configure application routes."""
        app.router.add_get("/manifest.json", self.handlers.handle_manifest, allow_head=False)
        app.router.add_route("OPTIONS", "/{tail:.*}", self.handlers.handle_preflight)
        app.router.add_route("*", "/{tail:.*}", self.handlers.handle_forwarded)

    def create_app(self) -> web.Application:
        """Create the aiohttp application serving this bridge."""
        app = web.Application(
            middlewares=[cors_middleware],
            client_max_size=self.settings.max_body_size,
        )
        self.setup_routes(app)
        return app

    async def start(self) -> None:
        """Start the channel, then bind the listener."""
        ssl_context = load_ssl_context(self.settings)

        try:
            await self.channel.start()
        except Exception as exc:
            raise ChannelError(f"Could not open peer channel: {exc}") from exc

        self._runner = web.AppRunner(
            self.create_app(),
            shutdown_timeout=self.settings.shutdown_timeout,
        )
        await self._runner.setup()

        site = web.TCPSite(
            self._runner,
            self.settings.host,
            self.settings.port,
            ssl_context=ssl_context,
        )
        try:
            await site.start()
        except OSError as exc:
            await self._runner.cleanup()
            self._runner = None
            await self.channel.close()
            if exc.errno == errno.EADDRINUSE:
                raise PortInUseError(f"Port {self.settings.port} is already in use") from exc
            raise

        scheme = "https" if ssl_context else "http"
        logger.info(f"Bridge listening on {scheme}://{self.settings.host}:{self.settings.port}")

    async def stop(self) -> None:
        """
        Tear the bridge down.

        Closing the channel fails every pending request with a shutdown error,
        so the runner cleanup below only waits for those responses to be written.
        """
        await self.channel.close()
        if self._runner is not None:
            await self._runner.cleanup()
            self._runner = None
        logger.info("Bridge stopped")

    async def serve_forever(self) -> None:
        """Run until SIGINT/SIGTERM or until the peer channel closes."""
        await self.start()

        stop_event = asyncio.Event()
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, stop_event.set)
            except NotImplementedError:
                pass
        self.channel.on_close(stop_event.set)

        try:
            await stop_event.wait()
            logger.info("Shutting down...")
        finally:
            await self.stop()


async def run(settings: Settings) -> None:
    """Open the configured channel and serve until stopped."""
    server = BridgeServer(open_channel(settings), settings)
    await server.serve_forever()


def main() -> None:
    """Entry point for the bridge."""
    settings = get_settings()
    setup_logging(settings.log_level)

    try:
        uvloop.run(run(settings))
    except BridgeError as exc:
        logger.critical(str(exc))
        sys.exit(1)
    except KeyboardInterrupt:
        logger.info("Bridge stopped by user")


if __name__ == "__main__":
    main()
