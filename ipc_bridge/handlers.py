"""HTTP request handlers for the bridge listener."""

import asyncio
import json
from typing import Any

from aiohttp import web

from .channel import MessageChannel
from .config import Settings
from .correlation import CorrelationTable
from .errors import (
    BridgeShutdownError,
    ChannelError,
    PendingLimitError,
    RequestTimeoutError,
)
from .logging import get_logger
from .models import ErrorResponse, ResponseEvent
from .translator import RequestTranslator

logger = get_logger(__name__)


def error_response(status: int, message: str, request_id: int | None = None) -> web.Response:
    """Build a JSON error response synthesized by the bridge."""
    body = ErrorResponse(error=message, request_id=request_id)
    return web.json_response(body.model_dump(), status=status)


def forwarded_response(event: ResponseEvent) -> web.Response:
    """
    Build the HTTP response for a peer reply.

    The event carries no content type, so bodies that parse as JSON are labelled
    application/json and everything else text/plain.
    """
    content_type = "text/plain"
    if event.body.lstrip()[:1] in ("{", "["):
        try:
            json.loads(event.body)
        except ValueError:
            pass
        else:
            content_type = "application/json"

    return web.Response(text=event.body, status=event.status, content_type=content_type)


class RequestHandlers:
    """HTTP request handlers for the bridge."""

    def __init__(
        self,
        settings: Settings,
        table: CorrelationTable,
        translator: RequestTranslator,
        channel: MessageChannel,
        manifest: dict[str, Any],
    ) -> None:
        self.settings = settings
        self.table = table
        self.translator = translator
        self.channel = channel
        self.manifest = manifest

    async def handle_preflight(self, request: web.Request) -> web.Response:
        """Answer OPTIONS locally. CORS headers are added by the middleware."""
        return web.Response(status=200)

    async def handle_manifest(self, request: web.Request) -> web.Response:
        """Serve the static manifest document."""
        return web.json_response(self.manifest)

    async def handle_forwarded(self, request: web.Request) -> web.Response:
        """Forward a request to the peer and wait for its correlated response."""
        event = await self.translator.from_request(request)
        request_id = event.request_id

        loop = asyncio.get_running_loop()
        completion: asyncio.Future[ResponseEvent] = loop.create_future()

        try:
            self.table.register(request_id, completion, loop.time() + self.settings.request_timeout)
        except PendingLimitError as exc:
            logger.warning(f"Rejecting request {request_id}: {exc}")
            return error_response(503, "Too many pending requests", request_id)

        logger.info(f"Forwarding request {request_id}: {event.method} {event.path}")

        try:
            try:
                await self.channel.send(event)
            except ChannelError as exc:
                logger.error(f"Failed to send request {request_id} to peer: {exc}")
                return error_response(502, str(exc), request_id)

            try:
                response = await completion
            except RequestTimeoutError as exc:
                return error_response(504, str(exc), request_id)
            except BridgeShutdownError as exc:
                logger.info(f"Request {request_id} abandoned: {exc}")
                return error_response(503, str(exc), request_id)
        finally:
            # No-op unless the handler left early, e.g. send failure or client disconnect.
            self.table.discard(request_id)

        logger.debug(f"Request {request_id} resolved with status {response.status}")
        return forwarded_response(response)
