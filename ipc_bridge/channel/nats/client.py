"""NATS connection helpers for the NATS channel."""

from collections.abc import Awaitable, Callable

import nats
from nats.aio.client import Client as NATSClient

from ipc_bridge.logging import get_logger

logger = get_logger(__name__)


async def setup_nats(url: str, closed_cb: Callable[[], Awaitable[None]] | None = None) -> NATSClient:
    """Connect to NATS server."""
    options = {}
    if closed_cb is not None:
        options["closed_cb"] = closed_cb

    nc = await nats.connect(url, **options)
    logger.info(f"Connected to NATS at {url}")

    return nc


async def cleanup_nats(nc: NATSClient | None):
    """Disconnect from NATS server."""
    if nc and not nc.is_closed:
        await nc.drain()
        logger.info("Disconnected from NATS")
