"""Shared pytest fixtures for bridge tests."""

import asyncio
from collections.abc import AsyncIterator, Awaitable, Callable

import pytest
from aiohttp.test_utils import TestClient, TestServer
from multidict import CIMultiDictProxy

from ipc_bridge.channel import LocalChannel, MessageChannel
from ipc_bridge.config import Settings
from ipc_bridge.server import BridgeServer

BridgeFactory = Callable[..., Awaitable[tuple[TestClient, BridgeServer]]]


def make_settings(**overrides) -> Settings:
    """Settings for tests: plain HTTP and a short timeout unless overridden."""
    values = {"tls_enabled": False, "request_timeout": 0.5, "host": "127.0.0.1"}
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
async def make_bridge() -> AsyncIterator[BridgeFactory]:
    """Factory building a bridge app behind an aiohttp test client."""
    created: list[tuple[TestClient, MessageChannel]] = []

    async def factory(channel: MessageChannel | None = None, **overrides):
        channel = channel or LocalChannel()
        bridge = BridgeServer(channel, make_settings(**overrides))
        await channel.start()

        client = TestClient(TestServer(bridge.create_app()))
        await client.start_server()
        created.append((client, channel))
        return client, bridge

    yield factory

    for client, channel in created:
        await channel.close()
        await client.close()


@pytest.fixture
async def bridge(make_bridge: BridgeFactory) -> tuple[TestClient, BridgeServer]:
    return await make_bridge()


@pytest.fixture
def client(bridge: tuple[TestClient, BridgeServer]) -> TestClient:
    return bridge[0]


@pytest.fixture
def channel(bridge: tuple[TestClient, BridgeServer]) -> LocalChannel:
    return bridge[1].channel


async def fetch(
    client: TestClient, method: str, path: str, **kwargs
) -> tuple[int, str, CIMultiDictProxy[str]]:
    """Perform a request and return (status, body text, headers)."""
    async with client.request(method, path, **kwargs) as resp:
        return resp.status, await resp.text(), resp.headers


def start_fetch(client: TestClient, method: str, path: str, **kwargs) -> asyncio.Task:
    """Start a request in the background so the test can play the peer."""
    return asyncio.create_task(fetch(client, method, path, **kwargs))
