"""End-to-end tests of the bridge listener with an in-process peer."""

import asyncio
import json

import pytest
from aiohttp import web
from aiohttp.test_utils import TestClient, TestServer
from multidict import CIMultiDict

from ipc_bridge.channel import LocalChannel, MessageChannel
from ipc_bridge.middleware import CORS_HEADERS, cors_middleware
from ipc_bridge.models import RequestEvent
from ipc_bridge.server import BridgeServer
from tests.conftest import BridgeFactory, fetch, start_fetch


class FailingChannel(MessageChannel):
    """Channel whose peer can never be reached."""

    async def _send(self, event: RequestEvent) -> None:
        raise ConnectionRefusedError("peer unreachable")

    async def _shutdown(self) -> None:
        pass


def assert_cors(headers) -> None:
    for name, value in CORS_HEADERS.items():
        assert headers[name] == value


async def next_request(channel: LocalChannel) -> RequestEvent:
    return await asyncio.wait_for(channel.receive_request(), 5)


class TestForwarding:
    """Test requests forwarded through the channel."""

    @pytest.mark.asyncio
    async def test_get_resolved_by_peer(self, client: TestClient, channel: LocalChannel) -> None:
        """Test GET /foo answered by the peer reaches the caller."""
        call = start_fetch(client, "GET", "/foo", headers={"x": "1"})

        event = await next_request(channel)
        assert event.request_id == 1
        assert event.method == "GET"
        assert event.path == "/foo"
        assert event.headers["x"] == "1"
        assert event.body == ""

        await channel.reply({"request_id": 1, "status": 200, "body": "ok"})
        status, body, headers = await call

        assert status == 200
        assert body == "ok"
        assert_cors(headers)

    @pytest.mark.asyncio
    async def test_peer_status_and_body_verbatim(self, client: TestClient, channel: LocalChannel) -> None:
        call = start_fetch(client, "DELETE", "/items/3")

        event = await next_request(channel)
        await channel.reply({"request_id": event.request_id, "status": 418, "body": '{"teapot": true}'})
        status, body, headers = await call

        assert status == 418
        assert body == '{"teapot": true}'
        assert headers["Content-Type"].startswith("application/json")

    @pytest.mark.asyncio
    async def test_content_type_follows_reply_body(self, client: TestClient, channel: LocalChannel) -> None:
        """Test JSON replies are labelled application/json and other text stays text/plain."""
        replies = {"/json": '[1, 2, {"a": null}]', "/text": "{not json", "/empty": ""}
        received = {}

        for path, reply in replies.items():
            call = start_fetch(client, "GET", path)
            event = await next_request(channel)
            await channel.reply({"request_id": event.request_id, "status": 200, "body": reply})
            received[path] = await call

        status, body, headers = received["/json"]
        assert body == '[1, 2, {"a": null}]'
        assert headers["Content-Type"].startswith("application/json")

        for path in ("/text", "/empty"):
            _, body, headers = received[path]
            assert body == replies[path]
            assert headers["Content-Type"].startswith("text/plain")

    @pytest.mark.asyncio
    async def test_query_string_forwarded_verbatim(self, client: TestClient, channel: LocalChannel) -> None:
        call = start_fetch(client, "GET", "/search?q=a%20b&page=2")

        event = await next_request(channel)
        await channel.reply({"request_id": event.request_id, "status": 200})
        await call

        assert event.path == "/search?q=a%20b&page=2"

    @pytest.mark.asyncio
    async def test_json_body_reserialized(self, client: TestClient, channel: LocalChannel) -> None:
        call = start_fetch(client, "POST", "/bar", json={"b": 2, "a": [1, 2]})

        event = await next_request(channel)
        await channel.reply({"request_id": event.request_id, "status": 201, "body": "created"})
        status, _, _ = await call

        assert status == 201
        assert event.method == "POST"
        assert json.loads(event.body) == {"b": 2, "a": [1, 2]}
        assert event.body == '{"b":2,"a":[1,2]}'

    @pytest.mark.asyncio
    async def test_text_body_passes_through(self, client: TestClient, channel: LocalChannel) -> None:
        call = start_fetch(client, "PUT", "/note", data="hello there", headers={"Content-Type": "text/plain"})

        event = await next_request(channel)
        await channel.reply({"request_id": event.request_id, "status": 204})
        await call

        assert event.body == "hello there"

    @pytest.mark.asyncio
    async def test_multi_valued_header_keeps_first(self, client: TestClient, channel: LocalChannel) -> None:
        headers = CIMultiDict([("X-Multi", "first"), ("X-Multi", "second")])
        call = start_fetch(client, "GET", "/", headers=headers)

        event = await next_request(channel)
        await channel.reply({"request_id": event.request_id, "status": 200})
        await call

        assert event.headers["x-multi"] == "first"

    @pytest.mark.asyncio
    async def test_out_of_order_replies(self, client: TestClient, channel: LocalChannel) -> None:
        """Test each caller gets its own reply when the peer answers in reverse order."""
        call_a = start_fetch(client, "GET", "/a")
        event_a = await next_request(channel)
        call_b = start_fetch(client, "GET", "/b")
        event_b = await next_request(channel)

        assert (event_a.request_id, event_b.request_id) == (1, 2)

        await channel.reply({"request_id": 2, "status": 200, "body": "for b"})
        assert (await call_b)[1] == "for b"
        assert not call_a.done()

        await channel.reply({"request_id": 1, "status": 202, "body": "for a"})
        status, body, _ = await call_a
        assert (status, body) == (202, "for a")

    @pytest.mark.asyncio
    async def test_many_concurrent_requests_correlate(self, client: TestClient, channel: LocalChannel) -> None:
        """Test correlation holds with many requests pending at once."""
        calls = [start_fetch(client, "GET", f"/item/{n}") for n in range(20)]
        events = [await next_request(channel) for _ in calls]

        assert len({event.request_id for event in events}) == 20

        for event in reversed(events):
            await channel.reply({"request_id": event.request_id, "status": 200, "body": event.path})

        results = await asyncio.gather(*calls)
        assert [body for _, body, _ in results] == [f"/item/{n}" for n in range(20)]


class TestTimeouts:
    """Test requests the peer never answers."""

    @pytest.mark.asyncio
    async def test_no_reply_times_out_at_deadline(self, make_bridge: BridgeFactory) -> None:
        """Test an unanswered request fails after the timeout, not before."""
        client, bridge = await make_bridge(request_timeout=0.3)
        loop = asyncio.get_running_loop()
        start = loop.time()

        status, body, headers = await fetch(client, "POST", "/bar", json={"a": 1})
        elapsed = loop.time() - start

        assert status == 504
        assert json.loads(body) == {"error": "Request 1 timed out", "request_id": 1}
        assert_cors(headers)
        assert 0.29 <= elapsed < 2.0
        assert len(bridge.table) == 0

    @pytest.mark.asyncio
    async def test_late_reply_is_ignored(self, make_bridge: BridgeFactory) -> None:
        """Test a reply after the timeout does not disturb the next request."""
        client, bridge = await make_bridge(request_timeout=0.2)
        channel = bridge.channel

        status, _, _ = await fetch(client, "GET", "/slow")
        assert status == 504

        call = start_fetch(client, "GET", "/fast")
        stale = await next_request(channel)
        fresh = await next_request(channel)
        await channel.reply({"request_id": stale.request_id, "status": 200, "body": "too late"})
        await channel.reply({"request_id": fresh.request_id, "status": 200, "body": "fresh"})

        status, body, _ = await call
        assert (status, body) == (200, "fresh")
        assert len(bridge.table) == 0

    @pytest.mark.asyncio
    async def test_reply_before_deadline_wins(self, make_bridge: BridgeFactory) -> None:
        client, bridge = await make_bridge(request_timeout=0.5)
        call = start_fetch(client, "GET", "/quick")

        event = await next_request(bridge.channel)
        await asyncio.sleep(0.2)
        await bridge.channel.reply({"request_id": event.request_id, "status": 200, "body": "in time"})

        status, body, _ = await call
        assert (status, body) == (200, "in time")


class TestFailures:
    """Test locally synthesized error responses."""

    @pytest.mark.asyncio
    async def test_send_failure_returns_502(self, make_bridge: BridgeFactory) -> None:
        """Test an unreachable peer fails the request at once."""
        client, bridge = await make_bridge(channel=FailingChannel(), request_timeout=30)

        status, body, headers = await fetch(client, "GET", "/foo")

        assert status == 502
        assert "peer unreachable" in json.loads(body)["error"]
        assert json.loads(body)["request_id"] == 1
        assert_cors(headers)
        assert len(bridge.table) == 0

    @pytest.mark.asyncio
    async def test_channel_close_drains_pending(self, make_bridge: BridgeFactory) -> None:
        """Test closing the channel fails every pending request without waiting for deadlines."""
        client, bridge = await make_bridge(request_timeout=30)
        calls = [start_fetch(client, "GET", f"/wait/{n}") for n in range(5)]
        for _ in calls:
            await next_request(bridge.channel)

        await bridge.channel.close()
        results = await asyncio.wait_for(asyncio.gather(*calls), 5)

        for status, body, headers in results:
            assert status == 503
            assert json.loads(body)["error"] == "Bridge shutting down"
            assert_cors(headers)
        assert len(bridge.table) == 0

    @pytest.mark.asyncio
    async def test_requests_after_close_fail_fast(self, make_bridge: BridgeFactory) -> None:
        client, bridge = await make_bridge(request_timeout=30)
        await bridge.channel.close()

        status, _, _ = await asyncio.wait_for(fetch(client, "GET", "/after"), 5)

        assert status == 502

    @pytest.mark.asyncio
    async def test_pending_limit_returns_503(self, make_bridge: BridgeFactory) -> None:
        client, bridge = await make_bridge(max_pending_requests=1, request_timeout=30)
        first = start_fetch(client, "GET", "/one")
        event = await next_request(bridge.channel)

        status, body, _ = await fetch(client, "GET", "/two")
        assert status == 503
        assert json.loads(body)["error"] == "Too many pending requests"

        await bridge.channel.reply({"request_id": event.request_id, "status": 200})
        assert (await first)[0] == 200

    @pytest.mark.asyncio
    async def test_oversized_body_rejected(self, make_bridge: BridgeFactory) -> None:
        """Test bodies over the cap are refused before reaching the peer."""
        client, bridge = await make_bridge(max_body_size=16)

        status, _, headers = await fetch(client, "POST", "/upload", data="x" * 1024)

        assert status == 413
        assert_cors(headers)
        assert bridge.channel.pending_requests() == 0
        assert bridge.allocator.issued == 0

    @pytest.mark.asyncio
    async def test_unknown_charset_falls_back_to_utf8(self, client: TestClient, channel: LocalChannel) -> None:
        """Test a bogus charset label still reaches the peer instead of crashing the handler."""
        call = start_fetch(
            client,
            "POST",
            "/x",
            data="héllo".encode("utf-8"),
            headers={"Content-Type": "text/plain; charset=bogus"},
        )

        event = await next_request(channel)
        await channel.reply({"request_id": event.request_id, "status": 200, "body": "ok"})
        status, body, headers = await call

        assert event.body == "héllo"
        assert (status, body) == (200, "ok")
        assert_cors(headers)

    @pytest.mark.asyncio
    async def test_unexpected_error_gets_json_and_cors(self) -> None:
        """Test an exception escaping a handler becomes a JSON 500 with CORS headers."""

        async def broken(request: web.Request) -> web.Response:
            raise RuntimeError("boom")

        app = web.Application(middlewares=[cors_middleware])
        app.router.add_get("/broken", broken)

        async with TestClient(TestServer(app)) as client:
            status, body, headers = await fetch(client, "GET", "/broken")

        assert status == 500
        assert json.loads(body) == {"error": "Internal bridge error", "request_id": None}
        assert_cors(headers)


class TestLocalRoutes:
    """Test routes answered without the peer."""

    @pytest.mark.asyncio
    async def test_preflight(self, client: TestClient, channel: LocalChannel) -> None:
        status, body, headers = await fetch(client, "OPTIONS", "/any/path")

        assert status == 200
        assert body == ""
        assert_cors(headers)
        assert channel.pending_requests() == 0

    @pytest.mark.asyncio
    async def test_manifest(self, client: TestClient, channel: LocalChannel) -> None:
        status, body, headers = await fetch(client, "GET", "/manifest.json")

        assert status == 200
        assert headers["Content-Type"].startswith("application/json")
        manifest = json.loads(body)
        assert manifest["name"] == "IPC Bridge"
        assert manifest["display"] == "standalone"
        assert_cors(headers)
        assert channel.pending_requests() == 0

    @pytest.mark.asyncio
    async def test_post_to_manifest_is_forwarded(self, client: TestClient, channel: LocalChannel) -> None:
        call = start_fetch(client, "POST", "/manifest.json", data="x")

        event = await next_request(channel)
        await channel.reply({"request_id": event.request_id, "status": 200, "body": "peer"})

        assert event.path == "/manifest.json"
        assert (await call)[1] == "peer"


class TestIndependentBridges:
    """Test bridges do not share correlation state."""

    @pytest.mark.asyncio
    async def test_two_bridges_have_own_ids(self, make_bridge: BridgeFactory) -> None:
        client_a, bridge_a = await make_bridge()
        client_b, bridge_b = await make_bridge()

        call_a = start_fetch(client_a, "GET", "/a")
        call_b = start_fetch(client_b, "GET", "/b")
        event_a = await next_request(bridge_a.channel)
        event_b = await next_request(bridge_b.channel)

        assert event_a.request_id == event_b.request_id == 1
        assert bridge_a.table is not bridge_b.table

        await bridge_a.channel.reply({"request_id": 1, "status": 200, "body": "a"})
        await bridge_b.channel.reply({"request_id": 1, "status": 200, "body": "b"})
        assert (await call_a)[1] == "a"
        assert (await call_b)[1] == "b"


def test_bridge_server_wires_components(settings) -> None:
    channel = LocalChannel()
    bridge = BridgeServer(channel, settings)

    assert bridge.handlers.channel is channel
    assert bridge.handlers.table is bridge.table
    assert channel._message_handler == bridge.dispatcher.dispatch
