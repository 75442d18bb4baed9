"""Translation of inbound HTTP requests into request events."""

import json
from collections.abc import Iterable, Mapping
from typing import Any

from aiohttp import web

from .correlation import IdAllocator
from .models import RequestEvent

JSON_CONTENT_TYPES = frozenset({"application/json"})


def collapse_headers(headers: Mapping[str, Any] | Iterable[tuple[str, Any]]) -> dict[str, str]:
    """
    Lower-case header names and keep only the first value of each.

    Accepts a multidict (repeated keys), a plain mapping whose values may be
    lists, or an iterable of (name, value) pairs. Later values for a header
    that was already seen are discarded.
    """
    items = headers.items() if isinstance(headers, Mapping) else headers

    collapsed: dict[str, str] = {}
    for name, value in items:
        key = name.lower()
        if key in collapsed:
            continue
        if isinstance(value, (list, tuple)):
            if not value:
                continue
            value = value[0]
        collapsed[key] = str(value)
    return collapsed


def coerce_body(body: Any) -> str:
    """Render a request body as text. Structured bodies become compact JSON."""
    if body is None:
        return ""
    if isinstance(body, str):
        return body
    if isinstance(body, (bytes, bytearray)):
        return bytes(body).decode("utf-8", errors="replace")
    return json.dumps(body, separators=(",", ":"), ensure_ascii=False)


async def read_body(request: web.Request) -> Any:
    """
    Read the request payload.

    JSON payloads are parsed so they can be re-serialized canonically; anything
    else, including JSON that fails to parse, is returned as text. aiohttp
    raises HTTPRequestEntityTooLarge here when the body exceeds the
    application's client_max_size.
    """
    if not request.body_exists:
        return None

    raw = await request.read()
    if not raw:
        return None

    try:
        text = raw.decode(request.charset or "utf-8", errors="replace")
    except LookupError:
        # Unknown charset label from the caller
        text = raw.decode("utf-8", errors="replace")

    if request.content_type in JSON_CONTENT_TYPES:
        try:
            return json.loads(text)
        except ValueError:
            return text
    return text


class RequestTranslator:
    """Builds request events, issuing each one a fresh id."""

    def __init__(self, allocator: IdAllocator) -> None:
        self._allocator = allocator

    def translate(
        self,
        method: str,
        path: str,
        headers: Mapping[str, Any] | Iterable[tuple[str, Any]],
        body: Any = None,
    ) -> RequestEvent:
        """Convert request parts into a RequestEvent with a newly allocated id."""
        return RequestEvent(
            request_id=self._allocator.allocate(),
            method=method.upper(),
            path=path,
            headers=collapse_headers(headers),
            body=coerce_body(body),
        )

    async def from_request(self, request: web.Request) -> RequestEvent:
        """Read an aiohttp request and translate it."""
        body = await read_body(request)
        return self.translate(request.method, request.raw_path, request.headers, body)
