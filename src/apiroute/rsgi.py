"""RSGI host adapter.

Serves a Router from an RSGI server such as Granian:

    from granian.server.embed import Server

    app = rsgi(create_router({"GET": route().build(lambda p: {"ok": True})}))
    await Server(app, address="127.0.0.1", port=8000).serve()

Only the parts of the RSGI HTTP interface used here are described.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Awaitable, Callable, Mapping
from typing import Literal, Protocol
from urllib.parse import parse_qsl

from .router import Router

logger = logging.getLogger(__name__)


class HTTPScope(Protocol):
    proto: Literal["http"]
    method: str
    path: str
    query_string: str
    headers: Mapping[str, str]


class HTTPProtocol(Protocol):
    async def __call__(self) -> bytes: ...

    def response_empty(self, status: int, headers: list[tuple[str, str]]) -> None: ...

    def response_str(
        self, status: int, headers: list[tuple[str, str]], body: str
    ) -> None: ...

    def response_bytes(
        self, status: int, headers: list[tuple[str, str]], body: bytes
    ) -> None: ...


type RSGIHTTPHandler = Callable[[HTTPScope, HTTPProtocol], Awaitable[None]]


class RSGIRequest:
    __slots__ = ("body", "headers", "method", "path", "query")

    def __init__(self, scope: HTTPScope, body: object) -> None:
        self.method = scope.method
        self.path = scope.path
        self.headers = scope.headers
        self.query = parse_query(scope.query_string)
        self.body = body


class RSGIResponse:
    """Buffers status and headers; the first body write sends the response."""

    __slots__ = ("_headers", "_proto", "_sent", "_status")

    def __init__(self, proto: HTTPProtocol) -> None:
        self._proto = proto
        self._status: int | None = None
        self._headers: list[tuple[str, str]] = []
        self._sent = False

    @property
    def status_code(self) -> int | None:
        return self._status

    @property
    def sent(self) -> bool:
        return self._sent

    def set_status(self, status: int) -> None:
        self._status = status

    def set_header(self, name: str, value: str) -> None:
        self._headers.append((name.lower(), value))

    def send(self, body: str | bytes) -> None:
        self._mark_sent()
        if not any(k == "content-type" for k, _ in self._headers):
            self._headers.append(
                (
                    "content-type",
                    "text/plain; charset=utf-8"
                    if isinstance(body, str)
                    else "application/octet-stream",
                )
            )
        if isinstance(body, str):
            self._proto.response_str(self._final_status(), self._headers, body)
        else:
            self._proto.response_bytes(self._final_status(), self._headers, body)

    def json(self, data: object) -> None:
        body = json.dumps(data)
        self._mark_sent()
        self._headers.append(("content-type", "application/json"))
        self._proto.response_str(self._final_status(), self._headers, body)

    def finish(self) -> None:
        """Send an empty response if nothing has been sent yet."""
        if self._sent:
            return
        self._mark_sent()
        self._proto.response_empty(self._final_status(), self._headers)

    def _final_status(self) -> int:
        if self._status is None:
            self._status = 200
        return self._status

    def _mark_sent(self) -> None:
        if self._sent:
            msg = "response already sent"
            raise RuntimeError(msg)
        self._sent = True


def parse_query(query_string: str) -> dict[str, str | list[str]]:
    """Parse a query string; repeated keys collect into a list."""
    query: dict[str, str | list[str]] = {}
    for key, value in parse_qsl(query_string, keep_blank_values=True):
        existing = query.get(key)
        if existing is None:
            query[key] = value
        elif isinstance(existing, list):
            existing.append(value)
        else:
            query[key] = [existing, value]
    return query


def decode_body(raw: bytes, content_type: str | None) -> object:
    """Decode a request body: JSON for json content types, text otherwise.

    Raises ValueError if a JSON body can't be decoded.
    """
    if not raw:
        return None
    media_type = (content_type or "").split(";", 1)[0].strip().lower()
    if media_type == "application/json" or media_type.endswith("+json"):
        return json.loads(raw)
    return raw.decode("utf-8", errors="replace")


def rsgi(router: Router) -> RSGIHTTPHandler:
    """Wrap a router as an RSGI HTTP handler."""

    async def handler(scope: HTTPScope, proto: HTTPProtocol) -> None:
        raw = await proto()
        try:
            body = decode_body(raw, scope.headers.get("content-type"))
        except ValueError:
            logger.debug("%s %s: invalid JSON body", scope.method, scope.path)
            proto.response_str(
                400, [("content-type", "text/plain; charset=utf-8")], "Invalid JSON body"
            )
            return

        response = RSGIResponse(proto)
        await router(RSGIRequest(scope, body), response)
        response.finish()

    return handler
