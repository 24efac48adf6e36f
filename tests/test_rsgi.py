import asyncio
import json
import logging

import pytest
from conftest import MockHTTPProtocol, mock_scope

from apiroute import HandlerParams, ParseFailure, ParseResult, create_router, route
from apiroute.middleware.timeout import timeout
from apiroute.rsgi import RSGIResponse, decode_body, parse_query, rsgi


def _headers(proto: MockHTTPProtocol) -> dict[str, str]:
    assert proto.response_headers is not None
    return dict(proto.response_headers)


# --- Parsing ------------------------------------------------------------------
def test_parse_query_single_and_repeated_keys() -> None:
    assert parse_query("a=1&b=2&b=3&c=") == {"a": "1", "b": ["2", "3"], "c": ""}


def test_parse_query_empty() -> None:
    assert parse_query("") == {}


@pytest.mark.parametrize(
    "raw,content_type,expected",
    [
        (b"", "application/json", None),
        (b'{"a": 1}', "application/json", {"a": 1}),
        (b'{"a": 1}', "application/json; charset=utf-8", {"a": 1}),
        (b'{"a": 1}', "application/vnd.api+json", {"a": 1}),
        (b"hello", "text/plain", "hello"),
        (b"hello", None, "hello"),
    ],
)
def test_decode_body(raw: bytes, content_type: str | None, expected: object) -> None:
    assert decode_body(raw, content_type) == expected


def test_decode_body_invalid_json_raises() -> None:
    with pytest.raises(ValueError):
        decode_body(b"{nope", "application/json")


# --- Response -----------------------------------------------------------------
def test_response_send_str() -> None:
    proto = MockHTTPProtocol()
    response = RSGIResponse(proto)
    response.set_status(201)
    response.set_header("X-Request-Id", "abc")
    response.send("created")

    assert proto.response_status == 201
    assert proto.response_body == b"created"
    headers = _headers(proto)
    assert headers["x-request-id"] == "abc"
    assert headers["content-type"] == "text/plain; charset=utf-8"


def test_response_send_bytes_defaults_to_200() -> None:
    proto = MockHTTPProtocol()
    response = RSGIResponse(proto)
    response.send(b"\x00\x01")

    assert proto.response_status == 200
    assert response.status_code == 200
    assert proto.response_body == b"\x00\x01"
    assert _headers(proto)["content-type"] == "application/octet-stream"


def test_response_keeps_explicit_content_type() -> None:
    proto = MockHTTPProtocol()
    response = RSGIResponse(proto)
    response.set_header("content-type", "text/html")
    response.send("<p>hi</p>")

    assert proto.response_headers == [("content-type", "text/html")]


def test_response_can_only_be_sent_once() -> None:
    proto = MockHTTPProtocol()
    response = RSGIResponse(proto)
    response.json({"a": 1})

    with pytest.raises(RuntimeError, match="already sent"):
        response.send("again")
    assert proto.responses == 1


def test_response_sent_flag() -> None:
    response = RSGIResponse(MockHTTPProtocol())
    assert not response.sent

    response.send("ok")
    assert response.sent


def test_response_finish_sends_empty_once() -> None:
    proto = MockHTTPProtocol()
    response = RSGIResponse(proto)
    response.set_status(204)
    response.finish()
    response.finish()

    assert proto.responses == 1
    assert proto.response_status == 204
    assert proto.response_body == b""


# --- End to end ---------------------------------------------------------------
@pytest.mark.asyncio
async def test_rsgi_json_roundtrip() -> None:
    def handler(p: HandlerParams) -> dict[str, object]:
        return {"body": p.body, "query": p.query}

    app = rsgi(create_router({"POST": route().build(handler)}))
    proto = MockHTTPProtocol(body=b'{"name": "ada"}')
    scope = mock_scope(
        method="POST",
        path="/users",
        query_string="tag=a&tag=b&page=2",
        headers={"content-type": "application/json"},
    )
    await app(scope, proto)

    assert proto.response_status == 200
    assert _headers(proto)["content-type"] == "application/json"
    assert proto.response_body is not None
    assert json.loads(proto.response_body) == {
        "body": {"name": "ada"},
        "query": {"tag": ["a", "b"], "page": "2"},
    }


@pytest.mark.asyncio
async def test_rsgi_invalid_json_is_400() -> None:
    called = False

    def handler(p: HandlerParams) -> None:
        nonlocal called
        called = True

    app = rsgi(create_router({"POST": route().build(handler)}))
    proto = MockHTTPProtocol(body=b"{nope")
    scope = mock_scope(method="POST", headers={"content-type": "application/json"})
    await app(scope, proto)

    assert proto.response_status == 400
    assert not called


@pytest.mark.asyncio
async def test_rsgi_405() -> None:
    app = rsgi(create_router({"GET": route().build(lambda p: None)}))
    proto = MockHTTPProtocol()
    await app(mock_scope(method="PUT"), proto)

    assert proto.response_status == 405
    assert proto.responses == 1


@pytest.mark.asyncio
async def test_rsgi_handler_without_response_sends_empty_200() -> None:
    app = rsgi(create_router({"DELETE": route().build(lambda p: None)}))
    proto = MockHTTPProtocol()
    await app(mock_scope(method="DELETE"), proto)

    assert proto.response_status == 200
    assert proto.response_body == b""
    assert proto.responses == 1


@pytest.mark.asyncio
async def test_rsgi_validation_error_is_400_json() -> None:
    class Reject:
        async def attempt_parse(self, value: object) -> ParseResult[object]:
            return ParseFailure(
                issues=({"path": ["id"], "message": "Required", "code": "missing"},)
            )

    app = rsgi(create_router({"GET": route().query(Reject()).build(lambda p: None)}))
    proto = MockHTTPProtocol()
    await app(mock_scope(), proto)

    assert proto.response_status == 400
    assert proto.response_body is not None
    assert json.loads(proto.response_body) == {
        "message": "Failed to parse query",
        "errors": [{"path": ["id"], "message": "Required", "code": "missing"}],
    }


@pytest.mark.asyncio
async def test_rsgi_error_after_response_sent_is_logged_not_written(
    caplog: pytest.LogCaptureFixture,
) -> None:
    async def audit(request, response, next) -> None:
        await next()
        msg = "audit failed"
        raise RuntimeError(msg)

    app = rsgi(create_router({"GET": route().use(audit).build(lambda p: {"ok": 1})}))
    proto = MockHTTPProtocol()

    with caplog.at_level(logging.ERROR, logger="apiroute.router"):
        await app(mock_scope(), proto)

    assert proto.responses == 1
    assert proto.response_status == 200
    assert proto.response_body is not None
    assert json.loads(proto.response_body) == {"ok": 1}
    records = [rec for rec in caplog.records if rec.name == "apiroute.router"]
    assert len(records) == 1
    assert "after response was sent" in records[0].getMessage()


@pytest.mark.asyncio
async def test_rsgi_timeout_after_response_sent_keeps_response() -> None:
    async def handler(p: HandlerParams) -> None:
        p.response.send("done")
        await asyncio.sleep(1)

    app = rsgi(create_router({"GET": route().use(timeout(0.01)).build(handler)}))
    proto = MockHTTPProtocol()
    await app(mock_scope(), proto)

    assert proto.responses == 1
    assert proto.response_status == 200
    assert proto.response_body == b"done"


@pytest.mark.asyncio
async def test_rsgi_unserializable_result_is_500() -> None:
    app = rsgi(create_router({"GET": route().build(lambda p: {"when": object()})}))
    proto = MockHTTPProtocol()
    await app(mock_scope(), proto)

    assert proto.responses == 1
    assert proto.response_status == 500
    assert proto.response_body == b"Internal Server Error"
