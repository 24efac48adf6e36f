import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Literal


@dataclass
class MockRequest:
    method: str = "GET"
    body: object = None
    query: Mapping[str, str | list[str]] = field(default_factory=dict)
    headers: Mapping[str, str] = field(default_factory=dict)


class MockResponse:
    """Captures what was written, like a host framework's response object."""

    def __init__(self) -> None:
        self.status_code: int | None = None
        self.data: str | bytes | None = None
        self.writes = 0

    @property
    def sent(self) -> bool:
        return self.writes > 0

    def set_status(self, status: int) -> None:
        self.status_code = status

    def send(self, body: str | bytes) -> None:
        self.writes += 1
        if self.status_code is None:
            self.status_code = 200
        self.data = body

    def json(self, data: object) -> None:
        self.send(json.dumps(data))

    def json_data(self) -> object:
        assert self.data is not None
        return json.loads(self.data)


def mock_request_response(
    method: str = "GET",
    body: object = None,
    query: Mapping[str, str | list[str]] | None = None,
) -> tuple[MockRequest, MockResponse]:
    return MockRequest(method=method, body=body, query=query or {}), MockResponse()


# --- RSGI ---------------------------------------------------------------------
@dataclass
class MockHTTPScope:
    proto: Literal["http"] = "http"
    http_version: Literal["1", "1.1", "2"] = "1.1"
    rsgi_version: str = "1.0"
    server: str = "localhost"
    client: str = "127.0.0.1"
    scheme: str = "http"
    method: str = "GET"
    path: str = "/"
    query_string: str = ""
    headers: Mapping[str, str] = field(default_factory=dict)
    authority: str | None = None


class MockHTTPProtocol:
    """Mock protocol that returns a canned body and captures the response."""

    def __init__(self, body: bytes = b"") -> None:
        self.body = body
        self.response_status: int | None = None
        self.response_headers: list[tuple[str, str]] | None = None
        self.response_body: bytes | None = None
        self.responses = 0

    async def __call__(self) -> bytes:
        return self.body

    def response_empty(self, status: int, headers: list[tuple[str, str]]) -> None:
        self._record(status, headers, b"")

    def response_str(
        self, status: int, headers: list[tuple[str, str]], body: str
    ) -> None:
        self._record(status, headers, body.encode("utf-8"))

    def response_bytes(
        self, status: int, headers: list[tuple[str, str]], body: bytes
    ) -> None:
        self._record(status, headers, body)

    def _record(self, status: int, headers: list[tuple[str, str]], body: bytes) -> None:
        self.responses += 1
        self.response_status = status
        self.response_headers = headers
        self.response_body = body


def mock_scope(
    method: str = "GET",
    path: str = "/",
    query_string: str = "",
    headers: dict[str, str] | None = None,
) -> MockHTTPScope:
    return MockHTTPScope(
        method=method, path=path, query_string=query_string, headers=headers or {}
    )
