"""Host framework contracts and shared type aliases."""

from collections.abc import Awaitable, Callable, Mapping
from typing import Literal, Protocol, get_args

type HTTPMethod = Literal["DELETE", "GET", "OPTIONS", "PATCH", "POST", "PUT", "TRACE"]

SUPPORTED_METHODS: frozenset[str] = frozenset(get_args(HTTPMethod.__value__))


class Request(Protocol):
    method: str
    body: object
    query: Mapping[str, str | list[str]]


class Response(Protocol):
    @property
    def status_code(self) -> int | None:
        """Status set so far, None if nothing has set one."""
        ...

    @property
    def sent(self) -> bool:
        """True once a body has been written; no further writes are allowed."""
        ...

    def set_status(self, status: int) -> None: ...

    def send(self, body: str | bytes) -> None: ...

    def json(self, data: object) -> None: ...


type Next = Callable[[], Awaitable[None]]
type Middleware = Callable[[Request, Response, Next], Awaitable[None]]
type NotAllowedHandler = Callable[[str, Request, Response], Awaitable[None] | None]
type ErrorHandler = Callable[[Exception, Request, Response], Awaitable[None] | None]
