"""Method router: dispatches a request to the route registered for its method.

    handler = create_router({
        "GET": route().build(list_users),
        "POST": route().body(PydanticSchema(NewUser)).build(create_user),
    })
    await handler(request, response)

Or hand it a factory that receives the builder constructor, which is useful
for closing over a shared, partially configured builder:

    handler = create_router(lambda r: {"GET": r().use(auth).build(get_user)})
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Callable, Mapping
from types import MappingProxyType
from typing import Any

from .errors import ConfigurationError, UnsupportedMethodError, ValidationError
from .route import Route, RouteBuilder, route
from .types import (
    SUPPORTED_METHODS,
    ErrorHandler,
    HTTPMethod,
    NotAllowedHandler,
    Request,
    Response,
)

logger = logging.getLogger(__name__)

type RouteMap = Mapping[HTTPMethod, Route[Any, Any]]
type RouteFactory = Callable[[Callable[[], RouteBuilder[Any, Any]]], RouteMap]


def method_not_allowed(method: str, request: Request, response: Response) -> None:
    """Default 405 handler."""
    response.set_status(405)
    response.send("Method Not Allowed")


def handle_error(error: Exception, request: Request, response: Response) -> None:
    """Default error handler.

    Validation errors become a 400 with the issue list, anything else a 500
    with a generic body. Error details are logged, never sent. If the
    response has already been sent the error is only logged.
    """
    if response.sent:
        logger.error(
            "error in %s after response was sent",
            request.method,
            exc_info=error,
        )
        return
    if isinstance(error, ValidationError):
        logger.info("%s %s: %s", request.method, error.source, error.message)
        response.set_status(400)
        response.json({"message": error.message, "errors": list(error.issues)})
        return
    logger.exception("unhandled error in %s handler", request.method, exc_info=error)
    response.set_status(500)
    response.send("Internal Server Error")


class Router:
    __slots__ = ("_on_error", "_on_not_allowed", "_routes")
    _routes: Mapping[str, Route[Any, Any]]
    _on_not_allowed: NotAllowedHandler
    _on_error: ErrorHandler

    def __init__(
        self,
        routes: RouteMap,
        *,
        on_not_allowed: NotAllowedHandler | None = None,
        on_error: ErrorHandler | None = None,
    ) -> None:
        if not isinstance(routes, Mapping):
            msg = (
                "routes must be a mapping of method to Route, "
                f"got {type(routes).__name__}"
            )
            raise ConfigurationError(msg)
        for method, r in routes.items():
            if method not in SUPPORTED_METHODS:
                msg = (
                    f"Unsupported method {method!r}, "
                    f"expected one of {', '.join(sorted(SUPPORTED_METHODS))}"
                )
                raise UnsupportedMethodError(msg)
            if not isinstance(r, Route):
                msg = f"{method} must map to a Route, got {type(r).__name__}"
                raise ConfigurationError(msg)
        self._routes = MappingProxyType(dict(routes))
        self._on_not_allowed = on_not_allowed or method_not_allowed
        self._on_error = on_error or handle_error

    @property
    def routes(self) -> Mapping[str, Route[Any, Any]]:
        return self._routes

    @property
    def methods(self) -> frozenset[str]:
        return frozenset(self._routes)

    async def __call__(self, request: Request, response: Response) -> None:
        method = request.method.upper()
        handler = self._routes.get(method)
        if handler is None:
            logger.debug("no route for %s", method)
            await _maybe_await(self._on_not_allowed(method, request, response))
            return

        logger.debug("dispatching %s", method)
        try:
            await handler.handle(request, response)
        except Exception as e:  # noqa: BLE001  - single point where request errors are handled
            await _maybe_await(self._on_error(e, request, response))


def create_router(
    routes: RouteMap | RouteFactory,
    *,
    on_not_allowed: NotAllowedHandler | None = None,
    on_error: ErrorHandler | None = None,
) -> Router:
    """Build a router from a method map or a factory returning one.

    Raises ConfigurationError (UnsupportedMethodError for unknown methods)
    before any request is handled.
    """
    if callable(routes) and not isinstance(routes, Mapping):
        routes = routes(route)
    return Router(routes, on_not_allowed=on_not_allowed, on_error=on_error)


async def _maybe_await(result: object) -> None:
    if inspect.isawaitable(result):
        await result


def format_routes(router: Router) -> str:
    """Format registered routes as a column-aligned list.

        GET    get_user      [auth > access_log]
        POST   create_user
    """
    rows = [
        (method, _qualname(r.handler), [_qualname(m) for m in r.middleware])
        for method, r in sorted(router.routes.items())
    ]
    if not rows:
        return ""

    method_w = max(len(row[0]) for row in rows)
    handler_w = max(len(row[1]) for row in rows)

    lines: list[str] = []
    for method, handler, mw in rows:
        if mw:
            lines.append(
                f"{method:<{method_w}}   {handler:<{handler_w}}   [{' > '.join(mw)}]"
            )
        else:
            lines.append(f"{method:<{method_w}}   {handler}")
    return "\n".join(lines)


def _qualname(obj: object) -> str:
    """Extract __qualname__ from a callable, falling back to repr."""
    return str(obj.__qualname__) if hasattr(obj, "__qualname__") else repr(obj)
