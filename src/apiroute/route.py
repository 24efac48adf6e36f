"""Routes and the immutable route builder.

A route binds one handler to a body schema, a query schema and an ordered
middleware chain:

    get_user = (
        route()
        .use(access_log())
        .query(PydanticSchema(UserQuery))
        .build(lambda p: {"id": p.query.id})
    )

Builders never mutate, so a partially configured builder can be shared as a
base for several routes.
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from functools import partial
from typing import Any

from .errors import NextCalledTwiceError, ValidationError
from .schema import ANY, ParseFailure, Schema
from .types import Middleware, Request, Response

logger = logging.getLogger(__name__)

type Handler[B, Q] = Callable[[HandlerParams[B, Q]], object | Awaitable[object]]
type _Link = Callable[
    [Request, Response, Callable[[], Awaitable[None]]], Awaitable[None]
]


@dataclass(slots=True, frozen=True)
class HandlerParams[B, Q]:
    """What a handler receives: the raw request/response plus decoded data."""

    request: Request
    response: Response
    body: B
    query: Q


@dataclass(slots=True, frozen=True)
class Route[B, Q]:
    handler: Handler[B, Q]
    body_schema: Schema[B]
    query_schema: Schema[Q]
    middleware: tuple[Middleware, ...] = ()

    async def handle(self, request: Request, response: Response) -> None:
        """Run the middleware chain, then validate and invoke the handler.

        Errors are not handled here, they propagate out through each
        middleware's ``await next()`` to the caller.
        """
        await _run_chain((*self.middleware, self._invoke), request, response)

    async def _invoke(
        self,
        request: Request,
        response: Response,
        _next: Callable[[], Awaitable[None]],
    ) -> None:
        body = await self.body_schema.attempt_parse(request.body)
        if isinstance(body, ParseFailure):
            logger.debug("body failed validation: %d issue(s)", len(body.issues))
            msg = "Failed to parse body"
            raise ValidationError(msg, body.issues, "body")

        query = await self.query_schema.attempt_parse(request.query)
        if isinstance(query, ParseFailure):
            logger.debug("query failed validation: %d issue(s)", len(query.issues))
            msg = "Failed to parse query"
            raise ValidationError(msg, query.issues, "query")

        result = self.handler(
            HandlerParams(
                request=request,
                response=response,
                body=body.data,
                query=query.data,
            )
        )
        if inspect.isawaitable(result):
            result = await result

        if result is None:  # handler wrote the response itself (or wrote nothing)
            return
        response.set_status(
            response.status_code if response.status_code is not None else 200
        )
        response.json(result)


async def _run_chain(
    links: Sequence[_Link], request: Request, response: Response
) -> None:
    """Onion-style dispatch over links.

    Each link receives a continuation that runs the rest of the chain and
    resolves once it has settled. A link that never calls its continuation
    short-circuits everything after it. State lives in this call, so
    concurrent requests on the same route never share it.
    """
    called = -1

    async def advance(index: int) -> None:
        nonlocal called
        if index <= called:
            msg = "next() called multiple times in one request"
            raise NextCalledTwiceError(msg)
        called = index
        if index >= len(links):
            return
        await links[index](request, response, partial(advance, index + 1))

    await advance(0)


@dataclass(slots=True, frozen=True)
class RouteBuilder[B, Q]:
    """Chainable route configuration. Every method returns a new builder."""

    body_schema: Schema[B] | None = None
    query_schema: Schema[Q] | None = None
    middleware: tuple[Middleware, ...] = ()

    def body[T](self, schema: Schema[T]) -> RouteBuilder[T, Q]:
        """Replace the body schema."""
        return RouteBuilder(
            body_schema=schema,
            query_schema=self.query_schema,
            middleware=self.middleware,
        )

    def query[T](self, schema: Schema[T]) -> RouteBuilder[B, T]:
        """Replace the query schema."""
        return RouteBuilder(
            body_schema=self.body_schema,
            query_schema=schema,
            middleware=self.middleware,
        )

    def use(self, middleware: Middleware) -> RouteBuilder[B, Q]:
        """Append middleware; registration order is execution order."""
        return RouteBuilder(
            body_schema=self.body_schema,
            query_schema=self.query_schema,
            middleware=(*self.middleware, middleware),
        )

    def build(self, handler: Handler[B, Q]) -> Route[B, Q]:
        return Route(
            handler=handler,
            body_schema=ANY if self.body_schema is None else self.body_schema,
            query_schema=ANY if self.query_schema is None else self.query_schema,
            middleware=self.middleware,
        )


def route() -> RouteBuilder[Any, Any]:
    """Empty builder: accepts any body and query, no middleware."""
    return RouteBuilder()
