from importlib.metadata import version

from .errors import (
    ConfigurationError,
    NextCalledTwiceError,
    RouteError,
    UnsupportedMethodError,
    ValidationError,
)
from .route import HandlerParams, Route, RouteBuilder, route
from .router import Router, create_router, format_routes
from .schema import (
    ANY,
    AnySchema,
    Issue,
    ParseFailure,
    ParseResult,
    ParseSuccess,
    Schema,
)

__all__ = [
    "ANY",
    "AnySchema",
    "ConfigurationError",
    "HandlerParams",
    "Issue",
    "NextCalledTwiceError",
    "ParseFailure",
    "ParseResult",
    "ParseSuccess",
    "Route",
    "RouteBuilder",
    "RouteError",
    "Router",
    "Schema",
    "UnsupportedMethodError",
    "ValidationError",
    "__version__",
    "create_router",
    "format_routes",
    "route",
]

__version__ = version("apiroute")
