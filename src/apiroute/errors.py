"""Exceptions raised by routes and routers."""

from typing import Literal

from .schema import Issue


class RouteError(Exception):
    """Base class for errors raised by apiroute."""


class ValidationError(RouteError):
    """Request body or query failed schema parsing.

    Raised before the handler runs, so handlers never see invalid data. The
    router's default error handler answers it with a 400.
    """

    def __init__(
        self,
        message: str,
        issues: tuple[Issue, ...],
        source: Literal["body", "query"],
    ) -> None:
        super().__init__(message)
        self.message = message
        self.issues = issues
        self.source = source


class ConfigurationError(RouteError):
    """Router or middleware chain was configured incorrectly."""


class UnsupportedMethodError(ConfigurationError):
    pass


class NextCalledTwiceError(ConfigurationError):
    pass
