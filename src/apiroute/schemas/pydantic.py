"""Pydantic schema adapter.

Wraps anything pydantic's TypeAdapter accepts (models, TypedDicts,
dataclasses, plain types) so it can be used as a body or query schema:

    route().body(PydanticSchema(NewUser)).build(create_user)

Install with: uv add "apiroute[pydantic]"
"""

from __future__ import annotations

from typing import Any

try:
    from pydantic import TypeAdapter
    from pydantic import ValidationError as PydanticValidationError
    from pydantic_core import ErrorDetails
except ImportError as e:
    msg = (
        "Pydantic schemas require the 'pydantic' extra. "
        "Install with: uv add 'apiroute[pydantic]'"
    )
    raise ImportError(msg) from e

from apiroute.schema import Issue, ParseFailure, ParseResult, ParseSuccess


class PydanticSchema[T]:
    __slots__ = ("_adapter", "_type")

    def __init__(self, type_: type[T] | Any) -> None:
        self._type = type_
        self._adapter: TypeAdapter[T] = TypeAdapter(type_)

    async def attempt_parse(self, value: object) -> ParseResult[T]:
        try:
            data = self._adapter.validate_python(value)
        except PydanticValidationError as e:
            return ParseFailure(issues=tuple(_issue(err) for err in e.errors()))
        return ParseSuccess(data)

    def __repr__(self) -> str:
        return f"PydanticSchema({getattr(self._type, '__qualname__', self._type)!r})"


def _issue(error: ErrorDetails) -> Issue:
    return Issue(
        path=list(error["loc"]),
        message=error["msg"],
        code=error["type"],
    )
