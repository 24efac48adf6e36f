"""Schema adapter contract.

Any validation library can be plugged into a route by wrapping it in an object
with a single async ``attempt_parse`` method. Validation failures are returned,
never raised.
"""

from dataclasses import dataclass
from typing import Protocol, TypedDict


class Issue(TypedDict):
    """A single validation failure, passed through to clients verbatim."""

    path: list[str | int]
    message: str
    code: str


@dataclass(slots=True, frozen=True)
class ParseSuccess[T]:
    data: T


@dataclass(slots=True, frozen=True)
class ParseFailure:
    issues: tuple[Issue, ...]


type ParseResult[T] = ParseSuccess[T] | ParseFailure


class Schema[T](Protocol):
    async def attempt_parse(self, value: object) -> ParseResult[T]: ...


class AnySchema:
    """Accepts any value and returns it unchanged."""

    __slots__ = ()

    async def attempt_parse(self, value: object) -> ParseResult[object]:
        return ParseSuccess(value)

    def __repr__(self) -> str:
        return "ANY"


ANY = AnySchema()
