"""Deadline middleware.

Races the downstream chain against a deadline. On expiry the downstream work
is cancelled, the timeout response is written (unless the handler already
sent one) and the chain goes no further.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from apiroute.types import Middleware, Next, Request, Response

logger = logging.getLogger(__name__)


def timeout(
    seconds: float,
    *,
    status: int = 504,
    body: str = "Gateway Timeout",
) -> Middleware:
    """Create deadline middleware.

    Args:
        seconds: Time allowed for everything registered after this middleware,
            handler included.
        status: Status written when the deadline passes.
        body: Plain text body written when the deadline passes.
    """
    if seconds <= 0:
        msg = f"seconds must be > 0, got {seconds}"
        raise ValueError(msg)

    async def middleware(request: Request, response: Response, next: Next) -> None:
        deadline = asyncio.timeout(seconds)
        try:
            async with deadline:
                await next()
        except TimeoutError:
            if not deadline.expired():  # raised downstream, not ours
                raise
            logger.warning("%s timed out after %.3fs", request.method, seconds)
            if response.sent:
                return
            response.set_status(status)
            response.send(body)

    return middleware
