"""Access log middleware.

Logs one line per request once everything downstream has settled:

    GET 200 3.1ms
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from apiroute.types import Middleware, Next, Request, Response

_logger = logging.getLogger(__name__)


def access_log(
    *,
    logger: logging.Logger | None = None,
    level: int = logging.INFO,
) -> Middleware:
    """Create access log middleware.

    Args:
        logger: Logger to write to. Defaults to ``apiroute.middleware.access_log``.
        level: Log level for every line.

    Example:
        route().use(access_log()).build(handler)
    """
    log = logger or _logger

    async def middleware(request: Request, response: Response, next: Next) -> None:
        start = time.perf_counter()
        try:
            await next()
        except Exception:
            elapsed_ms = (time.perf_counter() - start) * 1000
            log.log(level, "%s - %.1fms", request.method, elapsed_ms)
            raise
        elapsed_ms = (time.perf_counter() - start) * 1000
        log.log(
            level,
            "%s %s %.1fms",
            request.method,
            response.status_code if response.status_code is not None else "-",
            elapsed_ms,
        )

    return middleware
