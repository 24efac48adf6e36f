"""OpenTelemetry tracing and metrics middleware.

Creates an HTTP server span and request metrics for each request that reaches
the route.

Install with: uv add "apiroute[otel]"
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from apiroute.types import Middleware, Next, Request, Response

try:
    from opentelemetry import metrics, trace
    from opentelemetry.propagate import extract
    from opentelemetry.trace import (
        SpanKind,
        StatusCode,
        TracerProvider,
    )
except ImportError as e:
    msg = (
        "OpenTelemetry middleware requires the 'otel' extra. "
        "Install with: uv add 'apiroute[otel]'"
    )
    raise ImportError(msg) from e


_DURATION_BUCKETS = (
    0.001,
    0.005,
    0.01,
    0.025,
    0.05,
    0.075,
    0.1,
    0.25,
    0.5,
    0.75,
    1.0,
    2.5,
    5.0,
    7.5,
    10.0,
)


def otel(
    *,
    tracer_provider: TracerProvider | None = None,
    meter_provider: metrics.MeterProvider | None = None,
) -> Middleware:
    """Create OpenTelemetry tracing and metrics middleware.

    The span wraps everything registered after this middleware, handler
    included. If the request object has ``headers``, trace context (e.g.
    ``traceparent``) is extracted from them. Only depends on
    ``opentelemetry-api``; users bring their own SDK and exporters.

    Metrics emitted:
        - ``http.server.request.duration`` (histogram, seconds)
        - ``http.server.active_requests`` (up-down counter)

    Args:
        tracer_provider: Optional TracerProvider. If None, uses the global provider.
        meter_provider: Optional MeterProvider. If None, uses the global provider.

    Example:
        route().use(otel()).build(handler)
    """
    tracer = trace.get_tracer(
        "apiroute",
        tracer_provider=tracer_provider,
    )
    meter = metrics.get_meter(
        "apiroute",
        meter_provider=meter_provider,
    )
    duration_histogram = meter.create_histogram(
        "http.server.request.duration",
        unit="s",
        description="Duration of HTTP server requests.",
        explicit_bucket_boundaries_advisory=_DURATION_BUCKETS,
    )
    active_requests_counter = meter.create_up_down_counter(
        "http.server.active_requests",
        unit="{request}",
        description="Number of active HTTP server requests.",
    )

    async def middleware(request: Request, response: Response, next: Next) -> None:
        headers = getattr(request, "headers", None)
        ctx = extract(headers) if headers is not None else None

        method = request.method
        attributes: dict[str, str | int] = {"http.request.method": method}
        path = getattr(request, "path", None)
        if path:
            attributes["url.path"] = path
        if headers is not None:
            user_agent = headers.get("user-agent")
            if user_agent is not None:
                attributes["user_agent.original"] = user_agent

        active_attrs: dict[str, str | int] = {"http.request.method": method}
        active_requests_counter.add(1, active_attrs)
        start = time.perf_counter()

        with tracer.start_as_current_span(
            method,
            context=ctx,
            kind=SpanKind.SERVER,
            attributes=attributes,
            record_exception=True,
            set_status_on_exception=True,
        ) as span:
            try:
                await next()
            finally:
                duration = time.perf_counter() - start
                active_requests_counter.add(-1, active_attrs)
                duration_attrs = dict(active_attrs)
                status = response.status_code
                if status is not None:
                    span.set_attribute("http.response.status_code", status)
                    duration_attrs["http.response.status_code"] = status
                    if status >= 500:
                        span.set_status(StatusCode.ERROR)
                duration_histogram.record(duration, duration_attrs)

    return middleware
