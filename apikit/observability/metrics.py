from __future__ import annotations

from typing import Iterable

from prometheus_client import CONTENT_TYPE_LATEST, REGISTRY, CollectorRegistry, Histogram, generate_latest
from starlette.requests import Request
from starlette.responses import Response

from apikit.api.details import get_details
from apikit.api.endpoint import Endpoint
from apikit.api.middleware import Handler, Middleware
from apikit.api.respond import respond_raw

DEFAULT_METRIC_NAME = "http_request_duration_seconds"

STATUS_CLASSES = ("2XX", "3XX", "4XX", "5XX")


def status_class(code: int) -> str:
    """Group a status code by its hundreds digit, i.e. 404 -> "4XX"."""

    return f"{int(code) // 100}XX"


def metrics_mw(
    endpoints: Iterable[Endpoint],
    registry: CollectorRegistry | None = None,
    *,
    name: str = DEFAULT_METRIC_NAME,
) -> Middleware:
    """Count and time requests with a Prometheus histogram.

    Every (method, path, status class) of every endpoint that doesn't suppress
    metrics is declared up front, so endpoints without traffic expose zeros
    instead of missing timeseries. The histogram's _count series can be used to
    rate requests.
    """

    duration = Histogram(
        name,
        "HTTP Latency distributions",
        labelnames=("method", "path", "status"),
        registry=registry if registry is not None else REGISTRY,
    )

    declared: set[tuple[str, str]] = set()
    for endpoint in endpoints:
        if endpoint.suppress_metrics:
            continue
        for method in endpoint.route_methods():
            if (method, endpoint.path) in declared:
                continue
            declared.add((method, endpoint.path))
            for status in STATUS_CLASSES:
                duration.labels(method, endpoint.path, status)

    def middleware(next_handler: Handler) -> Handler:
        async def handler(request: Request) -> Response:
            try:
                return await next_handler(request)
            finally:
                details = get_details(request)
                if details is not None and details.status_code is not None:
                    duration.labels(
                        details.method,
                        details.request_path,
                        status_class(details.status_code),
                    ).observe(details.elapsed())

        return handler

    return middleware


def metrics_handler(registry: CollectorRegistry | None = None) -> Handler:
    """Expose ``registry`` in the Prometheus text format."""

    source = registry if registry is not None else REGISTRY

    async def handler(request: Request) -> Response:
        return respond_raw(request, 200, generate_latest(source), CONTENT_TYPE_LATEST)

    return handler
