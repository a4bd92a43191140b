from __future__ import annotations

from typing import Any

import structlog
from starlette.requests import Request
from starlette.responses import Response

from apikit.api.details import get_details
from apikit.api.middleware import Handler, Middleware


def log_mw(logger: Any | None = None) -> Middleware:
    """Log one "request" line per request, once the wrapped handler is done.

    Requests without Details (they never went through the server) are not
    logged.
    """

    log = logger if logger is not None else structlog.get_logger("apikit.access")

    def middleware(next_handler: Handler) -> Handler:
        async def handler(request: Request) -> Response:
            try:
                return await next_handler(request)
            finally:
                details = get_details(request)
                if details is not None:
                    log.info(
                        "request",
                        request_id=details.request_id,
                        method=details.method,
                        path=details.request_path,
                        status=details.status_code,
                        duration_ms=round(details.elapsed() * 1000.0, 2),
                    )

        return handler

    return middleware
