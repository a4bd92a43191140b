"""Logging and metrics for the request pipeline.

structlog renders every record (ours and stdlib ones) as one JSON line on
stdout. The request id bound by the server shows up on every line logged while
a request is handled.
"""

from __future__ import annotations

import logging as _stdlib_logging
import sys
from typing import Any

import structlog


_CONFIGURED = False

# log_mw already writes one "request" line per request.
_UVICORN_LEVELS = {"uvicorn": None, "uvicorn.error": None, "uvicorn.access": _stdlib_logging.WARNING}

_SHARED_PROCESSORS: list[Any] = [
    structlog.contextvars.merge_contextvars,
    structlog.stdlib.add_logger_name,
    structlog.processors.add_log_level,
    structlog.processors.TimeStamper(fmt="iso", utc=True),
    structlog.processors.StackInfoRenderer(),
    structlog.processors.format_exc_info,
]


def _json_handler() -> _stdlib_logging.Handler:
    handler = _stdlib_logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=structlog.processors.JSONRenderer(),
            foreign_pre_chain=_SHARED_PROCESSORS,
        )
    )
    return handler


def _route_uvicorn(handler: _stdlib_logging.Handler, level: int) -> None:
    for name, override in _UVICORN_LEVELS.items():
        logger = _stdlib_logging.getLogger(name)
        logger.handlers = [handler]
        logger.propagate = False
        logger.setLevel(override if override is not None else level)


def configure_logging(level: int = _stdlib_logging.INFO) -> None:
    """Send structlog and stdlib records, uvicorn's included, to stdout as JSON.

    Only the first call has an effect. ``level`` is a stdlib level number, see
    ``Settings.log_level_number``.
    """

    global _CONFIGURED
    if _CONFIGURED:
        return

    structlog.configure(
        processors=[*_SHARED_PROCESSORS, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = _json_handler()
    root = _stdlib_logging.getLogger()
    root.handlers = [handler]
    root.setLevel(level)
    _route_uvicorn(handler, level)

    _CONFIGURED = True
