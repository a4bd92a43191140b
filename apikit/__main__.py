from __future__ import annotations

import argparse
import logging

import uvicorn

from apikit.config import LOG_LEVELS, get_settings
from apikit.main import create_app
from apikit.observability import configure_logging


def main() -> None:
    settings = get_settings()

    parser = argparse.ArgumentParser(description="Serve the example status API")
    parser.add_argument("--host", default=settings.host, help="Interface to bind")
    parser.add_argument("--port", type=int, default=settings.port, help="Port to listen on")
    parser.add_argument(
        "--log-level", type=str.upper, choices=LOG_LEVELS, default=settings.log_level, help="Log level"
    )
    args = parser.parse_args()

    configure_logging(logging.getLevelName(args.log_level))

    uvicorn.run(
        create_app(settings),
        host=args.host,
        port=args.port,
        log_config=None,
        access_log=False,
    )


if __name__ == "__main__":
    main()
