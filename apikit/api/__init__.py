"""Building blocks for JSON HTTP APIs.

An API declares its endpoints; ``apikit.server.Server`` routes them and wraps
each handler in logging, metrics and CORS middleware. Handlers answer with
``respond``, ``problem`` (RFC 7807) or ``redirect`` so the middleware can see
the status they responded with:

    class FruitAPI:
        def endpoints(self) -> list[Endpoint]:
            return [Endpoint("GET", "/fruits/{fruit}", self.get_fruit)]

        async def get_fruit(self, request: Request) -> Response:
            fruit = url_param(request, "fruit")
            if fruit not in FRUITS:
                return not_found(request)
            return respond(request, 200, FRUITS[fruit])

    server = Server(FruitAPI())
"""

from apikit.api.cors import CorsPolicy, allow_all_cors_mw, cors_mw, default_cors_mw
from apikit.api.details import Details, get_details, set_details, url_param
from apikit.api.endpoint import API, Endpoint
from apikit.api.middleware import Handler, Middleware, wrap_middleware
from apikit.api.problem import (
    Problem,
    ProblemExtra,
    error,
    not_found,
    problem,
    with_detail,
    with_fields,
    with_instance,
    with_type,
)
from apikit.api.respond import DecodeError, decode, redirect, respond, respond_raw

__all__ = [
    "API",
    "CorsPolicy",
    "DecodeError",
    "Details",
    "Endpoint",
    "Handler",
    "Middleware",
    "Problem",
    "ProblemExtra",
    "allow_all_cors_mw",
    "cors_mw",
    "decode",
    "default_cors_mw",
    "error",
    "get_details",
    "not_found",
    "problem",
    "redirect",
    "respond",
    "respond_raw",
    "set_details",
    "url_param",
    "with_detail",
    "with_fields",
    "with_instance",
    "with_type",
    "wrap_middleware",
]
