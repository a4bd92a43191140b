"""Cross Origin Resource Sharing for individual endpoints.

An endpoint that declares a policy is wrapped by ``cors_mw`` and the server also
registers its path for ``OPTIONS``, so preflight requests reach the same
wrapped handler and are answered there.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from starlette.requests import Request
from starlette.responses import Response

from apikit.api.middleware import Handler, Middleware
from apikit.api.respond import respond

ANY = "*"

PREFLIGHT_VARY = ("Origin", "Access-Control-Request-Method", "Access-Control-Request-Headers")


def _upper(values: Sequence[str]) -> tuple[str, ...]:
    return tuple(v.strip().upper() for v in values)


def _lower(values: Sequence[str]) -> tuple[str, ...]:
    return tuple(v.strip().lower() for v in values)


@dataclass(frozen=True)
class CorsPolicy:
    allowed_origins: tuple[str, ...] = (ANY,)
    allowed_methods: tuple[str, ...] = ("GET", "HEAD", "POST")
    allowed_headers: tuple[str, ...] = ("Origin", "Accept", "Content-Type", "X-Requested-With")
    exposed_headers: tuple[str, ...] = ()
    allow_credentials: bool = False
    max_age: int = 0

    @classmethod
    def default(cls) -> CorsPolicy:
        """Any origin, simple methods (GET, HEAD, POST), no credentials."""

        return cls()

    @classmethod
    def allow_all(cls) -> CorsPolicy:
        """Any origin, any method, any header, credentials allowed."""

        return cls(
            allowed_origins=(ANY,),
            allowed_methods=(ANY,),
            allowed_headers=(ANY,),
            allow_credentials=True,
        )

    def allows_origin(self, origin: str) -> bool:
        return ANY in self.allowed_origins or origin in self.allowed_origins

    def allows_method(self, method: str) -> bool:
        method = method.strip().upper()
        allowed = _upper(self.allowed_methods)
        # OPTIONS is the preflight itself.
        return ANY in allowed or method in allowed or method == "OPTIONS"

    def allows_headers(self, headers: Sequence[str]) -> bool:
        allowed = _lower(self.allowed_headers)
        if ANY in allowed:
            return True
        return all(h in allowed for h in _lower(headers) if h)

    def allow_origin_value(self, origin: str) -> str:
        # With credentials the origin must be echoed, browsers reject "*".
        if ANY in self.allowed_origins and not self.allow_credentials:
            return ANY
        return origin

    def preflight_headers(self, origin: str | None, method: str | None, requested: str | None) -> dict[str, str]:
        """Headers for a preflight, or an empty dict when it isn't allowed."""

        if not origin or not self.allows_origin(origin):
            return {}
        if not method or not self.allows_method(method):
            return {}

        requested_headers = [h for h in (requested or "").split(",") if h.strip()]
        if not self.allows_headers(requested_headers):
            return {}

        headers = {
            "Access-Control-Allow-Origin": self.allow_origin_value(origin),
            "Access-Control-Allow-Methods": method.strip().upper(),
        }
        if requested_headers:
            headers["Access-Control-Allow-Headers"] = ", ".join(h.strip() for h in requested_headers)
        if self.allow_credentials:
            headers["Access-Control-Allow-Credentials"] = "true"
        if self.max_age > 0:
            headers["Access-Control-Max-Age"] = str(self.max_age)
        return headers

    def simple_headers(self, origin: str | None) -> dict[str, str]:
        if not origin or not self.allows_origin(origin):
            return {}

        headers = {"Access-Control-Allow-Origin": self.allow_origin_value(origin)}
        if self.allow_credentials:
            headers["Access-Control-Allow-Credentials"] = "true"
        if self.exposed_headers:
            headers["Access-Control-Expose-Headers"] = ", ".join(self.exposed_headers)
        return headers


def cors_mw(policy: CorsPolicy) -> Middleware:
    def middleware(next_handler: Handler) -> Handler:
        async def handler(request: Request) -> Response:
            origin = request.headers.get("origin")

            if request.method == "OPTIONS":
                headers = policy.preflight_headers(
                    origin,
                    request.headers.get("access-control-request-method"),
                    request.headers.get("access-control-request-headers"),
                )
                headers["Vary"] = ", ".join(PREFLIGHT_VARY)
                return respond(request, 204, headers=headers)

            response = await next_handler(request)
            response.headers.update(policy.simple_headers(origin))
            response.headers.add_vary_header("Origin")
            return response

        return handler

    return middleware


def default_cors_mw() -> Middleware:
    """CORS for any origin with GET and POST.

    The endpoint must also be reachable with OPTIONS; the server does this for
    endpoints that declare a policy.
    """

    return cors_mw(CorsPolicy.default())


def allow_all_cors_mw() -> Middleware:
    return cors_mw(CorsPolicy.allow_all())
