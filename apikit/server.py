"""Serve an API: route its endpoints and wrap them in the request pipeline.

Every endpoint's handler is wrapped, innermost first, in its own middleware,
its CORS policy, any server-wide middleware, request logging and request
metrics. Logging and metrics are outermost so they see the status the handler
finally responded with.
"""

from __future__ import annotations

from typing import Any, Awaitable, Callable

import structlog
from prometheus_client import CollectorRegistry
from starlette.applications import Starlette
from starlette.exceptions import HTTPException
from starlette.requests import Request
from starlette.responses import Response
from starlette.routing import Match, Route
from starlette.types import Receive, Scope, Send

from apikit.api.cors import cors_mw
from apikit.api.details import set_details
from apikit.api.endpoint import API, Endpoint
from apikit.api.middleware import Handler, Middleware, wrap_middleware
from apikit.api.problem import error, not_found
from apikit.observability.logging import log_mw
from apikit.observability.metrics import metrics_mw

REQUEST_ID_HEADER = "X-Request-ID"

Option = Callable[["Server"], None]
PanicHandler = Callable[[Request, Exception], Awaitable[Response]]


def with_logger(logger: Any) -> Option:
    def option(s: Server) -> None:
        s.logger = logger

    return option


def with_registry(registry: CollectorRegistry) -> Option:
    """Register the request histogram on ``registry`` instead of a private one."""

    def option(s: Server) -> None:
        s.registry = registry

    return option


def with_middleware(*mw: Middleware) -> Option:
    """Wrap every endpoint in ``mw``, inside request logging and metrics."""

    def option(s: Server) -> None:
        s._middlewares = list(mw)

    return option


def with_not_found_handler(handler: Handler) -> Option:
    def option(s: Server) -> None:
        s._not_found = handler

    return option


def with_method_not_allowed_handler(handler: Handler) -> Option:
    def option(s: Server) -> None:
        s._method_not_allowed = handler

    return option


def with_options_handler(handler: Handler) -> Option:
    """Answer OPTIONS requests for known paths that have no OPTIONS route."""

    def option(s: Server) -> None:
        s._options = handler

    return option


def with_panic_handler(handler: PanicHandler) -> Option:
    def option(s: Server) -> None:
        s._panic = handler

    return option


def with_redirect_trailing_slash(enabled: bool) -> Option:
    def option(s: Server) -> None:
        s._redirect_slashes = enabled

    return option


class Server:
    """ASGI application serving the endpoints of an API.

    All methods declared for a path share one route, so a request with an
    unregistered method is answered 405 with every registered method in
    ``Allow``. HEAD is only served where an endpoint declares it.
    """

    def __init__(self, api: API, *options: Option) -> None:
        self.logger: Any = structlog.get_logger("apikit.access")
        self.registry = CollectorRegistry()
        self._middlewares: list[Middleware] = []
        self._not_found: Handler | None = None
        self._method_not_allowed: Handler | None = None
        self._options: Handler | None = None
        self._panic: PanicHandler | None = None
        self._redirect_slashes = True

        for o in options:
            o(self)

        endpoints = list(api.endpoints())
        self._metrics_mw = metrics_mw(endpoints, self.registry)
        self._log_mw = log_mw(self.logger)

        self._registered: list[tuple[str, str]] = []
        self._handlers: dict[str, dict[str, Handler]] = {}
        for endpoint in endpoints:
            self._handle(endpoint)

        self._routes = [
            Route(path, self._dispatch(path, handlers), methods=list(handlers))
            for path, handlers in self._handlers.items()
        ]
        self._app = Starlette(
            routes=self._routes,
            exception_handlers={
                404: self._handle_not_found,
                405: self._handle_method_not_allowed,
                Exception: self._handle_panic,
            },
        )
        self._app.router.redirect_slashes = self._redirect_slashes

    def _handle(self, endpoint: Endpoint) -> None:
        # Endpoint middleware first, so it sits closest to the handler.
        handler = wrap_middleware(endpoint.middlewares, endpoint.handler)
        if endpoint.cors is not None:
            handler = cors_mw(endpoint.cors)(handler)
        handler = wrap_middleware(self._middlewares, handler)

        outer: list[Middleware] = []
        if not endpoint.suppress_metrics:
            outer.append(self._metrics_mw)
        if not endpoint.suppress_logs:
            outer.append(self._log_mw)
        handler = wrap_middleware(outer, handler)

        handlers = self._handlers.setdefault(endpoint.path, {})
        for method in endpoint.route_methods():
            if method in handlers:
                self.logger.warning("duplicate_route", method=method, path=endpoint.path)
                continue
            self._registered.append((method, endpoint.path))
            handlers[method] = handler

    def _dispatch(self, path: str, handlers: dict[str, Handler]) -> Handler:
        async def dispatch(request: Request) -> Response:
            handler = handlers.get(request.method)
            if handler is None:
                # Starlette routes HEAD to every GET route.
                raise HTTPException(405, headers={"Allow": self._allow(path)})

            details = set_details(request, request.method, path, request.path_params)
            with structlog.contextvars.bound_contextvars(request_id=details.request_id):
                try:
                    response = await handler(request)
                except HTTPException:
                    raise
                except Exception as exc:
                    response = await self._recover(request, exc)
            response.headers[REQUEST_ID_HEADER] = details.request_id
            return response

        return dispatch

    def _allow(self, path: str) -> str:
        return ", ".join(self._handlers.get(path, ()))

    def _allowed_for(self, request: Request) -> str | None:
        for route in self._routes:
            match, _ = route.matches(request.scope)
            if match != Match.NONE:
                return self._allow(route.path)
        return None

    async def _handle_not_found(self, request: Request, exc: Exception) -> Response:
        if self._not_found is not None:
            return await self._not_found(request)
        return not_found(request)

    async def _handle_method_not_allowed(self, request: Request, exc: Exception) -> Response:
        if request.method == "OPTIONS" and self._options is not None:
            return await self._options(request)
        if self._method_not_allowed is not None:
            return await self._method_not_allowed(request)

        response = error(request, "Method Not Allowed", 405)
        allow = self._allowed_for(request)
        if allow is None:
            allow = (getattr(exc, "headers", None) or {}).get("Allow")
        if allow:
            response.headers["Allow"] = allow
        return response

    async def _recover(self, request: Request, exc: Exception) -> Response:
        if self._panic is not None:
            return await self._panic(request, exc)

        self.logger.exception("unhandled_error", method=request.method, path=request.url.path)
        return error(request, "Internal Server Error", 500)

    async def _handle_panic(self, request: Request, exc: Exception) -> Response:
        # Only reached for errors outside a dispatched endpoint, e.g. in a
        # custom not-found handler. Starlette re-raises after responding.
        return await self._recover(request, exc)

    def routes(self) -> list[tuple[str, str]]:
        """The (method, path) pairs registered with the router."""

        return list(self._registered)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        await self._app(scope, receive, send)
