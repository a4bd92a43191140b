from __future__ import annotations

from prometheus_client import CollectorRegistry
from starlette.requests import Request
from starlette.responses import Response

from apikit.api import (
    CorsPolicy,
    DecodeError,
    Endpoint,
    decode,
    error,
    problem,
    redirect,
    respond,
    url_param,
    with_fields,
    with_type,
)
from apikit.config import Settings, get_settings
from apikit.models.schemas import GreetingRequest, GreetingResponse, StatusResponse
from apikit.observability.metrics import metrics_handler
from apikit.server import Server, with_redirect_trailing_slash, with_registry


class StatusAPI:
    """Small example service: a status check, greetings and a metrics scrape."""

    def __init__(self, settings: Settings, registry: CollectorRegistry) -> None:
        self.settings = settings
        self.registry = registry

    def endpoints(self) -> list[Endpoint]:
        endpoints = [
            Endpoint("GET", "/status", self.status, suppress_logs=True),
            Endpoint("GET", "/old-status", self.old_status),
            Endpoint("GET", "/greetings/{name}", self.get_greeting, cors=CorsPolicy.default()),
            Endpoint("POST", "/greetings", self.create_greeting),
        ]
        if self.settings.enable_metrics_endpoint:
            endpoints.append(
                Endpoint(
                    "GET",
                    self.settings.metrics_path,
                    metrics_handler(self.registry),
                    suppress_logs=True,
                    suppress_metrics=True,
                )
            )
        return endpoints

    async def status(self, request: Request) -> Response:
        return respond(request, 200, StatusResponse())

    async def old_status(self, request: Request) -> Response:
        return redirect(request, "/status", 301)

    async def get_greeting(self, request: Request) -> Response:
        name = url_param(request, "name")
        return respond(request, 200, GreetingResponse(message=f"Hello, {name}!", name=name))

    async def create_greeting(self, request: Request) -> Response:
        try:
            payload = await decode(request, GreetingRequest)
        except DecodeError as exc:
            return error(request, str(exc), 400)

        name = payload.name.strip()
        if not name:
            return problem(
                request,
                "Invalid greeting",
                "A name is required.",
                422,
                with_type("/problems/invalid-greeting"),
                with_fields({"field": "name"}),
            )

        message = f"{payload.greeting}, {name}!"
        return respond(request, 201, GreetingResponse(message=message, name=name))


def create_app(settings: Settings | None = None) -> Server:
    settings = settings or get_settings()
    registry = CollectorRegistry()
    return Server(
        StatusAPI(settings, registry),
        with_registry(registry),
        with_redirect_trailing_slash(settings.redirect_trailing_slash),
    )


app = create_app()
