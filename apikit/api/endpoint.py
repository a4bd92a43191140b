from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, Sequence

from apikit.api.middleware import Handler, Middleware

if TYPE_CHECKING:
    from apikit.api.cors import CorsPolicy


@dataclass(frozen=True)
class Endpoint:
    """One routable operation of an API.

    ``method`` may register several verbs at once, either '+'-joined
    (``"GET+POST"``) or as a sequence. ``path`` uses the router's pattern
    syntax, e.g. ``/fruits/{fruit}``.
    """

    method: str | Sequence[str]
    path: str
    handler: Handler
    middlewares: Sequence[Middleware] = ()
    suppress_logs: bool = False
    suppress_metrics: bool = False
    cors: CorsPolicy | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "middlewares", tuple(self.middlewares))

    def methods(self) -> list[str]:
        raw = self.method.split("+") if isinstance(self.method, str) else list(self.method)
        methods: list[str] = []
        for m in raw:
            verb = m.strip().upper()
            if verb and verb not in methods:
                methods.append(verb)
        return methods

    def route_methods(self) -> list[str]:
        """Methods the server registers, including OPTIONS for CORS endpoints."""

        methods = self.methods()
        if self.cors is not None and "OPTIONS" not in methods:
            methods.append("OPTIONS")
        return methods


class API(Protocol):
    def endpoints(self) -> Sequence[Endpoint]:
        ...
