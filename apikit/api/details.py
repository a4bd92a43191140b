from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from time import perf_counter
from typing import Any, Mapping

from starlette.requests import Request

# Scope key under which the per-request Details travel alongside the request.
KEY_DETAILS = "apikit.details"


@dataclass
class Details:
    """State for a single request, shared by every middleware in its chain.

    Created by the server when a route is dispatched. Only the response
    helpers (respond, problem, redirect) write ``status_code``; middleware read
    it once the inner handler has returned.
    """

    method: str
    request_path: str
    params: dict[str, Any] = field(default_factory=dict)
    request_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    now: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    status_code: int | None = None
    _started: float = field(default_factory=perf_counter, repr=False, compare=False)

    def set_status(self, code: int) -> None:
        self.status_code = int(code)

    def elapsed(self) -> float:
        """Seconds since the request was dispatched."""

        return perf_counter() - self._started


def set_details(
    request: Request,
    method: str,
    path: str,
    params: Mapping[str, Any] | None = None,
) -> Details:
    """Attach a new Details record to ``request`` and return it.

    A request that already carries Details keeps its record.
    """

    existing = get_details(request)
    if existing is not None:
        return existing

    details = Details(method=method, request_path=path, params=dict(params or {}))
    request.scope[KEY_DETAILS] = details
    return details


def get_details(request: Request) -> Details | None:
    details = request.scope.get(KEY_DETAILS)
    if not isinstance(details, Details):
        return None
    return details


def url_param(request: Request, name: str) -> str:
    """Return the named path parameter, or an empty string."""

    details = get_details(request)
    if details is None:
        return ""
    value = details.params.get(name)
    return "" if value is None else str(value)
