"""Problem responses as defined by RFC 7807 (https://tools.ietf.org/html/rfc7807).

Use these helpers for error responses:

    return problem(request, "Out of stock", "No more teapots.", 409, with_instance("/orders/12"))
    return not_found(request)
    return error(request, "Invalid page size", 400, with_fields({"max_page_size": 100}))
"""

from __future__ import annotations

from http import HTTPStatus
from typing import Any, Callable, Mapping

from starlette.requests import Request
from starlette.responses import Response

from apikit.api.respond import respond

PROBLEM_MEDIA_TYPE = "application/problem+json"

# RFC 7807 default for "type" when the problem has no further semantics than the status code.
DEFAULT_TYPE = "about:blank"


class Problem:
    """The fields of a problem response, in the order they are serialized."""

    def __init__(self, title: str, detail: str, status: int) -> None:
        self.fields: dict[str, Any] = {
            "type": DEFAULT_TYPE,
            "title": title,
            "detail": detail,
            "status": status,
        }

    @property
    def status(self) -> int:
        return int(self.fields["status"])

    def apply(self, *extras: ProblemExtra) -> Problem:
        for extra in extras:
            extra(self)
        return self

    def to_dict(self) -> dict[str, Any]:
        return dict(self.fields)


ProblemExtra = Callable[[Problem], None]


def _merge(existing: Mapping[str, Any], incoming: Mapping[str, Any]) -> dict[str, Any]:
    # Existing values win; nested mappings are merged with the same rule.
    merged = dict(existing)
    for key, value in incoming.items():
        if key not in merged:
            merged[key] = value
        elif isinstance(merged[key], Mapping) and isinstance(value, Mapping):
            merged[key] = _merge(merged[key], value)
    return merged


def with_type(type_: str) -> ProblemExtra:
    def extra(p: Problem) -> None:
        p.fields["type"] = type_

    return extra


def with_detail(detail: str) -> ProblemExtra:
    def extra(p: Problem) -> None:
        p.fields["detail"] = detail

    return extra


def with_instance(instance: str) -> ProblemExtra:
    def extra(p: Problem) -> None:
        p.fields["instance"] = instance

    return extra


def with_fields(fields: Mapping[str, Any]) -> ProblemExtra:
    """Add extension members to the problem.

    Keys already present on the problem are kept; only missing keys are filled
    from ``fields``.
    """

    def extra(p: Problem) -> None:
        p.fields = _merge(p.fields, fields)

    return extra


def problem(request: Request, title: str, detail: str, status: int, *extras: ProblemExtra) -> Response:
    p = Problem(title, detail, status).apply(*extras)
    return respond(request, status, p.to_dict(), media_type=PROBLEM_MEDIA_TYPE)


def status_text(status: int) -> str:
    try:
        return HTTPStatus(status).phrase
    except ValueError:
        return ""


def not_found(request: Request, *extras: ProblemExtra) -> Response:
    title = status_text(404)
    return problem(request, title, title, 404, *extras)


def error(request: Request, message: str, status: int, *extras: ProblemExtra) -> Response:
    return problem(request, status_text(status), message, status, *extras)
