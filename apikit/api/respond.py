from __future__ import annotations

import json
from typing import Any, Mapping, TypeVar, overload

import structlog
from pydantic import BaseModel, ValidationError
from starlette.requests import Request
from starlette.responses import RedirectResponse, Response

from apikit.api.details import get_details

JSON_MEDIA_TYPE = "application/json"

# Sent when a response body can't be encoded.
FALLBACK_BODY = b'{"msg":"Internal Server Error"}'

M = TypeVar("M", bound=BaseModel)

logger = structlog.get_logger("apikit.respond")


class DecodeError(ValueError):
    """The request body could not be decoded."""


def _encode(data: Any) -> bytes:
    if isinstance(data, BaseModel):
        data = data.model_dump(mode="json")
    return json.dumps(
        data,
        ensure_ascii=False,
        allow_nan=False,
        indent=None,
        separators=(",", ":"),
    ).encode("utf-8")


def respond_raw(
    request: Request,
    status: int,
    body: bytes = b"",
    media_type: str | None = None,
    headers: Mapping[str, str] | None = None,
) -> Response:
    """Build a response from an already encoded body.

    The status is recorded on the request's Details before the response
    exists, so the middleware unwinding after the handler see it.
    """

    details = get_details(request)
    if details is not None:
        details.set_status(status)

    return Response(content=body, status_code=status, media_type=media_type, headers=dict(headers or {}))


def respond(
    request: Request,
    status: int,
    data: Any = None,
    *,
    media_type: str | None = None,
    headers: Mapping[str, str] | None = None,
) -> Response:
    """Respond with ``data`` encoded as JSON.

    When ``data`` can't be encoded the response becomes a 500 with a fixed
    body instead.
    """

    body = b""
    if data is not None:
        media_type = media_type or JSON_MEDIA_TYPE
        try:
            body = _encode(data)
        except (TypeError, ValueError) as exc:
            logger.warning("response_encode_failed", status=status, error=str(exc))
            status = 500
            body = FALLBACK_BODY
            media_type = JSON_MEDIA_TYPE

    return respond_raw(request, status, body, media_type, headers)


def redirect(request: Request, url: str, status: int = 302) -> RedirectResponse:
    """Redirect to ``url``; ``status`` should be one of the 3xx codes."""

    details = get_details(request)
    if details is not None:
        details.set_status(status)
    return RedirectResponse(url=url, status_code=status)


@overload
async def decode(request: Request, model: type[M]) -> M: ...


@overload
async def decode(request: Request, model: None = None) -> Any: ...


async def decode(request: Request, model: type[M] | None = None) -> Any:
    """Decode the JSON request body, into ``model`` when one is given.

    Unknown keys are ignored and missing keys take the model's defaults.
    """

    raw = await request.body()
    try:
        payload = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise DecodeError(f"Malformed JSON body: {exc}") from exc

    if model is None:
        return payload

    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        raise DecodeError(f"Body does not match {model.__name__}: {exc.error_count()} error(s)") from exc
