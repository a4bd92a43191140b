import json

import pytest
from pydantic import BaseModel

from apikit.api.details import get_details
from apikit.api.respond import DecodeError, decode, redirect, respond


class Fruit(BaseModel):
    name: str = ""
    ripe: bool = False


def test_respond_encodes_json(make_request) -> None:
    request = make_request("GET", "/status")
    response = respond(request, 200, {"status": 200})

    assert response.status_code == 200
    assert response.body == b'{"status":200}'
    assert response.headers["content-type"] == "application/json"
    assert get_details(request).status_code == 200


def test_respond_encodes_pydantic_models(make_request) -> None:
    request = make_request("GET", "/fruits/grapes")
    response = respond(request, 200, Fruit(name="grapes", ripe=True))

    assert json.loads(response.body) == {"name": "grapes", "ripe": True}


def test_respond_unserializable_falls_back_to_500(make_request) -> None:
    request = make_request("GET", "/status")
    response = respond(request, 200, {"value": object()})

    assert response.status_code == 500
    assert response.body == b'{"msg":"Internal Server Error"}'
    assert response.headers["content-type"] == "application/json"
    assert get_details(request).status_code == 500


def test_respond_without_data_has_no_body(make_request) -> None:
    request = make_request("DELETE", "/fruits/grapes")
    response = respond(request, 204)

    assert response.status_code == 204
    assert response.body == b""
    assert "content-type" not in response.headers
    assert get_details(request).status_code == 204


def test_respond_keeps_given_media_type(make_request) -> None:
    request = make_request("GET", "/status")
    response = respond(request, 200, {"ok": True}, media_type="application/vnd.fruit+json")

    assert response.headers["content-type"] == "application/vnd.fruit+json"


def test_respond_without_details(make_request) -> None:
    request = make_request("GET", "/status", details=False)
    response = respond(request, 202, {"status": "ok"})

    assert response.status_code == 202
    assert get_details(request) is None


def test_redirect_records_status(make_request) -> None:
    request = make_request("GET", "/old")
    response = redirect(request, "/new", 301)

    assert response.status_code == 301
    assert response.headers["location"] == "/new"
    assert get_details(request).status_code == 301


async def test_decode_into_model_ignores_unknown_and_missing_fields(make_request) -> None:
    request = make_request("POST", "/fruits", body=b'{"name": "kiwi", "colour": "green"}')
    fruit = await decode(request, Fruit)

    assert fruit == Fruit(name="kiwi", ripe=False)


async def test_decode_without_model_returns_payload(make_request) -> None:
    request = make_request("POST", "/fruits", body=b'[1, 2, 3]')
    assert await decode(request) == [1, 2, 3]


async def test_decode_malformed_json_raises(make_request) -> None:
    request = make_request("POST", "/fruits", body=b'{"name": ')
    with pytest.raises(DecodeError) as exc_info:
        await decode(request, Fruit)
    assert isinstance(exc_info.value.__cause__, json.JSONDecodeError)


async def test_decode_mismatched_payload_raises(make_request) -> None:
    request = make_request("POST", "/fruits", body=b'{"ripe": "not-a-bool"}')
    with pytest.raises(DecodeError):
        await decode(request, Fruit)
