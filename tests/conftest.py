from __future__ import annotations

from collections.abc import AsyncIterator, Callable

import pytest
from httpx import ASGITransport, AsyncClient
from starlette.requests import Request

from apikit.api.details import set_details
from apikit.config import Settings, get_settings
from apikit.main import create_app


def _receive_body(body: bytes):
    sent = False

    async def receive() -> dict:
        nonlocal sent
        if sent:
            return {"type": "http.disconnect"}
        sent = True
        return {"type": "http.request", "body": body, "more_body": False}

    return receive


def build_request(
    method: str = "GET",
    path: str = "/",
    *,
    route: str | None = None,
    params: dict | None = None,
    headers: dict[str, str] | None = None,
    body: bytes = b"",
    details: bool = True,
) -> Request:
    scope = {
        "type": "http",
        "http_version": "1.1",
        "method": method,
        "scheme": "http",
        "server": ("test", 80),
        "path": path,
        "raw_path": path.encode(),
        "root_path": "",
        "query_string": b"",
        "headers": [(k.lower().encode("latin-1"), v.encode("latin-1")) for k, v in (headers or {}).items()],
    }
    request = Request(scope, _receive_body(body))
    if details:
        set_details(request, method, route or path, params or {})
    return request


@pytest.fixture
def make_request() -> Callable[..., Request]:
    return build_request


@pytest.fixture(autouse=True)
def test_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("HOST", "PORT", "LOG_LEVEL", "METRICS_PATH", "ENABLE_METRICS_ENDPOINT", "REDIRECT_TRAILING_SLASH"):
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()

    yield

    get_settings.cache_clear()


@pytest.fixture
def client_for() -> Callable[..., AsyncClient]:
    def factory(app) -> AsyncClient:
        return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")

    return factory


@pytest.fixture
async def api_client() -> AsyncIterator[AsyncClient]:
    app = create_app(Settings())
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
