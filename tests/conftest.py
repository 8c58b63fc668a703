"""Pytest configuration and fixtures."""

import httpx
import pytest

from samples import API_REFERENCE_HTML, API_REFERENCE_URL, SIDEBAR_JS, SIDEBAR_URL


class RecordingTransport(httpx.MockTransport):
    """MockTransport serving canned upstream responses and recording requests.

    Routes map a URL to ``(status, body)`` or ``(status, body, headers)``;
    a value that is an exception instance is raised instead. Unknown URLs
    get a 404.
    """

    def __init__(self, routes: dict):
        self.routes = routes
        self.requested: list[str] = []
        super().__init__(self._handle)

    def _handle(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        self.requested.append(url)
        route = self.routes.get(url)
        if route is None:
            return httpx.Response(404, text="Not Found")
        if isinstance(route, Exception):
            raise route
        status, body, *rest = route
        headers = rest[0] if rest else {}
        return httpx.Response(status, text=body, headers=headers)


@pytest.fixture
def make_client():
    """Factory for an AsyncClient backed by a RecordingTransport.

    Example usage::

        async def test_something(make_client):
            client, transport = make_client({url: (200, "body")})
            resp = await client.get(url)
            assert transport.requested == [url]
    """

    def _make(routes: dict) -> tuple[httpx.AsyncClient, RecordingTransport]:
        transport = RecordingTransport(routes)
        return httpx.AsyncClient(transport=transport), transport

    return _make


@pytest.fixture
def index_routes() -> dict:
    """Upstream routes for a complete ecto 3.12.5 package index."""
    return {
        API_REFERENCE_URL: (
            200,
            API_REFERENCE_HTML,
            {"last-modified": "Tue, 01 Oct 2024 10:00:00 GMT"},
        ),
        SIDEBAR_URL: (200, SIDEBAR_JS),
    }
