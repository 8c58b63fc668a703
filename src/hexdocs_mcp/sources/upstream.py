"""Outbound fetches against the upstream documentation host.

A thin httpx wrapper: non-success statuses are returned to the caller,
which decides whether a miss is fatal. Only transport failures (no
response at all) raise, as :class:`UpstreamFetchFailed` with no status.
"""

import httpx
from loguru import logger

from hexdocs_mcp.config import settings
from hexdocs_mcp.errors import UpstreamFetchFailed


def open_client() -> httpx.AsyncClient:
    """Create the client used for one request's upstream retrievals."""
    return httpx.AsyncClient(
        timeout=settings.http_timeout,
        follow_redirects=True,
        headers={"User-Agent": settings.user_agent},
    )


async def fetch_upstream(client: httpx.AsyncClient, url: str) -> httpx.Response:
    """GET *url*; the response is returned whatever its status."""
    try:
        resp = await client.get(url)
    except httpx.HTTPError as e:
        logger.warning(f"Upstream request to {url} failed: {e}")
        raise UpstreamFetchFailed(
            f"Upstream request failed: {e}", attempted=url, status=None
        ) from e
    logger.debug(f"GET {url} -> {resp.status_code}")
    return resp


async def fetch_text(client: httpx.AsyncClient, url: str) -> tuple[httpx.Response, str]:
    """GET *url* and return the response together with its decoded body."""
    resp = await fetch_upstream(client, url)
    return resp, resp.text
