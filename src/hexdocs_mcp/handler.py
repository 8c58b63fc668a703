"""Request dispatch: wrapper URL in, finished document (or index JSON) out.

Paths mirror the upstream layout, ``/{package}[/{version}]/{page}``:

- ``.../index.json``  -- the PackageIndex as JSON
- ``.../llms.txt``    -- an index-derived replacement for upstream llms.txt
- anything else      -- one page, converted and enriched

Upstream failures on the requested page produce a 502 error document;
failures while building the auxiliary index only degrade the page.
"""

import json
import re
from typing import NamedTuple
from urllib.parse import urljoin, urlsplit

import httpx
from loguru import logger
from pydantic import ValidationError

from hexdocs_mcp.config import (
    HOUR_TTL_SECONDS,
    cache_control_for,
    cache_ttl_for,
    settings,
)
from hexdocs_mcp.enrich import (
    assemble_document,
    build_instruction_header,
    render_task_map_section,
)
from hexdocs_mcp.errors import HexdocsError, UpstreamFetchFailed
from hexdocs_mcp.html_markdown import html_to_markdown
from hexdocs_mcp.links import rewrite_markdown_links
from hexdocs_mcp.models import PackageIndex
from hexdocs_mcp.paths import parse_path_context
from hexdocs_mcp.sidebar import build_package_index
from hexdocs_mcp.sources.upstream import fetch_upstream, open_client

MARKDOWN_CONTENT_TYPE = "text/markdown; charset=utf-8"
JSON_CONTENT_TYPE = "application/json; charset=utf-8"

_MARKDOWN_ATTR_RE = re.compile(
    r"data-markdown-url=[\"']([^\"']+\.md[^\"']*)[\"']", re.IGNORECASE
)
_MARKDOWN_HREF_RE = re.compile(r"href=[\"']([^\"']+\.md[^\"']*)[\"']", re.IGNORECASE)


class WrapperResponse(NamedTuple):
    status: int
    content_type: str
    cache_control: str
    body: str


def _markdown_response(body: str, ttl: int, status: int = 200) -> WrapperResponse:
    return WrapperResponse(status, MARKDOWN_CONTENT_TYPE, cache_control_for(ttl), body)


def _json_response(body: dict, ttl: int, status: int = 200) -> WrapperResponse:
    return WrapperResponse(
        status,
        JSON_CONTENT_TYPE,
        cache_control_for(ttl),
        json.dumps(body, indent=2, ensure_ascii=False),
    )


def _upstream_url(path: str, query: str = "") -> str:
    url = f"{settings.upstream_origin.rstrip('/')}{path}"
    return f"{url}?{query}" if query else url


# ---------------------------------------------------------------------------
# Page retrieval
# ---------------------------------------------------------------------------


def find_markdown_url_from_html(html: str, html_url: str) -> str | None:
    """Markdown counterpart advertised by an HTML page.

    Prefers a candidate named after the page itself; when the page lists
    none, the sibling ``.md`` of an ``.html`` page is assumed.
    """
    path = urlsplit(html_url).path
    expected = None
    if path.endswith(".html"):
        expected = path.rsplit("/", 1)[-1][: -len(".html")] + ".md"

    candidates = [m.group(1) for m in _MARKDOWN_ATTR_RE.finditer(html)]
    candidates += [m.group(1) for m in _MARKDOWN_HREF_RE.finditer(html)]
    if not candidates:
        return urljoin(html_url, expected) if expected else None

    named = [c for c in candidates if expected and expected in c]
    preferred = named[0] if named else candidates[0]
    return urljoin(html_url, preferred)


async def get_markdown_from_path(request_url: str, client: httpx.AsyncClient) -> str:
    """Fetch the upstream page for *request_url* as Markdown.

    Raises:
        UpstreamFetchFailed: neither the page nor its fallback was available.
    """
    parts = urlsplit(request_url)
    upstream_url = _upstream_url(parts.path, parts.query)

    if parts.path.endswith(".md"):
        html_url = _upstream_url(parts.path[: -len(".md")] + ".html")
        resp = await fetch_upstream(client, upstream_url)
        if resp.is_success:
            return resp.text
        logger.info(f"No upstream markdown at {upstream_url}, converting {html_url}")
        html_resp = await fetch_upstream(client, html_url)
        if html_resp.is_success:
            return html_to_markdown(html_resp.text)
        raise UpstreamFetchFailed(
            "Upstream markdown fetch failed",
            attempted=upstream_url,
            status=resp.status_code,
            fallback=html_url,
            fallback_status=html_resp.status_code,
        )

    html_resp = await fetch_upstream(client, upstream_url)
    if not html_resp.is_success:
        raise UpstreamFetchFailed(
            "Upstream html fetch failed",
            attempted=upstream_url,
            status=html_resp.status_code,
        )
    html = html_resp.text
    markdown_url = find_markdown_url_from_html(html, upstream_url)
    if markdown_url:
        try:
            md_resp = await fetch_upstream(client, markdown_url)
        except UpstreamFetchFailed:
            md_resp = None
        if md_resp is not None and md_resp.is_success:
            return md_resp.text
        logger.debug(f"Markdown counterpart unavailable: {markdown_url}")
    return html_to_markdown(html)


async def _try_package_index(
    request_url: str, client: httpx.AsyncClient
) -> PackageIndex | None:
    try:
        return await build_package_index(request_url, client)
    except UpstreamFetchFailed as e:
        logger.warning(f"Package index unavailable, rendering without it: {e.message}")
        return None
    except ValidationError as e:
        logger.warning(f"Package index malformed, rendering without it: {e}")
        return None


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------


def render_llms_index(index: PackageIndex) -> str:
    """Markdown catalog of a package, replacing upstream's llms.txt."""
    lines: list[str | None] = [
        "## Package",
        f"- name: {index.package}",
        f"- version: {index.version}" if index.version else "- version: latest",
        f"- index: {index.origin}{index.base_path}/index.json",
        f"- api_reference: {index.source.api_reference}",
        f"- sidebar_items: {index.source.sidebar_items}"
        if index.source.sidebar_items
        else None,
        f"- last_modified: {index.last_modified}" if index.last_modified else None,
    ]
    sections = ["\n".join(line for line in lines if line)]

    if task_map := render_task_map_section(index.task_map):
        sections.append(task_map)

    module_lines = ["## Modules"]
    for entry in index.modules:
        summary = f": {entry.summary}" if entry.summary else ""
        module_lines.append(
            f"- [{entry.name}]({entry.url}){summary} (Markdown: {entry.markdown_url})"
        )
    sections.append("\n".join(module_lines))

    if index.guides:
        guide_lines = ["## Guides"]
        for guide in index.guides:
            group = f" ({guide.group})" if guide.group else ""
            guide_lines.append(f"- [{guide.title}]({guide.url}){group}")
        sections.append("\n".join(guide_lines))

    if index.tasks:
        task_lines = [f"- [{t.title}]({t.url})" for t in index.tasks]
        sections.append("\n".join(["## Mix Tasks", *task_lines]))
    return "\n\n".join(sections).strip()


async def build_llms_replacement(request_url: str, client: httpx.AsyncClient) -> str:
    """Index-derived stand-in for upstream's llms.txt, links on the wrapper origin.

    Raises:
        UpstreamFetchFailed: the API reference page could not be retrieved.
    """
    parts = urlsplit(request_url)
    origin = f"{parts.scheme}://{parts.netloc}"
    index = await build_package_index(request_url, client)
    return rewrite_markdown_links(render_llms_index(index), request_url, origin)


async def render_page(request_url: str, client: httpx.AsyncClient) -> str:
    """Fetch, convert and enrich the page at *request_url*."""
    parts = urlsplit(request_url)
    origin = f"{parts.scheme}://{parts.netloc}"
    ctx = parse_path_context(parts.path)

    raw_markdown = await get_markdown_from_path(request_url, client)
    rewritten = rewrite_markdown_links(raw_markdown, request_url, origin)
    package_index = await _try_package_index(request_url, client)
    return assemble_document(rewritten, request_url, ctx.base_path, package_index)


def render_error(instruction_header: str, error: HexdocsError) -> str:
    details = error.details
    fallback = details.get("fallback")
    fallback_status = details.get("fallback_status")
    lines = [
        instruction_header,
        "",
        "## Upstream Error",
        f"message: {error.message}",
        f"attempted: {details.get('attempted')}",
        f"status: {details['status']}" if details.get("status") else None,
        f"fallback: {fallback}" if fallback else "fallback: none",
        f"fallback_status: {fallback_status}" if fallback and fallback_status else None,
    ]
    return "\n".join(line for line in lines if line is not None)


async def handle_request(
    request_url: str, client: httpx.AsyncClient | None = None
) -> WrapperResponse:
    """Serve one wrapper URL.

    *client* is used for every upstream retrieval; a fresh one is opened
    (and closed) when omitted.
    """
    if client is None:
        async with open_client() as own_client:
            return await handle_request(request_url, own_client)

    parts = urlsplit(request_url)
    origin = f"{parts.scheme}://{parts.netloc}"
    ctx = parse_path_context(parts.path)
    if not ctx.package or not ctx.rest_path:
        return _markdown_response(
            "\n".join(
                [
                    "## Invalid Request",
                    "Expected URL format: /{package}/{version}/{page}.html",
                    "Example: /ecto/3.12.5/Ecto.Repo.html",
                ]
            ),
            HOUR_TTL_SECONDS,
            400,
        )

    ttl = cache_ttl_for(ctx.version)
    header = build_instruction_header(origin, ctx.base_path)
    is_index_json = parts.path.endswith("/index.json")
    is_llms = parts.path.endswith("/llms.txt")

    try:
        if is_index_json:
            index = await build_package_index(request_url, client)
            return _json_response(index.to_json_dict(), ttl)
        if is_llms:
            body = await build_llms_replacement(request_url, client)
            return _markdown_response(f"{header}\n\n{body}", ttl)
        return _markdown_response(await render_page(request_url, client), ttl)
    except UpstreamFetchFailed as e:
        logger.error(f"{e.message}: {e.attempted} ({e.status})")
        if is_index_json:
            return _json_response(
                {
                    "error": e.message,
                    "attempted": e.attempted,
                    "status": e.status,
                    "fallback": e.fallback,
                    "fallback_status": e.fallback_status,
                },
                HOUR_TTL_SECONDS,
                502,
            )
        return _markdown_response(render_error(header, e), HOUR_TTL_SECONDS, 502)
