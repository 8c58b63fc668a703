"""Package index construction from ex_doc's API reference and sidebar payload.

Two upstream artifacts describe a package:

- ``api-reference.html`` -- a rendered page whose "Modules" section is a
  summary table with a link and a one-line synopsis per module.
- ``dist/sidebar_items-<hash>.js`` -- a ``sidebarNodes=<JSON>;`` blob
  listing modules (with deprecation/group flags), extras (guides) and
  mix tasks. Its hashed filename is discovered from the API reference.

The summary table is preferred for modules since it carries summaries;
the sidebar fills in deprecation and group flags and is the only source
of guides and tasks. A missing or broken sidebar degrades the index, it
never fails the build.
"""

import json
import re
from datetime import UTC, datetime
from urllib.parse import urljoin, urlsplit

import httpx
from loguru import logger

from hexdocs_mcp.config import settings
from hexdocs_mcp.entities import strip_tags
from hexdocs_mcp.errors import SidebarParseFailed, UpstreamFetchFailed
from hexdocs_mcp.links import normalize_link_target, to_markdown_url
from hexdocs_mcp.models import (
    Anchor,
    GuideEntry,
    IndexSource,
    ModuleEntry,
    PackageIndex,
    TaskEntry,
)
from hexdocs_mcp.paths import PathContext, parse_path_context
from hexdocs_mcp.sources.upstream import fetch_text, fetch_upstream
from hexdocs_mcp.task_map import build_task_map

_SIDEBAR_PREFIX = "sidebarNodes="
_SIDEBAR_FILE_RE = re.compile(r"[\w./-]*sidebar_items-[A-Za-z0-9]+\.js")
_SUMMARY_ROW_RE = re.compile(
    r"<div[^>]*class=[\"']summary-row[\"'][^>]*>", re.IGNORECASE
)
_ROW_LINK_RE = re.compile(
    r"<a[^>]*href=\"([^\"]+)\"[^>]*>([\s\S]*?)</a>", re.IGNORECASE
)
_ROW_SYNOPSIS_RE = re.compile(
    r"<div[^>]*class=[\"']summary-synopsis[\"'][^>]*>([\s\S]*?)</div>", re.IGNORECASE
)
_H2_WITH_ID_RE = re.compile(r"<h2[^>]*id=[\"'][^\"']+[\"'][^>]*>", re.IGNORECASE)
_WHITESPACE_RE = re.compile(r"\s+")


# ---------------------------------------------------------------------------
# Sidebar payload
# ---------------------------------------------------------------------------


def find_sidebar_items_url(html: str, base_url: str) -> str | None:
    """Locate the version-stamped sidebar script referenced by a page."""
    match = _SIDEBAR_FILE_RE.search(html)
    if not match:
        return None
    path = match.group(0)
    if "/" not in path:
        path = f"dist/{path}"
    return urljoin(base_url, path)


def parse_sidebar_nodes(script: str, url: str | None = None) -> dict:
    """Parse a ``sidebarNodes=<JSON>;`` payload.

    Raises:
        SidebarParseFailed: the envelope prefix is missing or the JSON is
            not an object.
    """
    text = script.strip()
    if not text.startswith(_SIDEBAR_PREFIX):
        raise SidebarParseFailed("Sidebar payload has no sidebarNodes prefix", url)
    text = text[len(_SIDEBAR_PREFIX) :].rstrip()
    if text.endswith(";"):
        text = text[:-1]
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise SidebarParseFailed(f"Sidebar payload is not valid JSON: {e}", url) from e
    if not isinstance(data, dict):
        raise SidebarParseFailed("Sidebar payload is not a JSON object", url)
    return data


def _sidebar_list(nodes: dict | None, key: str) -> list[dict]:
    if not nodes:
        return []
    items = nodes.get(key)
    if not isinstance(items, list):
        return []
    return [
        item
        for item in items
        if isinstance(item, dict) and isinstance(item.get("id"), str) and item["id"]
    ]


def _text(value) -> str | None:
    """Non-empty string sidebar field, or None for anything else."""
    return value if isinstance(value, str) and value else None


def _anchors(raw) -> list[Anchor] | None:
    if not isinstance(raw, list):
        return None
    return [
        Anchor(id=str(item["id"]), anchor=str(item["anchor"]))
        for item in raw
        if isinstance(item, dict) and "id" in item and "anchor" in item
    ]


# ---------------------------------------------------------------------------
# API reference page
# ---------------------------------------------------------------------------


def slice_section_by_heading(html: str, heading_id: str) -> str:
    """Return the HTML from ``<h2 id=heading_id>`` up to the next ``<h2 id=...>``."""
    match = re.search(
        rf"<h2[^>]*id=[\"']{re.escape(heading_id)}[\"'][^>]*>", html, re.IGNORECASE
    )
    if not match:
        return ""
    start, body_start = match.start(), match.end()
    following = _H2_WITH_ID_RE.search(html, body_start)
    end = following.start() if following else len(html)
    return html[start:end]


def parse_api_reference_modules(html: str) -> list[dict]:
    """Extract ``{name, href, summary}`` rows from the Modules summary table."""
    section = slice_section_by_heading(html, "modules")
    if not section:
        return []
    rows = _SUMMARY_ROW_RE.split(section)[1:]
    modules: list[dict] = []
    for row in rows:
        link = _ROW_LINK_RE.search(row)
        if not link:
            continue
        href = link.group(1).strip()
        name = strip_tags(link.group(2)).strip()
        if not href or not name:
            continue
        summary = None
        synopsis = _ROW_SYNOPSIS_RE.search(row)
        if synopsis:
            summary = _WHITESPACE_RE.sub(" ", strip_tags(synopsis.group(1))).strip()
        modules.append({"name": name, "href": href, "summary": summary or None})
    return modules


# ---------------------------------------------------------------------------
# Index assembly
# ---------------------------------------------------------------------------


def _dedupe(entries: list, key) -> list:
    seen: set[str] = set()
    unique = []
    for entry in entries:
        k = key(entry)
        if k in seen:
            continue
        seen.add(k)
        unique.append(entry)
    return unique


def _utc_timestamp() -> str:
    return datetime.now(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def assemble_package_index(
    ctx: PathContext,
    origin: str,
    api_reference_url: str,
    api_html: str,
    sidebar_url: str | None = None,
    sidebar_nodes: dict | None = None,
    last_modified: str | None = None,
    upstream_host: str | None = None,
) -> PackageIndex:
    """Merge the API reference table and sidebar payload into a PackageIndex."""
    sidebar_modules = {
        item["id"]: item for item in _sidebar_list(sidebar_nodes, "modules")
    }

    modules: list[ModuleEntry] = []
    api_modules = parse_api_reference_modules(api_html)
    if api_modules:
        for row in api_modules:
            url = normalize_link_target(
                row["href"], api_reference_url, origin, upstream_host
            )
            flags = sidebar_modules.get(row["name"], {})
            modules.append(
                ModuleEntry(
                    name=row["name"],
                    summary=row["summary"],
                    url=url,
                    markdown_url=to_markdown_url(url),
                    deprecated=bool(flags.get("deprecated", False)),
                    group=_text(flags.get("group")),
                )
            )
    else:
        for item in sidebar_modules.values():
            url = f"{origin}{ctx.base_path}/{item['id']}.html"
            modules.append(
                ModuleEntry(
                    name=item["id"],
                    url=url,
                    markdown_url=to_markdown_url(url),
                    deprecated=bool(item.get("deprecated", False)),
                    group=_text(item.get("group")),
                )
            )

    guides = [
        GuideEntry(
            id=item["id"],
            title=_text(item.get("title")) or item["id"],
            group=_text(item.get("group")),
            url=f"{origin}{ctx.base_path}/{item['id']}.html",
            headers=_anchors(item.get("headers")),
        )
        for item in _sidebar_list(sidebar_nodes, "extras")
    ]
    tasks = [
        TaskEntry(
            id=item["id"],
            title=_text(item.get("title")) or item["id"],
            url=f"{origin}{ctx.base_path}/{item['id']}.html",
            deprecated=bool(item.get("deprecated", False)),
            group=_text(item.get("group")),
            sections=_anchors(item.get("sections")),
        )
        for item in _sidebar_list(sidebar_nodes, "tasks")
    ]

    modules = _dedupe(modules, lambda m: m.name)
    guides = _dedupe(guides, lambda g: g.id)
    tasks = _dedupe(tasks, lambda t: t.id)

    return PackageIndex(
        package=ctx.package or "",
        version=ctx.version,
        is_versioned=ctx.is_versioned,
        base_path=ctx.base_path,
        origin=origin,
        last_modified=last_modified,
        source=IndexSource(api_reference=api_reference_url, sidebar_items=sidebar_url),
        modules=modules,
        guides=guides,
        tasks=tasks,
        task_map=build_task_map(modules, guides, tasks),
        generated_at=_utc_timestamp(),
    )


def api_reference_url_for(ctx: PathContext, upstream_origin: str | None = None) -> str:
    upstream = (upstream_origin or settings.upstream_origin).rstrip("/")
    return f"{upstream}{ctx.base_path}/api-reference.html"


async def _load_sidebar(client: httpx.AsyncClient, sidebar_url: str) -> dict | None:
    try:
        resp, text = await fetch_text(client, sidebar_url)
    except UpstreamFetchFailed:
        return None
    if not resp.is_success:
        logger.info(f"Sidebar payload unavailable ({resp.status_code}): {sidebar_url}")
        return None
    try:
        return parse_sidebar_nodes(text, sidebar_url)
    except SidebarParseFailed as e:
        logger.warning(f"{e.message}: {sidebar_url}")
        return None


async def build_package_index(
    request_url: str,
    client: httpx.AsyncClient,
    upstream_origin: str | None = None,
) -> PackageIndex:
    """Fetch the API reference (and sidebar, when referenced) and build the index.

    Raises:
        UpstreamFetchFailed: the API reference page could not be retrieved.
    """
    parsed = urlsplit(request_url)
    origin = f"{parsed.scheme}://{parsed.netloc}"
    ctx = parse_path_context(parsed.path)
    api_url = api_reference_url_for(ctx, upstream_origin)
    upstream_host = urlsplit(upstream_origin).netloc if upstream_origin else None

    api_resp = await fetch_upstream(client, api_url)
    if not api_resp.is_success:
        raise UpstreamFetchFailed(
            "Upstream api-reference fetch failed",
            attempted=api_url,
            status=api_resp.status_code,
        )
    api_html = api_resp.text

    sidebar_url = find_sidebar_items_url(api_html, api_url)
    sidebar_nodes = await _load_sidebar(client, sidebar_url) if sidebar_url else None
    if sidebar_url is None:
        logger.debug(f"No sidebar payload referenced from {api_url}")

    index = assemble_package_index(
        ctx,
        origin,
        api_url,
        api_html,
        sidebar_url=sidebar_url,
        sidebar_nodes=sidebar_nodes,
        last_modified=api_resp.headers.get("last-modified"),
        upstream_host=upstream_host,
    )
    logger.info(
        f"Indexed {ctx.package}: {len(index.modules)} modules, "
        f"{len(index.guides)} guides, {len(index.tasks)} tasks"
    )
    return index
