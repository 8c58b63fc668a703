"""Link resolution between the upstream docs host and the wrapper origin."""

import re
from urllib.parse import urljoin, urlsplit

from hexdocs_mcp.config import settings

# [label](target) -- labels cannot contain "]" and targets cannot contain ")"
MARKDOWN_LINK_RE = re.compile(r"\[([^\]]+)\]\(([^)]+)\)")

_PASSTHROUGH_PREFIXES = ("#", "mailto:", "javascript:")


def _resolve(href: str, base_url: str, wrapper_origin: str, upstream_host: str) -> str:
    resolved = urljoin(base_url, href)
    parts = urlsplit(resolved)
    if parts.netloc == upstream_host:
        query = f"?{parts.query}" if parts.query else ""
        fragment = f"#{parts.fragment}" if parts.fragment else ""
        return f"{wrapper_origin.rstrip('/')}{parts.path}{query}{fragment}"
    return resolved


def normalize_link_target(
    href: str,
    base_url: str,
    wrapper_origin: str,
    upstream_host: str | None = None,
) -> str:
    """Resolve *href* against *base_url* and point upstream links at the wrapper.

    In-page fragments, ``mailto:`` and ``javascript:`` targets are returned
    untouched. Links to other hosts are returned absolute but otherwise
    unchanged. Malformed hrefs are returned as given instead of raising.
    """
    if not href or href.startswith(_PASSTHROUGH_PREFIXES):
        return href
    try:
        return _resolve(
            href, base_url, wrapper_origin, upstream_host or settings.upstream_host()
        )
    except ValueError:
        return href


def resolve_related_link(
    href: str,
    base_url: str,
    wrapper_origin: str,
    upstream_host: str | None = None,
) -> str | None:
    """Like :func:`normalize_link_target` but None for non-navigable targets.

    Fragments are resolved (and later dropped as self references) rather
    than passed through.
    """
    if not href or href.startswith(_PASSTHROUGH_PREFIXES[1:]):
        return None
    try:
        return _resolve(
            href, base_url, wrapper_origin, upstream_host or settings.upstream_host()
        )
    except ValueError:
        return None


def rewrite_markdown_links(
    markdown: str,
    base_url: str,
    wrapper_origin: str,
    upstream_host: str | None = None,
) -> str:
    """Rewrite every ``[label](target)`` outside fenced code blocks."""

    def _rewrite(match: re.Match) -> str:
        label, href = match.group(1), match.group(2).strip()
        normalized = normalize_link_target(
            href, base_url, wrapper_origin, upstream_host
        )
        return f"[{label}]({normalized})" if normalized else match.group(0)

    lines = markdown.split("\n")
    in_code = False
    for i, line in enumerate(lines):
        if line.lstrip().startswith("```"):
            in_code = not in_code
            continue
        if not in_code and "](" in line:
            lines[i] = MARKDOWN_LINK_RE.sub(_rewrite, line)
    return "\n".join(lines)


def to_markdown_url(url: str) -> str:
    """Derive the ``.md`` variant of a page URL."""
    if url.endswith(".md"):
        return url
    if ".html" in url:
        return re.sub(r"\.html\b", ".md", url, count=1)
    return f"{url}.md"


def extract_related_links(
    markdown: str,
    page_url: str,
    wrapper_origin: str,
    limit: int = 30,
    upstream_host: str | None = None,
) -> list[str]:
    """Collect distinct link targets on the page, excluding links to itself."""
    page = urlsplit(page_url)
    links: dict[str, None] = {}
    for match in MARKDOWN_LINK_RE.finditer(markdown):
        href = match.group(2).strip()
        resolved = resolve_related_link(href, page_url, wrapper_origin, upstream_host)
        if not resolved:
            continue
        try:
            target = urlsplit(resolved)
        except ValueError:
            links.setdefault(resolved)
            continue
        if (target.scheme, target.netloc, target.path) == (
            page.scheme,
            page.netloc,
            page.path,
        ):
            continue
        links.setdefault(resolved)
    return list(links)[:limit]
