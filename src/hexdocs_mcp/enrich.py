"""Assembly of the final agent-facing document for one documentation page.

Takes link-rewritten Markdown plus what the signature extractor and the
package index know, and produces a single self-contained document::

    ## Navigation          instruction header
    ## Source URLs         .html / .md variants of the page
    ## Module Synopsis     purpose, entrypoints, common tasks, see also
    ## Warnings            first NOTE/WARNING/CAUTION lines
    ## Operational Workflow
    <page body>           with Types/Callbacks/Exceptions headings and
                          per-function spec + options tables
    ## Agent Data          machine-readable *_opts fields
    ## Related Pages
    ## Guides
    ## Related Links

Sections without content are left out.
"""

import json
import re
from urllib.parse import urlsplit

from hexdocs_mcp.links import extract_related_links
from hexdocs_mcp.models import (
    GuideEntry,
    OptionEntry,
    PackageIndex,
    SpecEntry,
    TaskMapEntry,
)
from hexdocs_mcp.signatures import Signatures, extract_signatures

_HEADING_RE = re.compile(r"^(#{1,6})\s+(.+?)\s*$")
_SYMBOL_RE = re.compile(r"^([A-Za-z_][\w.]*[!?]?)\s*(?:\(.*\)|/\d+)?$")
_EXCEPTION_RE = re.compile(r"Error|Exception")
_MODULE_REF_RE = re.compile(r"\b[A-Z]\w*(?:\.[A-Z]\w*)+\b")
_WARNING_RE = re.compile(
    r"^(?:>\s*)?(?:\*\*)?(?:NOTE|Note|WARNING|Warning|CAUTION|Caution)(?:\*\*)?:"
    r"(?:\*\*)?\s*(.+)$"
)
_SOURCE_LINK_PREFIX = "[🔗]("

_MAX_RELATED_PAGES = 20
_MAX_RELATED_LINKS = 30
_MAX_GUIDES = 30
_MAX_WARNINGS = 3

# Each step fires when every keyword of any one group appears on the page
_WORKFLOW_STEPS: list[tuple[list[tuple[str, ...]], str]] = [
    (
        [("mix ecto.gen.migration",)],
        "- Generate a migration: `mix ecto.gen.migration <name>`.",
    ),
    (
        [("priv/", "migrations")],
        "- Edit the migration file under `priv/.../migrations`.",
    ),
    (
        [("mix ecto.migrate",)],
        "- Apply migrations: `mix ecto.migrate`.",
    ),
    (
        [("mix ecto.rollback",)],
        "- Roll back when needed: `mix ecto.rollback --step 1`.",
    ),
    (
        [("Ecto.Migrator",), ("bin/my_app eval",)],
        "- For releases, run migrations via `Ecto.Migrator` in a release module.",
    ),
]


# ---------------------------------------------------------------------------
# Line helpers
# ---------------------------------------------------------------------------


def _is_fence(line: str) -> bool:
    return line.lstrip().startswith("```")


def _parse_heading(line: str) -> tuple[int, str] | None:
    match = _HEADING_RE.match(line)
    if not match:
        return None
    return len(match.group(1)), match.group(2).replace("`", "").strip()


def heading_symbol(title: str) -> str | None:
    """Bare identifier of a heading: ``t()``, ``insert/2``, ``start_link(opts)``."""
    match = _SYMBOL_RE.match(title.replace("`", "").strip())
    return match.group(1) if match else None


def _escape_cell(text: str) -> str:
    return text.replace("|", "\\|")


# ---------------------------------------------------------------------------
# Body enrichment
# ---------------------------------------------------------------------------


def insert_section_headings(
    markdown: str, type_names: set[str], callback_names: set[str]
) -> str:
    """Insert ``## Types``/``## Callbacks``/``## Exceptions`` once each.

    Each lands before the first heading naming a known type, a known
    callback, or an error/exception respectively. The page title (level 1)
    and headings inside code fences are never considered.
    """
    output: list[str] = []
    inserted = {"types": False, "callbacks": False, "exceptions": False}
    in_code = False
    for line in markdown.split("\n"):
        if _is_fence(line):
            in_code = not in_code
        elif not in_code and (heading := _parse_heading(line)) and heading[0] > 1:
            title = heading[1]
            symbol = heading_symbol(title)
            if not inserted["types"] and symbol in type_names:
                output.extend(["## Types", ""])
                inserted["types"] = True
            if not inserted["callbacks"] and symbol in callback_names:
                output.extend(["## Callbacks", ""])
                inserted["callbacks"] = True
            if not inserted["exceptions"] and _EXCEPTION_RE.search(title):
                output.extend(["## Exceptions", ""])
                inserted["exceptions"] = True
        output.append(line)
    return "\n".join(output)


def build_options_table(options: list[OptionEntry]) -> list[str]:
    """Key/Required/Type table, required keys first, otherwise in declared order."""
    ordered = sorted(options, key=lambda o: not o.required)
    lines = ["| Key | Required | Type |", "| --- | --- | --- |"]
    for option in ordered:
        required = "yes" if option.required else "no"
        lines.append(
            f"| {_escape_cell(option.key)} | {required} | {_escape_cell(option.type)} |"
        )
    return lines


def _function_insert(spec: SpecEntry, options: list[OptionEntry] | None) -> list[str]:
    lines = [f"Spec: `{spec.spec}`"]
    if options:
        lines.extend(["", f"Options ({spec.opts_type}):"])
        lines.extend(build_options_table(options))
    return lines


def inject_function_enhancements(
    markdown: str,
    options_by_type: dict[str, list[OptionEntry]],
    specs: dict[str, SpecEntry],
) -> str:
    """Add spec line, options table and a ``Summary:`` line under function headings."""
    output: list[str] = []
    in_code = False
    awaiting_summary = False
    for line in markdown.split("\n"):
        stripped = line.strip()
        if _is_fence(line):
            in_code = not in_code
            awaiting_summary = False
            output.append(line)
            continue
        if in_code:
            output.append(line)
            continue

        heading = _parse_heading(line)
        if heading:
            awaiting_summary = False
            output.append(line)
            spec = specs.get(heading_symbol(heading[1]) or "")
            if spec:
                options = options_by_type.get(spec.opts_type or "")
                output.extend(["", *_function_insert(spec, options)])
                awaiting_summary = True
            continue

        is_source_link = stripped.startswith(_SOURCE_LINK_PREFIX)
        if awaiting_summary and stripped and not is_source_link:
            if not stripped.startswith("Summary:"):
                stripped = f"Summary: {stripped}"
            output.append(stripped)
            awaiting_summary = False
            continue
        output.append(line)
    return "\n".join(output)


def build_agent_data_section(
    options_by_type: dict[str, list[OptionEntry]],
) -> str | None:
    """YAML-shaped block listing required/optional fields of every ``*_opts`` type."""
    opt_types = [
        (name, opts) for name, opts in options_by_type.items() if name.endswith("_opts")
    ]
    if not opt_types:
        return None
    lines = ["## Agent Data", "```agent-data", "opts:"]
    for type_name, options in opt_types:
        lines.append(f"  {type_name}:")
        for label, required in (("required", True), ("optional", False)):
            group = [o for o in options if o.required is required]
            lines.append(f"    {label}:" if group else f"    {label}: []")
            for option in group:
                lines.append(f"      - key: {json.dumps(option.key)}")
                lines.append(f"        type: {json.dumps(option.type)}")
    lines.append("```")
    return "\n".join(lines)


# ---------------------------------------------------------------------------
# Page facts
# ---------------------------------------------------------------------------


def extract_module_name(markdown: str) -> str | None:
    """Title of the first level-1 heading outside code."""
    in_code = False
    for line in markdown.split("\n"):
        if _is_fence(line):
            in_code = not in_code
            continue
        if not in_code:
            heading = _parse_heading(line)
            if heading and heading[0] == 1 and heading[1]:
                return heading[1]
    return None


def extract_module_references(
    markdown: str,
    options_by_type: dict[str, list[OptionEntry]],
    known_modules: set[str],
) -> list[str]:
    """Dotted module names mentioned on the page or in option field types.

    When *known_modules* is non-empty, only names it contains are kept.
    """
    texts = [markdown]
    texts.extend(o.type for opts in options_by_type.values() for o in opts)
    found: dict[str, None] = {}
    for text in texts:
        for match in _MODULE_REF_RE.finditer(text):
            name = match.group(0)
            if not known_modules or name in known_modules:
                found.setdefault(name)
    return list(found)


def extract_first_paragraph(markdown: str) -> str | None:
    """First paragraph after the ``# `` title, joined into one line."""
    in_code = False
    seen_title = False
    paragraph: list[str] = []
    for line in markdown.split("\n"):
        stripped = line.strip()
        if stripped.startswith("```"):
            in_code = not in_code
            continue
        if not seen_title:
            if not in_code and stripped.startswith("# "):
                seen_title = True
            continue
        if in_code:
            continue
        if not stripped:
            if paragraph:
                break
            continue
        if stripped.startswith("#"):
            break
        if stripped.startswith(_SOURCE_LINK_PREFIX):
            continue
        paragraph.append(stripped)
    return " ".join(paragraph) if paragraph else None


def extract_warnings(markdown: str, limit: int = _MAX_WARNINGS) -> list[str]:
    warnings: list[str] = []
    in_code = False
    for line in markdown.split("\n"):
        stripped = line.strip()
        if stripped.startswith("```"):
            in_code = not in_code
            continue
        if in_code or not stripped:
            continue
        match = _WARNING_RE.match(stripped)
        if match and match.group(1).strip():
            warnings.append(match.group(1).strip())
            if len(warnings) >= limit:
                break
    return warnings


# ---------------------------------------------------------------------------
# Sections
# ---------------------------------------------------------------------------


def build_instruction_header(origin: str, base_path: str) -> str:
    base = f"{origin}{base_path}"
    return "\n".join(
        [
            "## Navigation",
            f"Base: {base}",
            f"Index: {base}/index.json",
            f"LLMs: {base}/llms.txt",
            f"Modules: {base}/{{Module}}.html or {base}/{{Module}}.md",
            f"Guides: {base}/{{guide}}.html",
        ]
    )


def build_source_section(page_url: str) -> str | None:
    """HTML and Markdown URLs of a page, for ``.html``/``.md`` paths only."""
    parts = urlsplit(page_url)
    path = parts.path
    if path.endswith(".html"):
        html_path, md_path = path, path[: -len(".html")] + ".md"
    elif path.endswith(".md"):
        html_path, md_path = path[: -len(".md")] + ".html", path
    else:
        return None
    origin = f"{parts.scheme}://{parts.netloc}"
    return "\n".join(
        [
            "## Source URLs",
            f"- HTML: {origin}{html_path}",
            f"- Markdown: {origin}{md_path}",
        ]
    )


def build_operational_workflow(markdown: str) -> str | None:
    steps = [
        step
        for groups, step in _WORKFLOW_STEPS
        if any(all(keyword in markdown for keyword in group) for group in groups)
    ]
    return "\n".join(["## Operational Workflow", *steps]) if steps else None


def build_warnings_section(warnings: list[str]) -> str | None:
    if not warnings:
        return None
    return "\n".join(["## Warnings", *(f"- {w}" for w in warnings)])


def build_module_synopsis(
    module_name: str | None,
    markdown: str,
    specs: dict[str, SpecEntry],
    task_map: list[TaskMapEntry],
    related_pages: list[str],
    origin: str,
    base_path: str,
    module_summary: str | None = None,
) -> str | None:
    if not module_name:
        return None
    purpose = module_summary or extract_first_paragraph(markdown)
    entrypoints = list(specs)[:5]
    task_titles = [
        task.title
        for task in task_map
        if any(
            e.label == module_name or e.url.endswith(f"/{module_name}.html")
            for e in task.entrypoints
        )
    ][:3]
    see_also = [
        f"[{page}]({origin}{base_path}/{page}.html)" for page in related_pages[:5]
    ]

    lines = ["## Module Synopsis"]
    if purpose:
        lines.append(f"- Purpose: {purpose}")
    if entrypoints:
        names = ", ".join(f"`{e}`" for e in entrypoints)
        lines.append(f"- Primary entrypoints: {names}")
    if task_titles:
        lines.append(f"- Common tasks: {', '.join(task_titles)}")
    if see_also:
        lines.append(f"- See also: {', '.join(see_also)}")
    return "\n".join(lines) if len(lines) > 1 else None


def render_related_pages(pages: list[str], origin: str, base_path: str) -> str | None:
    if not pages:
        return None
    lines = [f"- {origin}{base_path}/{page}.html" for page in pages]
    return "\n".join(["## Related Pages", *lines])


def render_related_links(links: list[str]) -> str | None:
    if not links:
        return None
    return "\n".join(["## Related Links", *(f"- {link}" for link in links)])


def render_guides_section(guides: list[GuideEntry]) -> str | None:
    if not guides:
        return None
    lines = ["## Guides"]
    for guide in guides[:_MAX_GUIDES]:
        group = f" ({guide.group})" if guide.group else ""
        lines.append(f"- [{guide.title}]({guide.url}){group}")
    return "\n".join(lines)


def render_task_map_section(task_map: list[TaskMapEntry]) -> str | None:
    if not task_map:
        return None
    lines = ["## Task Map"]
    for task in task_map:
        links = ", ".join(f"[{e.label}]({e.url})" for e in task.entrypoints)
        suffix = f" (Entrypoints: {links})" if links else ""
        lines.append(f"- {task.title}: {task.description}{suffix}")
    return "\n".join(lines)


# ---------------------------------------------------------------------------
# Assembly
# ---------------------------------------------------------------------------


def assemble_document(
    markdown: str,
    page_url: str,
    base_path: str,
    package_index: PackageIndex | None = None,
    signatures: Signatures | None = None,
) -> str:
    """Compose the enriched document for one page.

    *markdown* must already have its links rewritten to the wrapper origin;
    *page_url* is the wrapper URL the page is served at.
    """
    parts = urlsplit(page_url)
    origin = f"{parts.scheme}://{parts.netloc}"
    sig = signatures or extract_signatures(markdown)

    body = insert_section_headings(markdown, sig.type_names, sig.callbacks)
    body = inject_function_enhancements(body, sig.options, sig.specs)

    module_name = extract_module_name(markdown)
    modules = package_index.modules if package_index else []
    known_modules = {m.name for m in modules}
    related_pages = [
        page
        for page in extract_module_references(body, sig.options, known_modules)
        if page != module_name
    ][:_MAX_RELATED_PAGES]
    module_summary = next((m.summary for m in modules if m.name == module_name), None)

    sections = [
        build_instruction_header(origin, base_path),
        build_source_section(page_url),
        build_module_synopsis(
            module_name,
            body,
            sig.specs,
            package_index.task_map if package_index else [],
            related_pages,
            origin,
            base_path,
            module_summary=module_summary,
        ),
        build_warnings_section(extract_warnings(body)),
        build_operational_workflow(body),
        body,
        build_agent_data_section(sig.options),
        render_related_pages(related_pages, origin, base_path),
        render_guides_section(package_index.guides) if package_index else None,
        render_related_links(
            extract_related_links(body, page_url, origin, limit=_MAX_RELATED_LINKS)
        ),
    ]
    return "\n\n".join(section for section in sections if section)
