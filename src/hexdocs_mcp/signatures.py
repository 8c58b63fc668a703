"""Heuristic extraction of typespecs from fenced code in ex_doc Markdown.

A tolerant line scanner, not a typespec parser. It recognises:

- option-map types: ``@type name() :: %{...}`` (the ``@type`` prefix is
  optional), whose fields are ``optional(:key) => T``, ``required(:key) => T``,
  ``:key => T`` or ``key: T``, possibly spread over several lines up to the
  map's closing brace;
- function specs: ``@spec name(args) ...``, linked to an option-map type
  when an argument is a ``*_opts()`` type;
- callbacks: ``@callback name(...)`` / ``@macrocallback name(...)``.

Lines that match none of these are ignored.
"""

import re
from typing import NamedTuple

from hexdocs_mcp.models import OptionEntry, SpecEntry

_CODE_BLOCK_RE = re.compile(r"^[ \t]*```[^\n]*\n([\s\S]*?)^[ \t]*```", re.MULTILINE)
_MAP_TYPE_RE = re.compile(
    r"^[ \t]*(?:@(?:type|typep|opaque)[ \t]+)?([A-Za-z_]\w*)\(\)[ \t]*::[ \t]*%\{",
    re.MULTILINE,
)
_TYPE_NAME_RE = re.compile(r"@(?:type|typep|opaque)\s+([A-Za-z_]\w*[?!]?)\s*(?:\(|::)")
_SPEC_RE = re.compile(r"@spec\s+([A-Za-z_]\w*[!?]?)\(")
_CALLBACK_RE = re.compile(r"@(?:macro)?callback\s+([A-Za-z_]\w*[!?]?)\(")
_OPTS_ARG_RE = re.compile(r"\b(\w+_opts)\(\)")
_COMMENT_RE = re.compile(r"(?:^|(?<=\s))#.*$", re.MULTILINE)

_FIELD_PATTERNS = (
    (re.compile(r"^optional\(\s*:(\w+[?!]?)\s*\)\s*=>\s*(.+)$", re.DOTALL), False),
    (re.compile(r"^required\(\s*:(\w+[?!]?)\s*\)\s*=>\s*(.+)$", re.DOTALL), True),
    (re.compile(r"^:(\w+[?!]?)\s*=>\s*(.+)$", re.DOTALL), True),
    (re.compile(r"^(\w+[?!]?):\s*(.+)$", re.DOTALL), True),
)

_OPEN = "([{"
_CLOSE = ")]}"


class Signatures(NamedTuple):
    options: dict[str, list[OptionEntry]]
    specs: dict[str, SpecEntry]
    callbacks: set[str]
    type_names: set[str]


def extract_code_blocks(markdown: str) -> list[str]:
    """Contents of every fenced code block, fences excluded."""
    return [m.group(1) for m in _CODE_BLOCK_RE.finditer(markdown)]


def _balanced_end(text: str, start: int) -> int:
    """Index of the bracket closing the one just before *start*, or -1."""
    depth = 1
    for i in range(start, len(text)):
        char = text[i]
        if char in _OPEN:
            depth += 1
        elif char in _CLOSE:
            depth -= 1
            if depth == 0:
                return i
    return -1


def _split_top_level(body: str) -> list[str]:
    parts: list[str] = []
    depth = 0
    current: list[str] = []
    for char in body:
        if char in _OPEN:
            depth += 1
        elif char in _CLOSE:
            depth -= 1
        if char == "," and depth == 0:
            parts.append("".join(current))
            current = []
            continue
        current.append(char)
    parts.append("".join(current))
    return parts


def parse_option_field(text: str) -> OptionEntry | None:
    """Parse one map field; None when it is not a recognised field form."""
    field = " ".join(text.split())
    if not field:
        return None
    for pattern, required in _FIELD_PATTERNS:
        match = pattern.match(field)
        if match:
            return OptionEntry(
                key=f":{match.group(1)}", required=required, type=match.group(2).strip()
            )
    return None


def parse_map_fields(body: str) -> list[OptionEntry]:
    """Fields of a map type body (the text between ``%{`` and ``}``)."""
    body = _COMMENT_RE.sub("", body)
    fields = (parse_option_field(part) for part in _split_top_level(body))
    return [field for field in fields if field]


def parse_type_options(markdown: str) -> dict[str, list[OptionEntry]]:
    """Map type name to its declared fields, in declaration order."""
    options_by_type: dict[str, list[OptionEntry]] = {}
    for block in extract_code_blocks(markdown):
        pos = 0
        while match := _MAP_TYPE_RE.search(block, pos):
            end = _balanced_end(block, match.end())
            body = block[match.end() :] if end < 0 else block[match.end() : end]
            options = parse_map_fields(body)
            if options:
                options_by_type[match.group(1)] = options
            pos = len(block) if end < 0 else end + 1
    return options_by_type


def parse_type_names(markdown: str) -> set[str]:
    names: set[str] = set()
    for block in extract_code_blocks(markdown):
        names.update(m.group(1) for m in _TYPE_NAME_RE.finditer(block))
        names.update(m.group(1) for m in _MAP_TYPE_RE.finditer(block))
    return names


def parse_specs(markdown: str) -> dict[str, SpecEntry]:
    """Function name to its spec; a later spec for the same name wins."""
    specs: dict[str, SpecEntry] = {}
    for block in extract_code_blocks(markdown):
        for match in _SPEC_RE.finditer(block):
            args_end = _balanced_end(block, match.end())
            if args_end < 0:
                continue
            args = block[match.end() : args_end]
            line_end = block.find("\n", args_end)
            if line_end < 0:
                line_end = len(block)
            spec_text = " ".join(block[match.start() : line_end].split())
            opts = _OPTS_ARG_RE.search(args)
            name = match.group(1)
            specs[name] = SpecEntry(
                name=name, spec=spec_text, opts_type=opts.group(1) if opts else None
            )
    return specs


def parse_callbacks(markdown: str) -> set[str]:
    callbacks: set[str] = set()
    for block in extract_code_blocks(markdown):
        callbacks.update(m.group(1) for m in _CALLBACK_RE.finditer(block))
    return callbacks


def extract_signatures(markdown: str) -> Signatures:
    """Run every extractor over a page's Markdown."""
    return Signatures(
        options=parse_type_options(markdown),
        specs=parse_specs(markdown),
        callbacks=parse_callbacks(markdown),
        type_names=parse_type_names(markdown),
    )
