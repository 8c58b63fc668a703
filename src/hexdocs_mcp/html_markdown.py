"""Line-oriented HTML to Markdown conversion for ex_doc generated pages.

This is deliberately not a general purpose converter. It understands the
handful of constructs ex_doc emits (headings, paragraphs, lists, fenced
code, inline code, links) and strips everything else.

Rule order matters: each step assumes the previous ones already consumed
the tags it must not see as content.
"""

import re

from hexdocs_mcp.entities import decode_entities, strip_tags

_SCRIPT_RE = re.compile(r"<script[\s\S]*?</script>", re.IGNORECASE)
_STYLE_RE = re.compile(r"<style[\s\S]*?</style>", re.IGNORECASE)
_COMMENT_RE = re.compile(r"<!--[\s\S]*?-->")
_PRE_CODE_RE = re.compile(
    r"<pre[^>]*>\s*<code[^>]*>([\s\S]*?)</code>\s*</pre>", re.IGNORECASE
)
# Deepest level first so <h1> never swallows a nested <h2>
_HEADING_RES = [
    (level, re.compile(rf"<h{level}(?:\s[^>]*)?>([\s\S]*?)</h{level}>", re.IGNORECASE))
    for level in range(6, 0, -1)
]
_PARAGRAPH_RE = re.compile(r"<p(?:\s[^>]*)?>([\s\S]*?)</p>", re.IGNORECASE)
# Innermost list items only; applied until nothing matches
_LIST_ITEM_RE = re.compile(
    r"<li(?:\s[^>]*)?>((?:(?!<li[\s>])[\s\S])*?)</li>", re.IGNORECASE
)
_BREAK_RE = re.compile(r"<br\s*/?>", re.IGNORECASE)
_INLINE_CODE_RE = re.compile(r"<code(?:\s[^>]*)?>([\s\S]*?)</code>", re.IGNORECASE)
_ANCHOR_RE = re.compile(
    r"<a\s[^>]*?href=[\"']([^\"']+)[\"'][^>]*>([\s\S]*?)</a>", re.IGNORECASE
)
_TAG_RE = re.compile(r"<[^>]+>")
_BLANK_RUN_RE = re.compile(r"\n[ \t]*(?:\n[ \t]*){2,}")
_TOKEN_RE = re.compile(r"\x00(\d+)\x00")


class _CodeStash:
    """Holds already-converted code so later tag rules cannot touch it.

    Code text is entity-decoded when stashed; decoded ``<`` would otherwise
    be mistaken for markup by the rules that run afterwards.
    """

    def __init__(self) -> None:
        self._items: list[str] = []

    def put(self, text: str) -> str:
        self._items.append(text)
        return f"\x00{len(self._items) - 1}\x00"

    def restore(self, text: str) -> str:
        return _TOKEN_RE.sub(lambda m: self._items[int(m.group(1))], text)


def _remove_tags(text: str) -> str:
    return _TAG_RE.sub("", text).strip()


def _convert_inline(content: str, stash: _CodeStash) -> str:
    """Convert breaks, inline code and anchors inside one block, then drop tags."""
    content = _BREAK_RE.sub("\n", content)

    def _code(match: re.Match) -> str:
        text = strip_tags(match.group(1))
        return stash.put(f"`{text}`") if text else ""

    content = _INLINE_CODE_RE.sub(_code, content)

    def _anchor(match: re.Match) -> str:
        href = match.group(1)
        text = _remove_tags(match.group(2))
        return f"[{text}]({href})" if text else href

    content = _ANCHOR_RE.sub(_anchor, content)
    return _remove_tags(content)


def html_to_markdown(html: str) -> str:
    """Convert an ex_doc HTML page into Markdown."""
    stash = _CodeStash()

    # 1. Non-content markup; NUL is reserved for stash tokens
    output = _SCRIPT_RE.sub("", html.replace("\x00", ""))
    output = _STYLE_RE.sub("", output)
    output = _COMMENT_RE.sub("", output)

    # 2. Fenced code blocks
    def _fence(match: re.Match) -> str:
        code = strip_tags(match.group(1)).strip("\n")
        return "\n\n" + stash.put(f"```\n{code}\n```") + "\n\n"

    output = _PRE_CODE_RE.sub(_fence, output)

    # 3. Headings, h6 down to h1
    for level, pattern in _HEADING_RES:

        def _heading(match: re.Match, level: int = level) -> str:
            text = _remove_tags(match.group(1))
            return f"\n\n{'#' * level} {text}\n\n" if text else "\n\n"

        output = pattern.sub(_heading, output)

    # 4. Paragraphs, list items, breaks, inline code, anchors
    def _paragraph(match: re.Match) -> str:
        text = _convert_inline(match.group(1), stash)
        return f"\n\n{text}\n\n" if text else "\n\n"

    output = _PARAGRAPH_RE.sub(_paragraph, output)

    def _list_item(match: re.Match) -> str:
        text = _convert_inline(match.group(1), stash)
        return f"\n- {text}\n" if text else "\n"

    count = 1
    while count:
        output, count = _LIST_ITEM_RE.subn(_list_item, output)

    output = _convert_inline(output, stash)

    # 5. Residual tags and entities
    output = decode_entities(_TAG_RE.sub("", output))

    # 6. Blank line runs
    output = _BLANK_RUN_RE.sub("\n\n", output)
    return stash.restore(output).strip()
