"""HTML entity decoding and tag stripping shared by every converter."""

import html
import re

_TAG_RE = re.compile(r"<[^>]*>")
_ENTITY_RE = re.compile(r"&(?:#\d+|#[xX][0-9a-fA-F]+|[A-Za-z][A-Za-z0-9]*);")


def decode_entities(text: str) -> str:
    """Decode named and numeric HTML entities.

    Only semicolon-terminated references are decoded, so query strings such
    as ``?a=1&section=2`` pass through untouched.
    Non-breaking spaces become plain spaces so that Markdown consumers do
    not see invisible characters. Text without entities is returned as-is.
    """
    if "&" not in text:
        return text
    decoded = _ENTITY_RE.sub(lambda m: html.unescape(m.group(0)), text)
    return decoded.replace("\xa0", " ")


def strip_tags(text: str) -> str:
    """Remove every tag and decode the remaining entities."""
    return decode_entities(_TAG_RE.sub("", text))
