"""Front-matter document codec.

A vault document is an optional front-matter block followed by the body::

    ---
    title: "Dune"
    tags: ["sci-fi", "classic"]
    rating: 5
    read: true
    ---

    Body text...

Only the flat ``key: value`` subset that the sync engine itself writes is
understood: quoted strings, bracketed lists, booleans and numbers. Anything
else is kept as a raw string. ``parse_document(serialize_document(fm, body))``
returns ``(fm, body)`` for every map of strings, numbers, booleans and lists
of strings.
"""

from __future__ import annotations

import logging
import re
from typing import Any

logger = logging.getLogger(__name__)

NOTION_ID_KEY = "notionId"
LAST_NOTION_SYNC_KEY = "lastNotionSync"
LAST_OBSIDIAN_SYNC_KEY = "lastObsidianSync"

RESERVED_KEYS = frozenset(
    {NOTION_ID_KEY, LAST_NOTION_SYNC_KEY, LAST_OBSIDIAN_SYNC_KEY}
)

_FRONTMATTER_RE = re.compile(
    r"\A---[ \t]*\r?\n(.*?)^---[ \t]*(?:\r?\n|\Z)",
    re.DOTALL | re.MULTILINE,
)
_NUMBER_RE = re.compile(r"^[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?$")
_LIST_ITEM_RE = re.compile(r'\s*(?:"((?:[^"\\]|\\.)*)"|\'([^\']*)\'|([^,]*))\s*(?:,|$)')
_ESCAPE_RE = re.compile(r"\\(.)")
_UNESCAPES = {"n": "\n", "r": "\r", "t": "\t"}


# ------------------------------------------------------------------
# Serialization
# ------------------------------------------------------------------


def _quote(text: str) -> str:
    escaped = (
        text.replace("\\", "\\\\")
        .replace('"', '\\"')
        .replace("\r", "\\r")
        .replace("\n", "\\n")
        .replace("\t", "\\t")
    )
    return f'"{escaped}"'


def _scalar_text(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def format_value(value: Any) -> str:
    """Render one front-matter value."""
    if value is None:
        return '""'
    if isinstance(value, str):
        return _quote(value)
    if isinstance(value, (list, tuple, set)):
        items = value if not isinstance(value, set) else sorted(value, key=str)
        return "[" + ", ".join(
            _quote(v if isinstance(v, str) else _scalar_text(v))
            for v in items
        ) + "]"
    return _scalar_text(value)


def serialize_document(frontmatter: dict[str, Any], body: str) -> str:
    """Build document text from a front-matter map and a body.

    An empty map produces the body alone, without a block.
    """
    if not frontmatter:
        return body
    lines = ["---"]
    for key, value in frontmatter.items():
        lines.append(f"{key}: {format_value(value)}")
    lines.append("---")
    return "\n".join(lines) + "\n\n" + body


# ------------------------------------------------------------------
# Parsing
# ------------------------------------------------------------------


def _unescape(text: str) -> str:
    return _ESCAPE_RE.sub(
        lambda m: _UNESCAPES.get(m.group(1), m.group(1)), text
    )


def _parse_list(inner: str) -> list[str]:
    if not inner.strip():
        return []
    items: list[str] = []
    pos = 0
    while pos < len(inner):
        match = _LIST_ITEM_RE.match(inner, pos)
        if match is None or match.end() == pos:
            break
        double, single, bare = match.groups()
        if double is not None:
            items.append(_unescape(double))
        elif single is not None:
            items.append(single)
        else:
            items.append(bare.strip())
        pos = match.end()
    return items


def parse_value(raw: str) -> Any:
    """Interpret one raw front-matter value."""
    value = raw.strip()
    if len(value) >= 2 and value[0] == value[-1] == '"':
        return _unescape(value[1:-1])
    if len(value) >= 2 and value[0] == value[-1] == "'":
        return value[1:-1].replace("''", "'")
    if value.startswith("[") and value.endswith("]"):
        return _parse_list(value[1:-1])
    if value == "true":
        return True
    if value == "false":
        return False
    if _NUMBER_RE.match(value):
        if "." in value or "e" in value.lower():
            return float(value)
        return int(value)
    return value


def parse_document(text: str) -> tuple[dict[str, Any], str]:
    """Split document text into a front-matter map and the body.

    Never raises: a document without a block (or with one that cannot be
    read) yields an empty map and the whole text as body.
    """
    try:
        match = _FRONTMATTER_RE.match(text)
        if match is None:
            return {}, text

        frontmatter: dict[str, Any] = {}
        for line in match.group(1).splitlines():
            if not line.strip():
                continue
            key, sep, raw = line.partition(":")
            key = key.strip()
            if not sep or not key:
                logger.debug("Skipping front-matter line without key: %r", line)
                continue
            frontmatter[key] = parse_value(raw)

        body = text[match.end() :]
        if body.startswith("\r\n"):
            body = body[2:]
        elif body.startswith("\n"):
            body = body[1:]
        return frontmatter, body
    except Exception as exc:
        logger.warning("Failed to parse front-matter, treating as body: %s", exc)
        return {}, text
