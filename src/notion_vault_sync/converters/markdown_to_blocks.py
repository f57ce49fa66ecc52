"""Markdown to Notion block conversion using the mistune AST.

Markdown is parsed once into mistune's token tree, then each block token
is mapped to the closest Notion block type. Inline formatting becomes rich
text annotations. Soft line breaks inside a paragraph become a single
space, so a wrapped paragraph is sent as one line of text.
"""

from typing import Any

import mistune

# Notion rejects text objects longer than this.
MAX_TEXT_LENGTH = 2000

_CODE_LANGUAGES = frozenset(
    {
        "bash",
        "c",
        "c#",
        "c++",
        "css",
        "diff",
        "docker",
        "go",
        "graphql",
        "html",
        "java",
        "javascript",
        "json",
        "kotlin",
        "markdown",
        "php",
        "plain text",
        "python",
        "ruby",
        "rust",
        "shell",
        "sql",
        "swift",
        "typescript",
        "xml",
        "yaml",
    }
)

_CODE_LANGUAGE_ALIASES = {
    "py": "python",
    "js": "javascript",
    "ts": "typescript",
    "sh": "shell",
    "zsh": "shell",
    "yml": "yaml",
    "md": "markdown",
    "cpp": "c++",
    "csharp": "c#",
    "dockerfile": "docker",
}


# ---------------------------------------------------------------------------
# Rich text helpers
# ---------------------------------------------------------------------------


def _text_item(
    content: str,
    annotations: dict[str, bool] | None = None,
    url: str | None = None,
) -> dict[str, Any]:
    item: dict[str, Any] = {"type": "text", "text": {"content": content}}
    if url:
        item["text"]["link"] = {"url": url}
    if annotations:
        item["annotations"] = dict(annotations)
    return item


def _text_items(
    content: str,
    annotations: dict[str, bool] | None = None,
    url: str | None = None,
) -> list[dict[str, Any]]:
    return [
        _text_item(content[i : i + MAX_TEXT_LENGTH], annotations, url)
        for i in range(0, len(content), MAX_TEXT_LENGTH)
    ]


def plain_rich_text(content: str) -> list[dict[str, Any]]:
    """Build an unannotated rich text array, split into 2000-char chunks."""
    return _text_items(content)


def _merge_adjacent(items: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Join neighbouring fragments that share annotations and link."""
    merged: list[dict[str, Any]] = []
    for item in items:
        if merged:
            prev = merged[-1]
            same_style = prev.get("annotations") == item.get(
                "annotations"
            ) and prev["text"].get("link") == item["text"].get("link")
            combined = prev["text"]["content"] + item["text"]["content"]
            if same_style and len(combined) <= MAX_TEXT_LENGTH:
                prev["text"]["content"] = combined
                continue
        merged.append(item)
    return merged


def _block(block_type: str, **payload: Any) -> dict[str, Any]:
    return {"object": "block", "type": block_type, block_type: payload}


def _code_language(info: str | None) -> str:
    if not info:
        return "plain text"
    name = info.split()[0].lower()
    name = _CODE_LANGUAGE_ALIASES.get(name, name)
    return name if name in _CODE_LANGUAGES else "plain text"


# ---------------------------------------------------------------------------
# Builder
# ---------------------------------------------------------------------------


class NotionBlockBuilder:
    """Turn mistune AST tokens into Notion block payloads."""

    def __init__(self) -> None:
        self._parse = mistune.create_markdown(
            renderer="ast", plugins=["strikethrough", "task_lists"]
        )

    def build(self, markdown_text: str) -> list[dict[str, Any]]:
        """Parse *markdown_text* and return the Notion block list."""
        tokens: list[dict[str, Any]] = self._parse(markdown_text)  # type: ignore[assignment]
        return self._blocks(tokens)

    def _blocks(self, tokens: list[dict[str, Any]]) -> list[dict[str, Any]]:
        blocks: list[dict[str, Any]] = []
        for token in tokens:
            blocks.extend(self._block(token))
        return blocks

    def _block(self, token: dict[str, Any]) -> list[dict[str, Any]]:
        attrs = token.get("attrs") or {}
        children = token.get("children") or []

        match token.get("type"):
            case "paragraph" | "block_text":
                rich_text = self._inline(children)
                if not rich_text:
                    return []
                return [_block("paragraph", rich_text=rich_text)]
            case "heading":
                level = min(int(attrs.get("level", 1)), 3)
                return [
                    _block(
                        f"heading_{level}",
                        rich_text=self._inline(children),
                    )
                ]
            case "list":
                ordered = bool(attrs.get("ordered", False))
                return [self._list_item(item, ordered) for item in children]
            case "block_code":
                code = (token.get("raw") or "").rstrip("\n")
                return [
                    _block(
                        "code",
                        rich_text=plain_rich_text(code),
                        language=_code_language(attrs.get("info")),
                    )
                ]
            case "block_quote":
                rich_text = []
                for inner in self._blocks(children):
                    payload = inner[inner["type"]]
                    if rich_text:
                        rich_text.append(_text_item("\n"))
                    rich_text.extend(payload.get("rich_text", []))
                return [_block("quote", rich_text=_merge_adjacent(rich_text))]
            case "thematic_break":
                return [_block("divider")]
            case "blank_line":
                return []
            case _:
                raw = (token.get("raw") or "").strip()
                if not raw:
                    return []
                return [_block("paragraph", rich_text=plain_rich_text(raw))]

    def _list_item(
        self, token: dict[str, Any], ordered: bool
    ) -> dict[str, Any]:
        rich_text: list[dict[str, Any]] = []
        nested: list[dict[str, Any]] = []
        for child in token.get("children") or []:
            if child.get("type") in ("block_text", "paragraph"):
                if rich_text:
                    rich_text.append(_text_item("\n"))
                rich_text.extend(self._inline(child.get("children") or []))
            else:
                nested.extend(self._block(child))

        payload: dict[str, Any] = {"rich_text": _merge_adjacent(rich_text)}
        if nested:
            payload["children"] = nested

        if token.get("type") == "task_list_item":
            payload["checked"] = bool(
                (token.get("attrs") or {}).get("checked", False)
            )
            return _block("to_do", **payload)
        block_type = (
            "numbered_list_item" if ordered else "bulleted_list_item"
        )
        return _block(block_type, **payload)

    def _inline(
        self,
        tokens: list[dict[str, Any]],
        annotations: dict[str, bool] | None = None,
        url: str | None = None,
    ) -> list[dict[str, Any]]:
        annotations = annotations or {}
        items: list[dict[str, Any]] = []
        for token in tokens:
            children = token.get("children") or []
            match token.get("type"):
                case "text" | "inline_html":
                    items.extend(
                        _text_items(token.get("raw", ""), annotations, url)
                    )
                case "codespan":
                    items.extend(
                        _text_items(
                            token.get("raw", ""),
                            {**annotations, "code": True},
                            url,
                        )
                    )
                case "strong":
                    items.extend(
                        self._inline(
                            children, {**annotations, "bold": True}, url
                        )
                    )
                case "emphasis":
                    items.extend(
                        self._inline(
                            children, {**annotations, "italic": True}, url
                        )
                    )
                case "strikethrough":
                    items.extend(
                        self._inline(
                            children,
                            {**annotations, "strikethrough": True},
                            url,
                        )
                    )
                case "link" | "image":
                    target = (token.get("attrs") or {}).get("url")
                    items.extend(self._inline(children, annotations, target))
                case "softbreak":
                    items.extend(_text_items(" ", annotations, url))
                case "linebreak":
                    items.extend(_text_items("\n", annotations, url))
                case _:
                    if children:
                        items.extend(self._inline(children, annotations, url))
                    elif token.get("raw"):
                        items.extend(
                            _text_items(token["raw"], annotations, url)
                        )
        return _merge_adjacent(items)


def markdown_to_blocks(markdown_text: str) -> list[dict[str, Any]]:
    """
    Convert Markdown text to a list of Notion block payloads.

    Args:
        markdown_text: Markdown formatted text

    Returns:
        Block objects suitable for ``children`` in page create/append calls
    """
    if not markdown_text or not markdown_text.strip():
        return []
    return NotionBlockBuilder().build(markdown_text)
