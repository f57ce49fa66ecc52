"""Notion block list to Markdown conversion.

Handles the block types that have a direct Markdown counterpart
(paragraphs, headings, lists, to-dos, code, quotes, dividers). Any other
block type that carries ``rich_text`` is rendered as a plain paragraph;
blocks without text (images, embeds, databases) are dropped.

Nested children are rendered when the client attached them under the
block's ``children`` key.
"""

from typing import Any

_LIST_TYPES = ("bulleted_list_item", "numbered_list_item", "to_do")


def rich_text_plain(rich_text: list[dict[str, Any]] | None) -> str:
    """Join the ``plain_text`` of every fragment in a rich text array."""
    return "".join(
        (item.get("plain_text") or (item.get("text") or {}).get("content", ""))
        for item in rich_text or []
    )


def _annotate(text: str, item: dict[str, Any]) -> str:
    """Wrap one rich text fragment in Markdown inline syntax."""
    if not text.strip():
        return text
    annotations = item.get("annotations") or {}
    if annotations.get("code"):
        text = f"`{text}`"
    if annotations.get("bold"):
        text = f"**{text}**"
    if annotations.get("italic"):
        text = f"*{text}*"
    if annotations.get("strikethrough"):
        text = f"~~{text}~~"
    href = item.get("href")
    if not href:
        link = (item.get("text") or {}).get("link") or {}
        href = link.get("url")
    if href:
        text = f"[{text}]({href})"
    return text


def rich_text_to_markdown(rich_text: list[dict[str, Any]] | None) -> str:
    """Render a rich text array as inline Markdown, keeping annotations."""
    return "".join(
        _annotate(
            item.get("plain_text")
            or (item.get("text") or {}).get("content", ""),
            item,
        )
        for item in rich_text or []
    )


def _render_block(block: dict[str, Any], depth: int) -> tuple[str, bool]:
    """Render one block.

    Returns:
        Tuple of (markdown, is_list_item).
    """
    block_type = block.get("type", "")
    payload = block.get(block_type) or {}
    text = rich_text_to_markdown(payload.get("rich_text"))
    indent = "  " * depth

    match block_type:
        case "paragraph":
            out, is_list = f"{indent}{text}\n\n", False
        case "heading_1" | "heading_2" | "heading_3":
            level = int(block_type[-1])
            out, is_list = f"{'#' * level} {text}\n\n", False
        case "bulleted_list_item":
            out, is_list = f"{indent}- {text}\n", True
        case "numbered_list_item":
            out, is_list = f"{indent}1. {text}\n", True
        case "to_do":
            mark = "x" if payload.get("checked") else " "
            out, is_list = f"{indent}- [{mark}] {text}\n", True
        case "code":
            language = payload.get("language") or ""
            if language == "plain text":
                language = ""
            code = rich_text_plain(payload.get("rich_text"))
            out, is_list = f"```{language}\n{code}\n```\n\n", False
        case "quote":
            quoted = "\n".join(f"> {line}" for line in text.split("\n"))
            out, is_list = f"{quoted}\n\n", False
        case "divider":
            out, is_list = "---\n\n", False
        case _:
            out = f"{indent}{text}\n\n" if text else ""
            is_list = False

    children = block.get("children") or []
    if children:
        child_depth = depth + 1 if is_list else depth
        out += _render_blocks(children, child_depth)
        if is_list and not out.endswith("\n"):
            out += "\n"
    return out, is_list


def _render_blocks(blocks: list[dict[str, Any]], depth: int) -> str:
    parts: list[str] = []
    previous_was_list = False
    for block in blocks:
        rendered, is_list = _render_block(block, depth)
        if not rendered:
            continue
        if previous_was_list and not is_list and depth == 0:
            # close the list before the next block
            parts.append("\n")
        parts.append(rendered)
        previous_was_list = is_list
    return "".join(parts)


def blocks_to_markdown(blocks: list[dict[str, Any]]) -> str:
    """Convert a list of Notion block objects to Markdown text.

    Args:
        blocks: Block objects as returned by ``GET /blocks/{id}/children``.

    Returns:
        Markdown text with surrounding whitespace stripped.
    """
    return _render_blocks(blocks, 0).strip()
