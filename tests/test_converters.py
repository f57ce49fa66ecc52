"""Tests for Notion block <-> Markdown conversion."""

from conftest import rich

from notion_vault_sync.converters import (
    MAX_TEXT_LENGTH,
    blocks_to_markdown,
    markdown_to_blocks,
    plain_rich_text,
    rich_text_plain,
    rich_text_to_markdown,
)


def _block(block_type, text="", children=None, **extra):
    payload = {"rich_text": rich(text) if text else [], **extra}
    block = {"object": "block", "type": block_type, block_type: payload}
    if children:
        block["children"] = children
    return block


def _styled(text, href=None, **annotations):
    item = {"type": "text", "plain_text": text, "text": {"content": text}}
    item["annotations"] = annotations
    if href:
        item["href"] = href
    return item


def _texts(block):
    return [item["text"]["content"] for item in block[block["type"]]["rich_text"]]


# ---------------------------------------------------------------------------
# Rich text
# ---------------------------------------------------------------------------


class TestRichText:
    def test_plain_joins_fragments(self):
        assert rich_text_plain([_styled("Hello "), _styled("world", bold=True)]) == (
            "Hello world"
        )

    def test_plain_handles_none(self):
        assert rich_text_plain(None) == ""

    def test_markdown_annotations(self):
        items = [
            _styled("bold", bold=True),
            _styled(" and "),
            _styled("it", italic=True),
            _styled(" "),
            _styled("gone", strikethrough=True),
            _styled(" "),
            _styled("x = 1", code=True),
        ]
        assert rich_text_to_markdown(items) == "**bold** and *it* ~~gone~~ `x = 1`"

    def test_markdown_link(self):
        items = [_styled("docs", href="https://example.com")]
        assert rich_text_to_markdown(items) == "[docs](https://example.com)"

    def test_whitespace_not_annotated(self):
        assert rich_text_to_markdown([_styled(" ", bold=True)]) == " "

    def test_plain_rich_text_chunks(self):
        items = plain_rich_text("a" * (MAX_TEXT_LENGTH + 10))
        assert [len(i["text"]["content"]) for i in items] == [MAX_TEXT_LENGTH, 10]


# ---------------------------------------------------------------------------
# Blocks -> Markdown
# ---------------------------------------------------------------------------


class TestBlocksToMarkdown:
    def test_paragraphs_and_headings(self):
        blocks = [
            _block("heading_1", "Title"),
            _block("paragraph", "First."),
            _block("heading_3", "Small"),
            _block("paragraph", "Second."),
        ]
        assert blocks_to_markdown(blocks) == (
            "# Title\n\nFirst.\n\n### Small\n\nSecond."
        )

    def test_lists_and_todos(self):
        blocks = [
            _block("bulleted_list_item", "apple"),
            _block("numbered_list_item", "first"),
            _block("to_do", "done", checked=True),
            _block("to_do", "open", checked=False),
            _block("paragraph", "after"),
        ]
        assert blocks_to_markdown(blocks) == (
            "- apple\n1. first\n- [x] done\n- [ ] open\n\nafter"
        )

    def test_nested_list_indented(self):
        blocks = [
            _block(
                "bulleted_list_item",
                "parent",
                children=[_block("bulleted_list_item", "child")],
            )
        ]
        assert blocks_to_markdown(blocks) == "- parent\n  - child"

    def test_code_block(self):
        blocks = [
            _block("code", "print('hi')", language="python"),
            _block("code", "raw", language="plain text"),
        ]
        assert blocks_to_markdown(blocks) == (
            "```python\nprint('hi')\n```\n\n```\nraw\n```"
        )

    def test_quote_and_divider(self):
        blocks = [_block("quote", "line one\nline two"), _block("divider")]
        assert blocks_to_markdown(blocks) == "> line one\n> line two\n\n---"

    def test_unknown_text_block_rendered_as_paragraph(self):
        blocks = [_block("callout", "Note this"), {"type": "image", "image": {}}]
        assert blocks_to_markdown(blocks) == "Note this"

    def test_empty(self):
        assert blocks_to_markdown([]) == ""


# ---------------------------------------------------------------------------
# Markdown -> Blocks
# ---------------------------------------------------------------------------


class TestMarkdownToBlocks:
    def test_empty_input(self):
        assert markdown_to_blocks("") == []
        assert markdown_to_blocks("  \n\n") == []

    def test_headings_capped_at_three(self):
        blocks = markdown_to_blocks("# One\n\n#### Four\n")
        assert [b["type"] for b in blocks] == ["heading_1", "heading_3"]
        assert _texts(blocks[1]) == ["Four"]

    def test_paragraph_soft_breaks_become_spaces(self):
        (block,) = markdown_to_blocks("first line\nsecond line\n")
        assert block["type"] == "paragraph"
        assert "".join(_texts(block)) == "first line second line"

    def test_inline_annotations(self):
        (block,) = markdown_to_blocks("Hello **bold** *it* ~~no~~ `code`\n")
        items = block["paragraph"]["rich_text"]
        styled = {i["text"]["content"]: i.get("annotations", {}) for i in items}
        assert styled["bold"] == {"bold": True}
        assert styled["it"] == {"italic": True}
        assert styled["no"] == {"strikethrough": True}
        assert styled["code"] == {"code": True}

    def test_link(self):
        (block,) = markdown_to_blocks("[docs](https://example.com)\n")
        (item,) = block["paragraph"]["rich_text"]
        assert item["text"] == {
            "content": "docs",
            "link": {"url": "https://example.com"},
        }

    def test_lists(self):
        blocks = markdown_to_blocks("- a\n- b\n\n1. one\n")
        assert [b["type"] for b in blocks] == [
            "bulleted_list_item",
            "bulleted_list_item",
            "numbered_list_item",
        ]
        assert _texts(blocks[1]) == ["b"]

    def test_task_list(self):
        blocks = markdown_to_blocks("- [x] done\n- [ ] open\n")
        assert [b["type"] for b in blocks] == ["to_do", "to_do"]
        assert blocks[0]["to_do"]["checked"] is True
        assert blocks[1]["to_do"]["checked"] is False

    def test_nested_list_children(self):
        (parent,) = markdown_to_blocks("- parent\n  - child\n")
        (child,) = parent["bulleted_list_item"]["children"]
        assert child["type"] == "bulleted_list_item"
        assert _texts(child) == ["child"]

    def test_code_block_language_alias(self):
        blocks = markdown_to_blocks("```py\nx = 1\n```\n\n```weird\ny\n```\n")
        assert blocks[0]["code"]["language"] == "python"
        assert _texts(blocks[0]) == ["x = 1"]
        assert blocks[1]["code"]["language"] == "plain text"

    def test_quote_and_divider(self):
        blocks = markdown_to_blocks("> quoted\n\n---\n")
        assert [b["type"] for b in blocks] == ["quote", "divider"]
        assert _texts(blocks[0]) == ["quoted"]

    def test_long_paragraph_split(self):
        (block,) = markdown_to_blocks("x" * (MAX_TEXT_LENGTH * 2 + 1) + "\n")
        lengths = [len(t) for t in _texts(block)]
        assert lengths == [MAX_TEXT_LENGTH, MAX_TEXT_LENGTH, 1]

    def test_converts_back_to_same_markdown(self):
        text = "## Notes\n\nSome **bold** text.\n\n- [x] read\n- [ ] review"
        assert blocks_to_markdown(_with_plain_text(markdown_to_blocks(text))) == text


def _with_plain_text(blocks):
    """Add the ``plain_text`` field Notion returns on read."""
    for block in blocks:
        for item in block[block["type"]].get("rich_text", []):
            item["plain_text"] = item["text"]["content"]
        _with_plain_text(block[block["type"]].get("children", []))
    return blocks
