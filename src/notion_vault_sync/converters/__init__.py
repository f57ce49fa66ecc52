"""Format conversion between Notion blocks and Markdown."""

from .blocks_to_markdown import (
    blocks_to_markdown,
    rich_text_plain,
    rich_text_to_markdown,
)
from .markdown_to_blocks import (
    MAX_TEXT_LENGTH,
    NotionBlockBuilder,
    markdown_to_blocks,
    plain_rich_text,
)

__all__ = [
    "MAX_TEXT_LENGTH",
    "NotionBlockBuilder",
    "blocks_to_markdown",
    "markdown_to_blocks",
    "plain_rich_text",
    "rich_text_plain",
    "rich_text_to_markdown",
]
