"""Snapshot models returned by the remote client."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class RemoteRecord(BaseModel):
    """One Notion page fetched from a database.

    Attributes:
        id: Page id as returned by Notion.
        properties: Property name to Notion property payload. Each payload
            carries a ``type`` tag (``title``, ``rich_text``, ``number``...).
        content: Page body rendered as Markdown.
        last_modified: ISO 8601 ``last_edited_time`` of the page.
    """

    id: str
    properties: dict[str, Any] = Field(default_factory=dict)
    content: str = ""
    last_modified: str = ""

    model_config = {"frozen": True}


class DatabaseInfo(BaseModel):
    """Summary of a database visible to the integration."""

    id: str
    title: str
    url: str | None = None

    model_config = {"frozen": True}
