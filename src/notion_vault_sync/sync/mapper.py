"""Record-to-path mapper for the Notion vault sync.

Derives the vault path of the document that mirrors a Notion page.

Filename resolution (first non-empty result wins):

1. **Mapped title** -- the first field mapping whose Notion property name
   contains ``title`` or equals ``name`` (case-insensitive), if that
   property is a title with text.
2. **Any title** -- the first title-typed property with text.
3. **Name** -- a property literally called ``Name`` holding title text.
4. **Fallback** -- ``Notion-Page-<first 8 characters of the page id>``.

Every candidate is sanitized: characters that are illegal in filenames on
common platforms are removed, whitespace runs collapse to one space,
leading dots are dropped, and the result is cut to 100 characters.
"""

from __future__ import annotations

import posixpath
import re
from typing import Any

from notion_vault_sync.config_schema import SyncConfig
from notion_vault_sync.converters import rich_text_plain
from notion_vault_sync.core.models import RemoteRecord
from notion_vault_sync.vault import DOCUMENT_SUFFIX

_INVALID_CHARS = re.compile(r'[<>:"/\\|?*]')
_WHITESPACE = re.compile(r"\s+")
_LEADING_DOTS = re.compile(r"^[.\s]+")
MAX_FILENAME_LENGTH = 100


def _title_text(prop: Any) -> str:
    if not isinstance(prop, dict):
        return ""
    return rich_text_plain(prop.get("title"))


class PathMapper:
    """Map Notion records to vault document paths.

    Args:
        config: The sync configuration (folder and field mappings).
    """

    def __init__(self, config: SyncConfig) -> None:
        self._config = config

    @staticmethod
    def sanitize(name: str) -> str:
        """Make *name* safe to use as a filename stem."""
        cleaned = _INVALID_CHARS.sub("", name)
        cleaned = _WHITESPACE.sub(" ", cleaned).strip()
        # A leading dot would hide the document from vault listings.
        cleaned = _LEADING_DOTS.sub("", cleaned)
        return cleaned[:MAX_FILENAME_LENGTH].strip()

    def file_name_for(self, record: RemoteRecord) -> str:
        """Return the sanitized filename stem for *record* (no extension)."""
        properties = record.properties

        # 1. Mapped title property
        for mapping in self._config.field_mappings:
            remote_name = mapping.remote_property.lower()
            if "title" in remote_name or remote_name == "name":
                prop = properties.get(mapping.remote_property)
                if isinstance(prop, dict) and prop.get("type") == "title":
                    name = self.sanitize(_title_text(prop))
                    if name:
                        return name
                break

        # 2. Any title-typed property
        for prop in properties.values():
            if isinstance(prop, dict) and prop.get("type") == "title":
                name = self.sanitize(_title_text(prop))
                if name:
                    return name

        # 3. A property literally called "Name"
        name = self.sanitize(_title_text(properties.get("Name")))
        if name:
            return name

        # 4. Id-based fallback
        return f"Notion-Page-{record.id[:8]}"

    def path_for(self, record: RemoteRecord) -> str:
        """Vault-relative path ``<folder>/<name>.md`` for *record*."""
        return posixpath.join(
            self._config.folder, self.file_name_for(record) + DOCUMENT_SUFFIX
        )

    def alternate_path_for(self, record: RemoteRecord) -> str:
        """Path disambiguated with the page id, for occupied primary paths."""
        return posixpath.join(
            self._config.folder,
            f"{self.file_name_for(record)} ({record.id[:8]}){DOCUMENT_SUFFIX}",
        )
